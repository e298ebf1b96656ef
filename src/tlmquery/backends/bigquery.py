from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import structlog

from tlmquery.errors import BackendNotInstalled

log = structlog.get_logger()


@dataclass(frozen=True)
class BigQueryConfig:
    """
    Connection config for the orbit telemetry warehouse.

    `credentials_path` points at a service-account JSON key; empty means
    application-default credentials.
    """

    credentials_path: str = ""
    project: str = ""
    location: str | None = None


def bigquery_module():
    """
    Import google-cloud-bigquery lazily (orbit support is optional via extras).
    """
    try:
        from google.cloud import bigquery  # type: ignore

        return bigquery
    except Exception as e:
        raise BackendNotInstalled(
            "google-cloud-bigquery not installed. Install with: pip install -e '.[bigquery]'"
        ) from e


def describe_error(err: BaseException) -> str:
    """
    Upstream message for a failed warehouse call.

    google-api-core errors carry a list of structured error records; the first
    record's message is the useful part.
    """
    errors = getattr(err, "errors", None)
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, Mapping) and first.get("message"):
            return str(first["message"])
        return str(first)
    return str(err) or type(err).__name__


class BigQueryWarehouse:
    """One short-lived warehouse client; create one per fetch."""

    def __init__(self, cfg: BigQueryConfig) -> None:
        self.cfg = cfg
        bq = bigquery_module()
        project = str(cfg.project).strip() or None
        if str(cfg.credentials_path).strip():
            self._client = bq.Client.from_service_account_json(
                str(cfg.credentials_path), project=project, location=cfg.location
            )
        else:
            self._client = bq.Client(project=project, location=cfg.location)

    def query(self, text: str) -> Iterable[Mapping[str, Any]]:
        job = self._client.query(text)
        rows = job.result()
        out = [dict(row.items()) for row in rows]
        log.debug("bigquery.query_done", job_id=getattr(job, "job_id", None), rows=len(out))
        return out

    def close(self) -> None:
        try:
            self._client.close()
        except Exception as e:
            log.debug("bigquery.close_failed", error=str(e))


def make_warehouse_factory(cfg: BigQueryConfig):
    def _factory() -> BigQueryWarehouse:
        return BigQueryWarehouse(cfg)

    return _factory
