from __future__ import annotations

import time

import structlog

from tlmquery.backends import DatabaseOpener, WarehouseFactory
from tlmquery.backends.bigquery import describe_error
from tlmquery.backends.sqlite import open_sqlite
from tlmquery.errors import BackendConnectionError, BackendError, MalformedRowSchema
from tlmquery.models import Err, Mode, Ok, QueryPlan, Result, Row
from tlmquery.rows import validate_rows

log = structlog.get_logger()


class FetchExecutor:
    """
    Run one QueryPlan against its physical source.

    Each call opens its own backend handle and closes it before returning.
    Failures come back as `Err` values:
    - BackendConnectionError: the handle could not be opened
    - BackendError: the query failed upstream (upstream message kept)
    - MalformedRowSchema: a returned field is not number | null | timestamp
    """

    def __init__(
        self,
        *,
        mode: Mode,
        warehouse_factory: WarehouseFactory | None = None,
        database_opener: DatabaseOpener = open_sqlite,
    ) -> None:
        if mode == "orbit" and warehouse_factory is None:
            raise ValueError("Orbit fetches need a warehouse_factory.")
        self.mode = mode
        self.warehouse_factory = warehouse_factory
        self.database_opener = database_opener

    def execute(self, plan: QueryPlan) -> Result[list[Row]]:
        t0 = time.time()
        if self.mode == "orbit":
            res = self._execute_orbit(plan)
        else:
            res = self._execute_ground(plan)
        ms = int((time.time() - t0) * 1000)
        if isinstance(res, Ok):
            log.debug("fetch.done", mode=self.mode, source=plan.source, rows=len(res.value), ms=ms)
        else:
            log.warning("fetch.failed", mode=self.mode, source=plan.source, error=res.message, ms=ms)
        return res

    def _execute_orbit(self, plan: QueryPlan) -> Result[list[Row]]:
        assert self.warehouse_factory is not None
        try:
            client = self.warehouse_factory()
        except Exception as e:
            return Err(BackendConnectionError(str(e) or type(e).__name__), source=plan.source)
        try:
            raw = list(client.query(plan.text))
        except Exception as e:
            return Err(BackendError(describe_error(e)), source=plan.source)
        finally:
            client.close()
        return self._validate(plan, raw)

    def _execute_ground(self, plan: QueryPlan) -> Result[list[Row]]:
        try:
            db = self.database_opener(plan.source)
        except Exception as e:
            return Err(BackendConnectionError(str(e) or type(e).__name__), source=plan.source)
        try:
            raw = db.all(plan.text)
        except Exception as e:
            return Err(BackendError(str(e) or type(e).__name__), source=plan.source)
        finally:
            db.close()
        return self._validate(plan, raw)

    def _validate(self, plan: QueryPlan, raw: list) -> Result[list[Row]]:
        try:
            return Ok(validate_rows(raw, mode=self.mode))
        except MalformedRowSchema as e:
            return Err(e, source=plan.source)
