"""
tlmquery CLI: fetch orbit or ground-test telemetry for a project.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import date, datetime
from pathlib import Path

import click
import structlog

from tlmquery.config import get_settings_path, load_config, make_engine_config_from_env

log = structlog.get_logger()


def _setup_logging(verbose: bool) -> None:
    env_level = os.environ.get("TLMQUERY_LOG_LEVEL", "").strip().lower()
    if verbose or env_level in {"debug", "trace"}:
        level = logging.DEBUG
    elif env_level in {"warning", "warn"}:
        level = logging.WARNING
    elif env_level == "error":
        level = logging.ERROR
    else:
        level = logging.INFO
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    # Logs go to stderr so stdout stays a clean JSON summary.
    logging.basicConfig(format="%(message)s", level=level, handlers=[logging.StreamHandler(sys.stderr)])
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as e:
        raise click.BadParameter(f"Expected YYYY-MM-DD, got {value!r}") from e


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """tlmquery: spacecraft telemetry retrieval (orbit warehouse / ground test files)."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)
    load_config()


@main.command("fetch")
@click.option("--project", required=True, help="Project name, e.g. DSX0201")
@click.option("--mode", type=click.Choice(["orbit", "ground"]), required=True, help="Telemetry source")
@click.option("--start", default="", help="First day (YYYY-MM-DD)")
@click.option("--end", default="", help="Last day (YYYY-MM-DD, default: --start)")
@click.option("--stored/--live", default=False, show_default=True, help="Stored playback vs real-time downlink")
@click.option("--test-case", "test_cases", multiple=True, help="Ground test case folder (repeatable; switches to test-case selection)")
@click.option("--channel", "channels", multiple=True, required=True, help="Telemetry channel (repeatable)")
@click.option("--settings-dir", default="", help="Settings directory (default: env/config)")
@click.option("--timeout", default=0.0, type=float, help="Overall deadline in seconds (default: env/config)")
@click.option("--json-out", default="", help="Write the full response JSON to this path")
@click.option("--table", is_flag=True, help="Print the time-aligned table head")
def fetch_cmd(
    project: str,
    mode: str,
    start: str,
    end: str,
    stored: bool,
    test_cases: tuple[str, ...],
    channels: tuple[str, ...],
    settings_dir: str,
    timeout: float,
    json_out: str,
    table: bool,
) -> None:
    """Fetch telemetry channels and print a JSON summary."""
    from tlmquery.aggregate import Aggregator
    from tlmquery.backends.bigquery import BigQueryConfig, make_warehouse_factory
    from tlmquery.errors import TlmQueryError
    from tlmquery.json_io import write_json_atomic
    from tlmquery.models import DateRange, TelemetryGroup, TelemetryRequest
    from tlmquery.query.builder import ident
    from tlmquery.settings import get_project, group_channels

    cfg = make_engine_config_from_env()
    try:
        for ch in channels:
            ident(ch)
        pj = get_project(Path(settings_dir) if settings_dir else get_settings_path(), project)
        if mode == "orbit":
            groups = group_channels(channels, pj.tlm_ids)
        else:
            # Ground files hold one table set per run; grouping by table id does not apply.
            groups = (TelemetryGroup(table_id=0, channels=tuple(dict.fromkeys(channels))),)

        use_test_cases = bool(test_cases)
        date_range = None
        if start:
            date_range = DateRange.of(_parse_day(start), _parse_day(end or start))
        request = TelemetryRequest(
            project=pj.name,
            mode=mode,  # type: ignore[arg-type]
            groups=groups,
            stored=bool(stored),
            use_test_cases=use_test_cases,
            date_range=date_range,
            test_cases=tuple(test_cases),
            orbit_dataset=pj.orbit_dataset_path,
            ground_test_path=pj.ground_test_path,
        )
    except TlmQueryError as e:
        raise click.ClickException(str(e)) from e

    warehouse_factory = None
    if mode == "orbit":
        warehouse_factory = make_warehouse_factory(
            BigQueryConfig(credentials_path=cfg.credentials_path, project=cfg.bigquery_project)
        )
    agg = Aggregator(cfg, warehouse_factory=warehouse_factory)
    t0 = datetime.now()
    response = agg.aggregate(request, timeout_s=(timeout if timeout > 0 else None))
    log.info("fetch.complete", project=pj.name, mode=mode, ms=int((datetime.now() - t0).total_seconds() * 1000))

    if json_out:
        write_json_atomic(Path(json_out), response.to_dict())
    summary = {
        "success": response.success,
        "points": {k: len(v.time) for k, v in response.telemetry.items()},
        "errors": response.errors,
    }
    click.echo(json.dumps(summary, ensure_ascii=False, indent=2))
    if table:
        from tlmquery.frame import to_frame

        click.echo(to_frame(response).head(20).to_string())
    if not response.success:
        sys.exit(1)


def entrypoint() -> None:
    main(obj={})


if __name__ == "__main__":
    entrypoint()
