"""
Parallel aggregation: one request in, one merged response out.

Per-source failures (discovery, probing, fetch, transposition) become entries
in `errors`; they never abort channels obtainable from other sources. Only the
request-level deadline replaces the whole response.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import replace
from typing import Sequence

import structlog

from tlmquery.backends import DatabaseOpener, WarehouseFactory
from tlmquery.backends.sqlite import open_sqlite, probe_file
from tlmquery.config import EngineConfig
from tlmquery.discovery import describe_orbit_source, discover_ground_files
from tlmquery.errors import QueryExecutionError, RequestTimeout, SchemaProbeError
from tlmquery.executor import FetchExecutor
from tlmquery.models import (
    AggregatedResponse,
    ChannelSeries,
    ColumnarFrame,
    ColumnProbeResult,
    Err,
    Ok,
    QueryPlan,
    Result,
    TelemetryRequest,
)
from tlmquery.query.builder import ident
from tlmquery.query.synth import build_ground_query, build_orbit_query
from tlmquery.transpose import transpose
from tlmquery.util.observability import FetchStats, get_fetch_stats

log = structlog.get_logger()


def unique_messages(errors: Sequence[Err]) -> list[str]:
    """One message per distinct reason, naming the first source that reported it."""
    first: dict[str, str] = {}
    for e in errors:
        first.setdefault(e.reason, e.message)
    return list(first.values())


def merge_frames(channels: Sequence[str], frames: Sequence[ColumnarFrame]) -> dict[str, ChannelSeries]:
    """
    Attach each requested channel's arrays (and its frame's time axis).

    A channel appears only if some frame holds it as a real column with at
    least one retained row; frames that merely backfilled it then contribute
    their null padding so every frame's share stays aligned with its time axis.
    """
    real: set[str] = set()
    for f in frames:
        if len(f) == 0:
            continue
        real.update(k for k in f.columns if k not in f.backfilled)

    out: dict[str, ChannelSeries] = {}
    for name in channels:
        if name not in real:
            continue
        series = ChannelSeries()
        for f in frames:
            if len(f) == 0 or name not in f.columns:
                continue
            series.time.extend(f.time)
            series.data.extend(f.columns[name])
        out[name] = series
    return out


class Aggregator:
    def __init__(
        self,
        config: EngineConfig,
        *,
        warehouse_factory: WarehouseFactory | None = None,
        database_opener: DatabaseOpener = open_sqlite,
        stats: FetchStats | None = None,
    ) -> None:
        self.config = config
        self.warehouse_factory = warehouse_factory
        self.database_opener = database_opener
        self.stats = stats if stats is not None else get_fetch_stats()

    def aggregate(self, request: TelemetryRequest, *, timeout_s: float | None = None) -> AggregatedResponse:
        """
        Fetch and merge telemetry for `request`.

        With a deadline (argument, else config), the work runs on a helper
        thread; on expiry the timeout response is returned and the in-flight
        work is abandoned, not cancelled.
        """
        for ch in request.channels:
            ident(ch)
        deadline = timeout_s if timeout_s is not None else self.config.timeout_s
        if deadline is None or float(deadline) <= 0:
            return self._run(request)

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tlmquery-request")
        fut = pool.submit(self._run, request)
        try:
            return fut.result(timeout=float(deadline))
        except FuturesTimeout:
            err = RequestTimeout(f"no response within {float(deadline):g}s")
            log.warning("aggregate.timeout", mode=request.mode, error=str(err))
            return AggregatedResponse.timeout()
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    # ---- phases ----
    def _run(self, request: TelemetryRequest) -> AggregatedResponse:
        t0 = time.time()
        errors: list[Err] = []
        if request.mode == "orbit":
            plans = self._plan_orbit(request)
        else:
            plans = self._plan_ground(request, errors)

        frames: list[ColumnarFrame] = []
        for res in self._fetch_all(request, plans):
            if isinstance(res, Ok):
                frames.append(res.value)
            else:
                errors.append(res)

        telemetry = merge_frames(request.channels, frames)
        success = any(len(s.time) > 0 for s in telemetry.values())
        response = AggregatedResponse(success=success, telemetry=telemetry, errors=unique_messages(errors))
        log.info(
            "aggregate.done",
            mode=request.mode,
            sources=len(plans),
            frames=len(frames),
            channels=len(telemetry),
            errors=len(response.errors),
            success=response.success,
            ms=int((time.time() - t0) * 1000),
        )
        return response

    def _plan_orbit(self, request: TelemetryRequest) -> list[QueryPlan]:
        source = describe_orbit_source(request, project=self.config.bigquery_project)
        plan = build_orbit_query(
            request,
            project=self.config.bigquery_project,
            obctime_initial=self.config.obctime_initial,
        )
        return [replace(plan, source=source.locators[0])]

    def _plan_ground(self, request: TelemetryRequest, errors: list[Err]) -> list[QueryPlan]:
        found = discover_ground_files(
            request,
            db_top_path=self.config.db_top_path,
            stored_suffix=self.config.stored_suffix,
            live_suffix=self.config.live_suffix,
        )
        if isinstance(found, Err):
            errors.append(found)
            return []

        paths = list(found.value.locators)
        channels = request.channels
        probed: dict[int, tuple[list[ColumnProbeResult], list[Err]]] = {}
        with ThreadPoolExecutor(max_workers=self._workers(len(paths)), thread_name_prefix="tlmquery-probe") as executor:
            future_map = {
                executor.submit(
                    probe_file,
                    path,
                    channels,
                    pattern=self.config.table_pattern,
                    opener=self.database_opener,
                ): i
                for i, path in enumerate(paths)
            }
            for fut in as_completed(future_map):
                i = future_map[fut]
                try:
                    probed[i] = fut.result()
                except Exception as e:
                    probed[i] = ([], [Err(SchemaProbeError(str(e)), source=paths[i])])

        plans: list[QueryPlan] = []
        for i, path in enumerate(paths):
            probes, probe_errors = probed[i]
            errors.extend(probe_errors)
            plan = build_ground_query(
                request,
                path,
                probes,
                time_column=self.config.ground_time_column,
                test_case_column=self.config.ground_test_case_column,
                stored_column=self.config.ground_stored_column,
            )
            if plan is None:
                log.debug("aggregate.no_channels_in_file", path=path)
                continue
            plans.append(plan)
        return plans

    def _fetch_all(self, request: TelemetryRequest, plans: Sequence[QueryPlan]) -> list[Result[ColumnarFrame]]:
        if not plans:
            return []
        executor = FetchExecutor(
            mode=request.mode,
            warehouse_factory=self.warehouse_factory,
            database_opener=self.database_opener,
        )
        results: dict[int, Result[ColumnarFrame]] = {}
        with ThreadPoolExecutor(max_workers=self._workers(len(plans)), thread_name_prefix="tlmquery-fetch") as pool:
            future_map = {pool.submit(self._fetch_one, executor, plan): i for i, plan in enumerate(plans)}
            for fut in as_completed(future_map):
                i = future_map[fut]
                try:
                    results[i] = fut.result()
                except Exception as e:
                    results[i] = Err(QueryExecutionError(str(e)), source=plans[i].source)
        return [results[i] for i in range(len(plans))]

    def _fetch_one(self, executor: FetchExecutor, plan: QueryPlan) -> Result[ColumnarFrame]:
        t0 = time.time()
        fetched = executor.execute(plan)
        if isinstance(fetched, Ok):
            res = transpose(fetched.value, plan.missing, mode=executor.mode)
            if isinstance(res, Err):
                res = Err(res.error, source=plan.source)
        else:
            res = fetched
        self.stats.observe(
            metric=f"fetch.{executor.mode}",
            latency_s=time.time() - t0,
            ok=isinstance(res, Ok),
            rows=len(res.value) if isinstance(res, Ok) else 0,
            error=res.message if isinstance(res, Err) else "",
        )
        return res

    def _workers(self, n: int) -> int:
        return max(1, min(int(self.config.max_workers), int(n)))
