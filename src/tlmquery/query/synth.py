"""
Query synthesis for the two telemetry backends.

Orbit: one WITH query over the warehouse, one CTE per TelemetryGroup, joined on
raw on-board time. Ground: one WITH query per test-run file, one CTE per table
that carries at least one requested channel, joined on the table time column.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import structlog

from tlmquery.models import ColumnProbeResult, QueryPlan, TelemetryRequest
from tlmquery.query.builder import AllOf, AnyOf, Between, Compare, Cte, Join, Predicate, Query, Select, ident, table_path
from tlmquery.util.time import format_date

log = structlog.get_logger()

OBC_TIME = "OBCTimeUTC"
CALIBRATED_OBC_TIME = "CalibratedOBCTimeUTC"
STORED_COLUMN = "Stored"
DEFAULT_OBCTIME_INITIAL = "2016-01-01 00:00:00 UTC"

GROUND_TIME = "DATE"
GROUND_TEST_CASE = "TEST_CASE"
GROUND_STORED = "IS_STORED"

DAY_START = "00:00:00"
DAY_END = "23:59:59"


def orbit_dataset_path(dataset: str, *, project: str = "") -> str:
    """`dataset` may already be `project.dataset`; otherwise prefix the warehouse project."""
    ds = str(dataset or "").strip().strip("`")
    if "." in ds or not project:
        return ds
    return f"{project}.{ds}"


def _orbit_cte_name(table_id: int) -> str:
    return f"id{int(table_id)}"


def build_orbit_query(
    request: TelemetryRequest,
    *,
    project: str = "",
    obctime_initial: str = DEFAULT_OBCTIME_INITIAL,
) -> QueryPlan:
    if request.date_range is None:
        raise ValueError("Orbit queries need a date range.")
    dataset = orbit_dataset_path(request.orbit_dataset, project=project)
    start = format_date(request.date_range.start, DAY_START, utc=True)
    end = format_date(request.date_range.end, DAY_END, utc=True)

    ctes: list[Cte] = []
    columns: list[str] = []
    for group in request.groups:
        name = _orbit_cte_name(group.table_id)
        channels = [ident(c) for c in group.channels]
        where = AllOf(
            (
                Compare(CALIBRATED_OBC_TIME, ">", obctime_initial),
                Between(OBC_TIME, start, end),
                Compare(STORED_COLUMN, "=", bool(request.stored)),
            )
        )
        ctes.append(
            Cte(
                name=name,
                select=Select(
                    columns=(OBC_TIME, CALIBRATED_OBC_TIME, *channels),
                    source=table_path(f"{dataset}.tlm_id_{int(group.table_id)}"),
                    where=where,
                    order_by=OBC_TIME,
                    distinct=True,
                ),
            )
        )
        columns.append(f"{name}.{OBC_TIME} AS {name}_{OBC_TIME}")
        columns.append(f"{name}.{CALIBRATED_OBC_TIME} AS {name}_{CALIBRATED_OBC_TIME}")
        columns.extend(f"{name}.{c}" for c in channels)

    base = _orbit_cte_name(request.groups[0].table_id)
    joins = tuple(
        Join(
            kind="FULL JOIN",
            target=_orbit_cte_name(g.table_id),
            left=f"{base}.{OBC_TIME}",
            right=f"{_orbit_cte_name(g.table_id)}.{OBC_TIME}",
        )
        for g in request.groups[1:]
    )
    query = Query(ctes=tuple(ctes), select=Select(columns=tuple(columns), source=base, joins=joins))
    log.debug("synth.orbit", dataset=dataset, groups=len(request.groups), joins=len(joins))
    return QueryPlan(source=dataset, text=query.render())


def ground_filter(
    request: TelemetryRequest,
    *,
    time_column: str = GROUND_TIME,
    test_case_column: str = GROUND_TEST_CASE,
    stored_column: str = GROUND_STORED,
) -> Predicate:
    """Row filter for one ground table: test-case OR chain or date BETWEEN, plus the stored flag."""
    stored = Compare(ident(stored_column), "=", 1 if request.stored else 0)
    if request.use_test_cases:
        col = ident(test_case_column)
        selection: Predicate = AnyOf(tuple(Compare(col, "=", tc) for tc in request.test_cases))
    else:
        if request.date_range is None:
            raise ValueError("Ground date-range queries need a date range.")
        selection = Between(
            ident(time_column),
            format_date(request.date_range.start, DAY_START, utc=False),
            format_date(request.date_range.end, DAY_END, utc=False),
        )
    return AllOf((selection, stored))


def missing_channels(requested: Sequence[str], probes: Iterable[ColumnProbeResult]) -> tuple[str, ...]:
    """Requested channels that exist in no probed table, in request order."""
    present: set[str] = set()
    for p in probes:
        present.update(p.existing)
    return tuple(c for c in requested if c not in present)


def _ground_cte_name(table: str) -> str:
    return f"{ident(table)}_tlm"


def build_ground_query(
    request: TelemetryRequest,
    path: str,
    probes: Sequence[ColumnProbeResult],
    *,
    time_column: str = GROUND_TIME,
    test_case_column: str = GROUND_TEST_CASE,
    stored_column: str = GROUND_STORED,
) -> QueryPlan | None:
    """
    Build the joined query for one test-run file.

    Each channel is read from the first table that has it; tables left with
    no channel of their own do not take part. The first participating table is
    the canonical time axis. Returns None when no table carries any requested
    channel.
    """
    tcol = ident(time_column)
    claimed: set[str] = set()
    tables: list[tuple[ColumnProbeResult, list[str]]] = []
    for probe in probes:
        owned = [c for c in probe.existing if c not in claimed]
        if owned:
            claimed.update(owned)
            tables.append((probe, owned))
    if not tables:
        return None
    where = ground_filter(request, time_column=tcol, test_case_column=test_case_column, stored_column=stored_column)

    ctes: list[Cte] = []
    columns: list[str] = []
    for probe, owned in tables:
        name = _ground_cte_name(probe.table)
        channels = [ident(c) for c in owned]
        ctes.append(
            Cte(
                name=name,
                select=Select(
                    columns=(tcol, *channels),
                    source=ident(probe.table),
                    where=where,
                    order_by=tcol,
                    distinct=True,
                ),
            )
        )
        columns.append(f"{name}.{tcol} AS {ident(probe.table)}_{tcol}")
        columns.extend(f"{name}.{c}" for c in channels)

    base = _ground_cte_name(tables[0][0].table)
    joins = tuple(
        Join(
            kind="LEFT OUTER JOIN",
            target=_ground_cte_name(p.table),
            left=f"{base}.{tcol}",
            right=f"{_ground_cte_name(p.table)}.{tcol}",
        )
        for p, _ in tables[1:]
    )
    query = Query(ctes=tuple(ctes), select=Select(columns=tuple(columns), source=base, joins=joins))
    missing = missing_channels(request.channels, probes)
    log.debug("synth.ground", path=path, tables=len(tables), missing=len(missing))
    return QueryPlan(source=path, text=query.render(), missing=missing)
