"""
Physical source resolution.

Ground test runs live under `<top>/../<groundTestPath>/<test case>/.../<YYYY-MM-DD>/`
with one `*_All_Telemetry.db` (live) and/or `*_All_Telemetry_stored.db`
(stored playback) file per run.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from tlmquery.errors import DiscoveryError
from tlmquery.models import Err, Ok, Result, SourceDescriptor, TelemetryRequest
from tlmquery.query.synth import orbit_dataset_path
from tlmquery.util.time import format_date, iter_days

log = structlog.get_logger()

STORED_SUFFIX = "_All_Telemetry_stored.db"
LIVE_SUFFIX = "_All_Telemetry.db"


def ground_root(db_top_path: str | Path, ground_test_path: str) -> Path:
    """Ground test folders sit next to the configured db top path."""
    return Path(db_top_path).parent / str(ground_test_path)


def _unique(paths: list[Path]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for p in paths:
        s = str(p)
        if s not in seen:
            seen.add(s)
            out.append(s)
    return out


def discover_ground_files(
    request: TelemetryRequest,
    *,
    db_top_path: str | Path,
    stored_suffix: str = STORED_SUFFIX,
    live_suffix: str = LIVE_SUFFIX,
) -> Result[SourceDescriptor]:
    """
    List test-run files for a ground request.

    Test-case mode globs each test-case folder; date mode keeps only the local
    calendar days that appear in some file path and globs their day folders.
    """
    root = ground_root(db_top_path, request.ground_test_path)
    suffix = stored_suffix if request.stored else live_suffix
    found: list[Path] = []

    if request.use_test_cases:
        for tc in request.test_cases:
            if Path(tc).name != tc or tc in {".", ".."}:
                log.warning("discovery.test_case_skipped", test_case=tc)
                continue
            found.extend(sorted((root / tc).glob(f"**/*{suffix}")))
    else:
        if request.date_range is None:
            raise ValueError("Date-range discovery needs a date range.")
        all_dbs = [p.as_posix() for p in root.glob("**/*.db")]
        days = [
            format_date(d, utc=False)
            for d in iter_days(request.date_range.start, request.date_range.end)
        ]
        days = [d for d in days if any(d in p for p in all_dbs)]
        for day in days:
            found.extend(sorted(root.glob(f"**/{day}/*{suffix}")))

    paths = _unique(found)
    log.info("discovery.ground", root=str(root), stored=request.stored, files=len(paths))
    if not paths:
        return Err(DiscoveryError("No telemetry database found"), source=str(root))
    return Ok(SourceDescriptor(mode="ground", locators=tuple(paths), stored=request.stored))


def describe_orbit_source(request: TelemetryRequest, *, project: str = "") -> SourceDescriptor:
    return SourceDescriptor(
        mode="orbit",
        locators=(orbit_dataset_path(request.orbit_dataset, project=project),),
        stored=request.stored,
    )
