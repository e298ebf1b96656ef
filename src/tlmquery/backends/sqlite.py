"""
Ground test-run files (SQLite) and the column prober.

Test-run files drift in schema across firmware versions, so requested channels
are checked per table before any query is synthesized.
"""

from __future__ import annotations

import re
import sqlite3
from pathlib import Path
from typing import Any, Sequence

import structlog

from tlmquery.backends import DatabaseOpener, FileDatabase
from tlmquery.errors import ColumnsNotFound, InvalidRequest, NoTablesFound, SchemaProbeError
from tlmquery.models import ColumnProbeResult, Err, Ok, Result
from tlmquery.query.builder import ident

log = structlog.get_logger()

DEFAULT_TABLE_PATTERN = r"^table"


class SqliteFile:
    """Read-only handle on one test-run database file."""

    def __init__(self, path: str | Path, *, timeout_s: float = 30.0) -> None:
        self.path = Path(path)
        if not self.path.is_file():
            raise FileNotFoundError(f"No such database file: {self.path}")
        uri = f"{self.path.resolve().as_uri()}?mode=ro"
        self._con = sqlite3.connect(uri, uri=True, timeout=float(timeout_s), check_same_thread=False)

    def all(self, query: str) -> list[dict[str, Any]]:
        cur = self._con.execute(query)
        try:
            names = [d[0] for d in (cur.description or ())]
            return [dict(zip(names, r)) for r in cur.fetchall()]
        finally:
            cur.close()

    def close(self) -> None:
        self._con.close()


def open_sqlite(path: str) -> FileDatabase:
    return SqliteFile(path)


def list_tables(
    path: str,
    *,
    pattern: str = DEFAULT_TABLE_PATTERN,
    opener: DatabaseOpener = open_sqlite,
) -> Result[list[str]]:
    """Telemetry tables in one file, filtered by `pattern`."""
    try:
        db = opener(path)
    except Exception as e:
        return Err(SchemaProbeError(str(e)), source=path)
    try:
        records = db.all("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    except Exception as e:
        return Err(SchemaProbeError(str(e)), source=path)
    finally:
        db.close()

    rx = re.compile(pattern)
    tables: list[str] = []
    for rec in records:
        name = str(rec.get("name") or "")
        if not rx.search(name):
            continue
        try:
            tables.append(ident(name))
        except InvalidRequest:
            log.warning("probe.table_name_skipped", path=path, table=name)
    if not tables:
        return Err(NoTablesFound("Not found table"), source=path)
    return Ok(tables)


def _table_columns(db: FileDatabase, table: str) -> list[str]:
    sample = db.all(f"SELECT * FROM {table} LIMIT 1")
    if sample:
        return [str(k) for k in sample[0].keys()]
    # Empty table: the sample has no row to read keys from.
    info = db.all(f"PRAGMA table_info({table})")
    return [str(r.get("name")) for r in info if r.get("name")]


def probe_columns(
    path: str,
    table: str,
    channels: Sequence[str],
    *,
    opener: DatabaseOpener = open_sqlite,
) -> Result[ColumnProbeResult]:
    """Split `channels` into those present as columns of `table` and those absent."""
    source = f"{path}::{table}"
    try:
        db = opener(path)
    except Exception as e:
        return Err(SchemaProbeError(str(e)), source=source)
    try:
        columns = _table_columns(db, ident(table))
    except Exception as e:
        return Err(SchemaProbeError(str(e)), source=source)
    finally:
        db.close()

    if not columns:
        return Err(ColumnsNotFound("Columns not found"), source=source)
    cols = set(columns)
    existing = tuple(c for c in channels if c in cols)
    missing = tuple(c for c in channels if c not in cols)
    return Ok(ColumnProbeResult(path=path, table=table, existing=existing, missing=missing))


def probe_file(
    path: str,
    channels: Sequence[str],
    *,
    pattern: str = DEFAULT_TABLE_PATTERN,
    opener: DatabaseOpener = open_sqlite,
) -> tuple[list[ColumnProbeResult], list[Err]]:
    """
    Probe every telemetry table of one file.

    Tables whose probe fails are reported and skipped; the rest proceed.
    """
    tables = list_tables(path, pattern=pattern, opener=opener)
    if isinstance(tables, Err):
        log.info("probe.no_tables", path=path, error=tables.message)
        return [], [tables]

    probes: list[ColumnProbeResult] = []
    errors: list[Err] = []
    for table in tables.value:
        res = probe_columns(path, table, channels, opener=opener)
        if isinstance(res, Ok):
            probes.append(res.value)
        else:
            log.info("probe.table_failed", path=path, table=table, error=res.message)
            errors.append(res)
    return probes, errors
