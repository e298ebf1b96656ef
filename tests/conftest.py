from __future__ import annotations

import sqlite3
import threading
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Mapping

import pytest

from tlmquery.config import EngineConfig
from tlmquery.models import DateRange, TelemetryGroup, TelemetryRequest
from tlmquery.util.observability import FetchStats

GROUND_COLUMNS_BASE = ["DATE", "TEST_CASE", "IS_STORED"]


def make_ground_db(path: Path, tables: Mapping[str, tuple[list[str], list[tuple[Any, ...]]]]) -> Path:
    """Create a test-run SQLite file with the given {table: (columns, rows)}."""
    path.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(str(path))
    try:
        for name, (columns, rows) in tables.items():
            cols = ", ".join(columns)
            con.execute(f"CREATE TABLE {name} ({cols})")
            if rows:
                marks = ", ".join("?" for _ in columns)
                con.executemany(f"INSERT INTO {name} VALUES ({marks})", rows)
        con.commit()
    finally:
        con.close()
    return path


def power_rows(day: str, test_case: str = "510_FlatSat", stored: int = 0) -> list[tuple[Any, ...]]:
    return [
        (f"{day} 00:00:00", test_case, stored, 28.1, 1.5),
        (f"{day} 00:00:01", test_case, stored, 28.2, 1.4),
        (f"{day} 00:00:02", test_case, stored, 28.3, None),
    ]


class FakeWarehouse:
    """In-process stand-in for the warehouse client."""

    def __init__(self, rows: Iterable[Mapping[str, Any]] = (), *, error: Exception | None = None, gate: threading.Event | None = None) -> None:
        self.rows = [dict(r) for r in rows]
        self.error = error
        self.gate = gate
        self.queries: list[str] = []
        self.closed = 0

    def query(self, text: str) -> list[dict[str, Any]]:
        self.queries.append(text)
        if self.gate is not None:
            self.gate.wait(5.0)
        if self.error is not None:
            raise self.error
        return [dict(r) for r in self.rows]

    def close(self) -> None:
        self.closed += 1


@pytest.fixture()
def ground_tree(tmp_path: Path) -> dict[str, Any]:
    """
    Two test runs on 2022-05-18 / 2022-05-19 under <tmp>/ground, db top path <tmp>/db.

    Run 1 has V, I in table_power and T1 in table_thermal; run 2 only has V.
    """
    root = tmp_path / "ground"
    f1 = make_ground_db(
        root / "510_FlatSat" / "run1" / "2022-05-18" / "DSX0201_All_Telemetry.db",
        {
            "table_power": (GROUND_COLUMNS_BASE + ["V", "I"], power_rows("2022-05-18")),
            "table_thermal": (
                GROUND_COLUMNS_BASE + ["T1"],
                [
                    ("2022-05-18 00:00:00", "510_FlatSat", 0, 20.5),
                    ("2022-05-18 00:00:02", "510_FlatSat", 0, 20.7),
                ],
            ),
        },
    )
    f2 = make_ground_db(
        root / "511_Hankan_Test" / "run2" / "2022-05-19" / "DSX0201_All_Telemetry.db",
        {
            "table_power": (
                GROUND_COLUMNS_BASE + ["V"],
                [
                    ("2022-05-19 10:00:00", "511_Hankan_Test", 0, 27.9),
                    ("2022-05-19 10:00:01", "511_Hankan_Test", 0, 27.8),
                ],
            ),
        },
    )
    return {"root": root, "db_top_path": str(tmp_path / "db"), "files": [str(f1), str(f2)]}


@pytest.fixture()
def engine_config(ground_tree: dict[str, Any]) -> EngineConfig:
    return EngineConfig(bigquery_project="proj", db_top_path=ground_tree["db_top_path"], max_workers=4)


@pytest.fixture()
def stats() -> FetchStats:
    return FetchStats()


def _ground_request(channels: list[str], **kwargs: Any) -> TelemetryRequest:
    params: dict[str, Any] = {
        "project": "DSX0201",
        "mode": "ground",
        "groups": (TelemetryGroup(table_id=0, channels=tuple(channels)),),
        "stored": False,
        "use_test_cases": False,
        "date_range": DateRange.of(date(2022, 5, 18), date(2022, 5, 19)),
        "ground_test_path": "ground",
    }
    params.update(kwargs)
    return TelemetryRequest(**params)


def _orbit_request(groups: list[tuple[int, list[str]]], **kwargs: Any) -> TelemetryRequest:
    params: dict[str, Any] = {
        "project": "DSX0201",
        "mode": "orbit",
        "groups": tuple(TelemetryGroup(table_id=tid, channels=tuple(chs)) for tid, chs in groups),
        "stored": False,
        "date_range": DateRange.of(date(2022, 4, 28), date(2022, 4, 28)),
        "orbit_dataset": "strix_b_telemetry_v_6_17",
    }
    params.update(kwargs)
    return TelemetryRequest(**params)


@pytest.fixture()
def ground_request():
    return _ground_request


@pytest.fixture()
def orbit_request():
    return _orbit_request


@pytest.fixture()
def fake_warehouse():
    return FakeWarehouse


@pytest.fixture()
def ground_db():
    return make_ground_db
