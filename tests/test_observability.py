from __future__ import annotations

import pytest

from tlmquery.util.observability import FetchStats, get_fetch_stats


def test_fetch_stats_snapshot() -> None:
    s = FetchStats()
    s.observe(metric="fetch.ground", latency_s=0.010, ok=True, rows=3)
    s.observe(metric="fetch.ground", latency_s=0.030, ok=False, error="f.db: boom")
    snap = s.snapshot()["fetch.ground"]
    assert snap["count"] == 2
    assert snap["error_count"] == 1
    assert snap["error_rate"] == 0.5
    assert snap["rows"] == 3
    assert snap["last_error"] == "f.db: boom"
    assert snap["max_ms"] == pytest.approx(30.0)
    assert 10.0 <= snap["p50_ms"] <= 30.0
    s.clear()
    assert s.snapshot() == {}


def test_global_stats_is_shared() -> None:
    assert get_fetch_stats() is get_fetch_stats()
