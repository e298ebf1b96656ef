from __future__ import annotations

from pathlib import Path

from tlmquery.config import EngineConfig, env_bool, env_float, env_int, get_timeout_s, make_engine_config_from_env


def test_env_getters_fall_back_on_bad_values(monkeypatch) -> None:
    monkeypatch.setenv("TLMQUERY_X_INT", "nope")
    monkeypatch.setenv("TLMQUERY_X_FLOAT", "2.5")
    monkeypatch.setenv("TLMQUERY_X_BOOL", "Yes")
    assert env_int("TLMQUERY_X_INT", 3) == 3
    assert env_float("TLMQUERY_X_FLOAT", 1.0) == 2.5
    assert env_bool("TLMQUERY_X_BOOL", False) is True
    assert env_bool("TLMQUERY_X_UNSET", True) is True


def test_timeout_disabled_when_not_positive(monkeypatch) -> None:
    monkeypatch.setenv("TLMQUERY_TIMEOUT_S", "0")
    assert get_timeout_s() is None
    monkeypatch.setenv("TLMQUERY_TIMEOUT_S", "12.5")
    assert get_timeout_s() == 12.5


def test_make_engine_config_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TLMQUERY_BIGQUERY_PROJECT", "proj")
    monkeypatch.setenv("TLMQUERY_DB_TOP_PATH", str(tmp_path / "db"))
    monkeypatch.setenv("TLMQUERY_MAX_WORKERS", "0")
    monkeypatch.delenv("TLMQUERY_TIMEOUT_S", raising=False)
    cfg = make_engine_config_from_env()
    assert cfg.bigquery_project == "proj"
    assert cfg.db_top_path == str(tmp_path / "db")
    assert cfg.max_workers == 1
    assert cfg.timeout_s is None
    assert cfg.obctime_initial == "2016-01-01 00:00:00 UTC"
    assert cfg.table_pattern == EngineConfig().table_pattern
