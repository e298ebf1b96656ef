"""
Configuration: environment-backed settings for the CLI layer.

Loads configuration from:
1. Environment variables
2. .env file (if present, via python-dotenv)

The engine itself never reads the environment; the CLI builds an
`EngineConfig` here and injects it.

Usage:
    from tlmquery.config import make_engine_config_from_env

    cfg = make_engine_config_from_env()
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import structlog
from dotenv import load_dotenv

from tlmquery.backends.sqlite import DEFAULT_TABLE_PATTERN
from tlmquery.discovery import LIVE_SUFFIX, STORED_SUFFIX
from tlmquery.query.synth import DEFAULT_OBCTIME_INITIAL, GROUND_STORED, GROUND_TEST_CASE, GROUND_TIME

log = structlog.get_logger()

# Flag to track if config has been loaded
_config_loaded = False


@dataclass(frozen=True)
class EngineConfig:
    """Everything the aggregator needs, passed in explicitly."""

    bigquery_project: str = ""
    credentials_path: str = ""
    db_top_path: str = ""
    obctime_initial: str = DEFAULT_OBCTIME_INITIAL
    timeout_s: float | None = None
    max_workers: int = 8
    table_pattern: str = DEFAULT_TABLE_PATTERN
    ground_time_column: str = GROUND_TIME
    ground_test_case_column: str = GROUND_TEST_CASE
    ground_stored_column: str = GROUND_STORED
    stored_suffix: str = STORED_SUFFIX
    live_suffix: str = LIVE_SUFFIX


def find_dotenv() -> Path | None:
    """Find the .env file, searching up from current directory."""
    current = Path.cwd()
    for _ in range(10):  # Max 10 levels up
        env_file = current / ".env"
        if env_file.exists():
            return env_file
        if current.parent == current:
            break
        current = current.parent
    return None


def load_config() -> None:
    """
    Load configuration from .env file if present.

    Should be called once at CLI startup.
    """
    global _config_loaded
    if _config_loaded:
        return

    # Tests control the environment explicitly.
    if os.environ.get("PYTEST_CURRENT_TEST") or str(os.environ.get("TLMQUERY_DISABLE_DOTENV", "")).lower() in {"1", "true", "yes"}:
        log.debug("config.skip_dotenv", reason="pytest_or_disabled")
        _config_loaded = True
        return

    env_file = find_dotenv()
    if env_file:
        load_dotenv(env_file, override=False)
        log.debug("config.loaded_dotenv", path=str(env_file))
    else:
        log.debug("config.no_dotenv_found")

    _config_loaded = True


def get_env(key: str, default: str | None = None, required: bool = False) -> str | None:
    """Get an environment variable with optional default and required check."""
    value = os.environ.get(key, default)
    if required and not value:
        raise RuntimeError(
            f"Required environment variable {key} is not set. "
            f"Please set it in your .env file or environment."
        )
    return value


def env_int(key: str, default: int) -> int:
    """Read an integer environment variable with safe fallback."""
    load_config()
    try:
        return int(get_env(key, str(int(default))) or int(default))
    except Exception:
        return int(default)


def env_float(key: str, default: float) -> float:
    """Read a float environment variable with safe fallback."""
    load_config()
    try:
        return float(get_env(key, str(float(default))) or float(default))
    except Exception:
        return float(default)


def env_bool(key: str, default: bool) -> bool:
    """Read a boolean environment variable with common truthy values."""
    load_config()
    raw = str(get_env(key, "1" if default else "0") or "").strip().lower()
    return raw in {"1", "true", "yes", "on"}


# ---------------------------------------------------------------------------
# Warehouse / file locations
# ---------------------------------------------------------------------------


def get_bigquery_project() -> str:
    load_config()
    return str(get_env("TLMQUERY_BIGQUERY_PROJECT", "") or "")


def get_credentials_path() -> str:
    """Service-account key for the warehouse; empty means default credentials."""
    load_config()
    return str(get_env("TLMQUERY_CREDENTIALS_PATH", "") or "")


def get_db_top_path() -> Path:
    load_config()
    return Path(str(get_env("TLMQUERY_DB_TOP_PATH", "db") or "db"))


def get_settings_path() -> Path:
    load_config()
    return Path(str(get_env("TLMQUERY_SETTINGS_PATH", "settings") or "settings"))


def get_obctime_initial() -> str:
    load_config()
    return str(get_env("TLMQUERY_OBCTIME_INITIAL", DEFAULT_OBCTIME_INITIAL) or DEFAULT_OBCTIME_INITIAL)


def get_timeout_s() -> float | None:
    """Overall request deadline; 0 or negative disables it."""
    t = env_float("TLMQUERY_TIMEOUT_S", 0.0)
    return t if t > 0 else None


def get_max_workers() -> int:
    return max(1, env_int("TLMQUERY_MAX_WORKERS", 8))


def make_engine_config_from_env() -> EngineConfig:
    """
    Build EngineConfig from tlmquery env/config helpers.
    """
    return EngineConfig(
        bigquery_project=get_bigquery_project(),
        credentials_path=get_credentials_path(),
        db_top_path=str(get_db_top_path()),
        obctime_initial=get_obctime_initial(),
        timeout_s=get_timeout_s(),
        max_workers=get_max_workers(),
        table_pattern=str(get_env("TLMQUERY_TABLE_PATTERN", DEFAULT_TABLE_PATTERN) or DEFAULT_TABLE_PATTERN),
    )
