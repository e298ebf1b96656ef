"""
Project settings: which dataset and ground folder belong to a project, and
which warehouse table id carries each telemetry channel.

Layout under the settings directory:
    pj-settings.json            {"project": [{"pjName", "groundTestPath", "orbitDatasetPath"}, ...]}
    <pjName>/tlm_id.json        {"<channel>": <table id>, ...}
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

import structlog

from tlmquery.errors import SettingsError
from tlmquery.json_io import read_json
from tlmquery.models import TelemetryGroup

log = structlog.get_logger()

PROJECT_SETTINGS_FILE = "pj-settings.json"
TLM_ID_FILE = "tlm_id.json"

_PJ_NAME_RE = re.compile(r"^DSX[0-9]{4}")

# Shared drives show up under a localized name on some machines.
DRIVE_ALIASES = ("共有ドライブ", "Shared drives")


@dataclass(frozen=True)
class ProjectSettings:
    name: str
    ground_test_path: str
    orbit_dataset_path: str
    tlm_ids: dict[str, int] = field(default_factory=dict)


def resolve_path(path: str | Path, alias_a: str = DRIVE_ALIASES[0], alias_b: str = DRIVE_ALIASES[1]) -> Path | None:
    """Return `path` if it exists, else the same path with the two aliases swapped, else None."""
    p = str(path)
    if Path(p).exists():
        return Path(p)
    for src, dst in ((alias_a, alias_b), (alias_b, alias_a)):
        if src in p:
            candidate = Path(p.replace(src, dst))
            if candidate.exists():
                return candidate
    return None


def _parse_project(raw: Any) -> ProjectSettings:
    if not isinstance(raw, Mapping):
        raise SettingsError(f"Project entry must be an object, got {type(raw).__name__}")
    try:
        name = raw["pjName"]
        ground = raw["groundTestPath"]
        orbit = raw["orbitDatasetPath"]
    except KeyError as e:
        raise SettingsError(f"Project entry is missing {e.args[0]!r}") from e
    if not isinstance(name, str) or not _PJ_NAME_RE.match(name):
        raise SettingsError(f"Invalid pjName: {name!r}")
    if not isinstance(ground, str) or not isinstance(orbit, str):
        raise SettingsError(f"groundTestPath/orbitDatasetPath must be strings for {name}")
    return ProjectSettings(name=name, ground_test_path=ground, orbit_dataset_path=orbit)


def _parse_tlm_ids(raw: Any, *, project: str) -> dict[str, int]:
    if not isinstance(raw, Mapping):
        raise SettingsError(f"{TLM_ID_FILE} for {project} must be an object")
    out: dict[str, int] = {}
    for k, v in raw.items():
        if isinstance(v, bool) or not isinstance(v, (int, float)) or int(v) != v:
            raise SettingsError(f"{TLM_ID_FILE} for {project}: table id for {k!r} must be an integer")
        out[str(k)] = int(v)
    return out


def load_project_settings(settings_dir: str | Path) -> list[ProjectSettings]:
    """Read every project from the settings directory, with their channel→table maps when present."""
    base = resolve_path(settings_dir)
    if base is None:
        raise SettingsError(f"Settings directory not found: {settings_dir}")
    pj_file = base / PROJECT_SETTINGS_FILE
    try:
        payload = read_json(pj_file)
    except FileNotFoundError as e:
        raise SettingsError(f"Missing {pj_file}") from e
    except ValueError as e:
        raise SettingsError(f"Invalid JSON in {pj_file}: {e}") from e
    if not isinstance(payload, Mapping) or not isinstance(payload.get("project"), list):
        raise SettingsError(f"{pj_file} must hold an object with a 'project' list")

    projects: list[ProjectSettings] = []
    for raw in payload["project"]:
        pj = _parse_project(raw)
        tlm_file = base / pj.name / TLM_ID_FILE
        tlm_ids: dict[str, int] = {}
        if tlm_file.exists():
            try:
                tlm_ids = _parse_tlm_ids(read_json(tlm_file), project=pj.name)
            except ValueError as e:
                raise SettingsError(f"Invalid JSON in {tlm_file}: {e}") from e
        else:
            log.debug("settings.no_tlm_ids", project=pj.name, path=str(tlm_file))
        projects.append(
            ProjectSettings(
                name=pj.name,
                ground_test_path=pj.ground_test_path,
                orbit_dataset_path=pj.orbit_dataset_path,
                tlm_ids=tlm_ids,
            )
        )
    return projects


def get_project(settings_dir: str | Path, name: str) -> ProjectSettings:
    for pj in load_project_settings(settings_dir):
        if pj.name == name:
            return pj
    raise SettingsError(f"Unknown project: {name}")


def group_channels(channels: Iterable[str], tlm_ids: Mapping[str, int]) -> tuple[TelemetryGroup, ...]:
    """
    Group channel names by warehouse table id.

    Groups are ordered by first appearance of their table; duplicate channel
    names collapse to one.
    """
    grouped: dict[int, list[str]] = {}
    unknown: list[str] = []
    for ch in channels:
        tid = tlm_ids.get(ch)
        if tid is None:
            unknown.append(ch)
            continue
        bucket = grouped.setdefault(int(tid), [])
        if ch not in bucket:
            bucket.append(ch)
    if unknown:
        raise SettingsError(f"No table id for channel(s): {', '.join(unknown)}")
    return tuple(TelemetryGroup(table_id=tid, channels=tuple(chs)) for tid, chs in grouped.items())
