from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from tlmquery.cli import main


def _settings(base: Path) -> Path:
    base.mkdir(parents=True, exist_ok=True)
    (base / "pj-settings.json").write_text(
        json.dumps({"project": [{"pjName": "DSX0201", "groundTestPath": "ground", "orbitDatasetPath": "strix_b"}]}),
        encoding="utf-8",
    )
    return base


def test_cli_help() -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "fetch" in result.output


def test_fetch_ground_prints_summary_and_writes_json(ground_tree, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("TLMQUERY_DB_TOP_PATH", ground_tree["db_top_path"])
    settings = _settings(tmp_path / "settings")
    out = tmp_path / "out" / "resp.json"
    runner = CliRunner()
    result = runner.invoke(
        main,
        [
            "fetch",
            "--project", "DSX0201",
            "--mode", "ground",
            "--start", "2022-05-18",
            "--end", "2022-05-19",
            "--channel", "V",
            "--channel", "X",
            "--settings-dir", str(settings),
            "--json-out", str(out),
        ],
    )
    assert result.exit_code == 0, result.output
    summary = json.loads(result.stdout)
    assert summary == {"success": True, "points": {"V": 5}, "errors": []}
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["success"] is True
    assert len(payload["telemetry"]["V"]["data"]) == 5


def test_fetch_ground_nothing_found_exits_nonzero(ground_tree, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("TLMQUERY_DB_TOP_PATH", ground_tree["db_top_path"])
    settings = _settings(tmp_path / "settings")
    result = CliRunner().invoke(
        main,
        ["fetch", "--project", "DSX0201", "--mode", "ground", "--start", "2020-01-01", "--channel", "V", "--settings-dir", str(settings)],
    )
    assert result.exit_code == 1
    assert "No telemetry database found" in result.stdout


def test_fetch_unknown_project(tmp_path: Path) -> None:
    settings = _settings(tmp_path / "settings")
    result = CliRunner().invoke(
        main,
        ["fetch", "--project", "DSX0999", "--mode", "ground", "--start", "2022-05-18", "--channel", "V", "--settings-dir", str(settings)],
    )
    assert result.exit_code != 0
    assert "Unknown project" in result.output


def test_fetch_rejects_bad_channel_name(tmp_path: Path) -> None:
    settings = _settings(tmp_path / "settings")
    result = CliRunner().invoke(
        main,
        ["fetch", "--project", "DSX0201", "--mode", "ground", "--start", "2022-05-18", "--channel", "V; DROP", "--settings-dir", str(settings)],
    )
    assert result.exit_code == 1
    assert "Invalid SQL identifier" in result.output
    assert isinstance(result.exception, SystemExit)
