"""Tests for the typer CLI surface (no ffmpeg required)."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from typer.testing import CliRunner

from vidpipe import __version__
from vidpipe.cli.app import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for key in list(os.environ):
        if key.startswith("VIDPIPE_"):
            monkeypatch.delenv(key, raising=False)
    cfg = tmp_path / "config" / "config.json"
    monkeypatch.setattr("vidpipe.core.config.CONFIG_FILE_PATH", cfg)
    monkeypatch.setenv("VIDPIPE_STORAGE_ROOT", str(tmp_path / "uploads"))
    monkeypatch.setenv("VIDPIPE_DB_PATH", str(tmp_path / "cli.db"))
    return cfg


def _json_line(output: str) -> dict:
    lines = [line for line in output.splitlines() if line.startswith("{")]
    assert lines, output
    return json.loads(lines[-1])


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert _json_line(result.stdout) == {"version": __version__, "package": "vidpipe"}


def test_jobs_on_empty_database() -> None:
    result = runner.invoke(app, ["jobs"])
    assert result.exit_code == 0
    page = _json_line(result.stdout)
    assert page["jobs"] == []
    assert page["total_count"] == 0
    assert page["summary"] == {"queued": 0, "processing": 0, "completed_today": 0, "failed_today": 0}


def test_status_of_unknown_job_exits_nonzero() -> None:
    result = runner.invoke(app, ["status", "does-not-exist"])
    assert result.exit_code == 1


def test_retry_of_unknown_job_exits_nonzero() -> None:
    result = runner.invoke(app, ["retry", "does-not-exist"])
    assert result.exit_code == 1


def test_upload_rejects_non_video(tmp_path: Path) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("not a video")

    result = runner.invoke(app, ["upload", str(notes), "--title", "Notes"])

    assert result.exit_code == 1
    payload = _json_line(result.stdout)
    assert payload["status"] == "error"
    assert "extension" in payload["error"]


def test_upload_empty_directory(tmp_path: Path) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()
    result = runner.invoke(app, ["upload", str(empty)])
    assert result.exit_code == 1


def test_config_set_and_show(isolated_config: Path) -> None:
    result = runner.invoke(app, ["config", "set", "concurrency", "4"])
    assert result.exit_code == 0
    assert json.loads(isolated_config.read_text())["concurrency"] == "4"

    shown = runner.invoke(app, ["config", "show"])
    assert shown.exit_code == 0
    assert _json_line(shown.stdout)["concurrency"] == 4


def test_config_set_rejects_invalid_value(isolated_config: Path) -> None:
    result = runner.invoke(app, ["config", "set", "concurrency", "0"])
    assert result.exit_code != 0
    assert not isolated_config.exists()


def test_config_set_rejects_unknown_key(isolated_config: Path) -> None:
    result = runner.invoke(app, ["config", "set", "provider", "openai"])
    assert result.exit_code != 0
    assert not isolated_config.exists()


def test_config_path_prints_db_path(tmp_path: Path) -> None:
    result = runner.invoke(app, ["config", "path"])
    assert result.exit_code == 0
    assert result.stdout.strip().splitlines()[-1] == str(tmp_path / "cli.db")
