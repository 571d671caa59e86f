"""Tests for config loading: env vars > config.json > defaults."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from vidpipe.core.config import OutputProfile, _load_config_file, get_config, save_config
from vidpipe.core.constants import DEFAULT_DB_PATH, DEFAULT_STORAGE_ROOT


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in list(os.environ):
        if key.startswith("VIDPIPE_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


def _use_config_file(monkeypatch: pytest.MonkeyPatch, path: Path, data: dict | None = None) -> None:
    if data is not None:
        path.write_text(json.dumps(data))
    monkeypatch.setattr("vidpipe.core.config.CONFIG_FILE_PATH", path)


# ---------------------------------------------------------------------------
# save / load round-trip
# ---------------------------------------------------------------------------

def test_save_and_load_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    fake_config = tmp_path / "sub" / "config.json"
    _use_config_file(monkeypatch, fake_config)

    result = save_config({"concurrency": 4, "encoder_path": "/usr/local/bin/ffmpeg"})
    assert result == fake_config
    assert _load_config_file() == {"concurrency": 4, "encoder_path": "/usr/local/bin/ffmpeg"}


def test_load_config_file_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _use_config_file(monkeypatch, tmp_path / "nope.json")
    assert _load_config_file() == {}


def test_load_config_file_invalid_json(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    bad = tmp_path / "config.json"
    bad.write_text("not json {{{")
    _use_config_file(monkeypatch, bad)
    assert _load_config_file() == {}


# ---------------------------------------------------------------------------
# Priority: env vars > config.json > defaults
# ---------------------------------------------------------------------------

def test_defaults_without_config_file(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    _use_config_file(clean_env, tmp_path / "nope.json")

    config = get_config()
    assert config.encoder_path == "ffmpeg"
    assert config.prober_path == "ffprobe"
    assert config.concurrency == 2
    assert config.output_profile == OutputProfile()
    assert config.output_profile.height == 720
    assert config.output_profile.crf == 23
    assert config.db_path == DEFAULT_DB_PATH
    assert config.storage_root == DEFAULT_STORAGE_ROOT
    assert config.public_url_prefix == "/api/uploads"


def test_config_file_overrides_defaults(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    _use_config_file(clean_env, tmp_path / "config.json", {
        "concurrency": 3,
        "encoder_path": "/opt/ffmpeg/bin/ffmpeg",
        "output_profile": {"height": 480, "crf": 28},
        "public_url_prefix": "https://cdn.example.com/media",
    })

    config = get_config()
    assert config.concurrency == 3
    assert config.encoder_path == "/opt/ffmpeg/bin/ffmpeg"
    assert config.output_profile.height == 480
    assert config.output_profile.crf == 28
    # Unspecified profile fields keep their defaults
    assert config.output_profile.audio_bitrate == "128k"
    assert config.public_url_prefix == "https://cdn.example.com/media"


def test_env_var_overrides_config_file(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    _use_config_file(clean_env, tmp_path / "config.json", {
        "concurrency": 3,
        "prober_path": "/opt/ffmpeg/bin/ffprobe",
    })
    clean_env.setenv("VIDPIPE_CONCURRENCY", "6")

    config = get_config()
    # Env var wins
    assert config.concurrency == 6
    # Config file value still applies for non-overridden fields
    assert config.prober_path == "/opt/ffmpeg/bin/ffprobe"


def test_nested_env_var_for_output_profile(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    _use_config_file(clean_env, tmp_path / "config.json", {"output_profile": {"height": 480}})
    clean_env.setenv("VIDPIPE_OUTPUT_PROFILE__CRF", "30")

    config = get_config()
    assert config.output_profile.crf == 30


def test_invalid_concurrency_rejected(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    _use_config_file(clean_env, tmp_path / "config.json", {"concurrency": 0})
    with pytest.raises(ValueError):
        get_config()


def test_path_overrides(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    _use_config_file(clean_env, tmp_path / "nope.json")
    config = get_config(db_path=tmp_path / "x.db", storage_root=tmp_path / "blobs")
    assert config.db_path == tmp_path / "x.db"
    assert config.storage_root == tmp_path / "blobs"


def test_error_length_below_minimum_rejected(tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
    _use_config_file(clean_env, tmp_path / "nope.json")
    clean_env.setenv("VIDPIPE_MAX_ERROR_LENGTH", "2")
    with pytest.raises(ValueError):
        get_config()
