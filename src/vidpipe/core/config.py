"""Configuration via environment variables, config.json, and .env files."""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vidpipe.core.constants import (
    CONFIG_FILE_PATH,
    DEFAULT_AUDIO_BITRATE,
    DEFAULT_CONCURRENCY,
    DEFAULT_CRF,
    DEFAULT_DB_PATH,
    DEFAULT_ENCODER_PATH,
    DEFAULT_OUTPUT_HEIGHT,
    DEFAULT_PRESET,
    DEFAULT_PROBE_TIMEOUT_SEC,
    DEFAULT_PROBER_PATH,
    DEFAULT_PUBLIC_URL_PREFIX,
    DEFAULT_STORAGE_ROOT,
    DEFAULT_THUMBNAIL_FRACTION,
    DEFAULT_THUMBNAIL_WIDTH,
    DEFAULT_TOOL_TIMEOUT_SEC,
    MAX_ERROR_MESSAGE_LENGTH,
    MAX_UPLOAD_BYTES,
    MIN_ERROR_MESSAGE_LENGTH,
)

# Keys that may be supplied through config.json
_FILE_KEYS = (
    "encoder_path",
    "prober_path",
    "concurrency",
    "output_profile",
    "tool_timeout_sec",
    "probe_timeout_sec",
    "db_path",
    "storage_root",
    "public_url_prefix",
    "log_level",
)


class OutputProfile(BaseModel):
    """The single web-delivery encoding profile."""

    height: int = Field(default=DEFAULT_OUTPUT_HEIGHT, gt=0)
    crf: int = Field(default=DEFAULT_CRF, ge=0, le=51)
    preset: str = Field(default=DEFAULT_PRESET)
    audio_bitrate: str = Field(default=DEFAULT_AUDIO_BITRATE)
    thumbnail_width: int = Field(default=DEFAULT_THUMBNAIL_WIDTH, gt=0)
    thumbnail_fraction: float = Field(default=DEFAULT_THUMBNAIL_FRACTION, ge=0.0, lt=1.0)


def _load_config_file() -> dict:
    """Read ~/.config/vidpipe/config.json if it exists, return as dict."""
    if not CONFIG_FILE_PATH.exists():
        return {}
    try:
        return json.loads(CONFIG_FILE_PATH.read_text())
    except Exception:
        return {}


def save_config(data: dict) -> Path:
    """Write config dict to ~/.config/vidpipe/config.json. Returns the path."""
    CONFIG_FILE_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE_PATH.write_text(json.dumps(data, indent=2) + "\n")
    return CONFIG_FILE_PATH


class VidpipeConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="VIDPIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # External tools
    encoder_path: str = Field(default=DEFAULT_ENCODER_PATH)
    prober_path: str = Field(default=DEFAULT_PROBER_PATH)
    tool_timeout_sec: float = Field(default=DEFAULT_TOOL_TIMEOUT_SEC, gt=0)
    probe_timeout_sec: float = Field(default=DEFAULT_PROBE_TIMEOUT_SEC, gt=0)

    # Worker pool
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)

    # Encoding
    output_profile: OutputProfile = Field(default_factory=OutputProfile)

    # Storage
    db_path: Path = Field(default=DEFAULT_DB_PATH)
    storage_root: Path = Field(default=DEFAULT_STORAGE_ROOT)
    public_url_prefix: str = Field(default=DEFAULT_PUBLIC_URL_PREFIX)

    # Limits
    max_error_length: int = Field(default=MAX_ERROR_MESSAGE_LENGTH, ge=MIN_ERROR_MESSAGE_LENGTH)
    max_upload_bytes: int = Field(default=MAX_UPLOAD_BYTES, gt=0)

    log_level: str = Field(default="INFO")


def get_config(db_path: Path | None = None, storage_root: Path | None = None) -> VidpipeConfig:
    """Create config with priority: env vars > config.json > defaults."""
    file_data = _load_config_file()

    # pydantic treats __init__ kwargs as highest priority, so only pass
    # config.json values whose env var is unset
    init_kwargs: dict = {}
    for key in _FILE_KEYS:
        env_name = f"VIDPIPE_{key.upper()}"
        if key not in file_data:
            continue
        if env_name in os.environ:
            continue
        if key == "output_profile" and any(k.startswith(f"{env_name}__") for k in os.environ):
            continue
        init_kwargs[key] = file_data[key]

    config = VidpipeConfig(**init_kwargs)

    if db_path is not None:
        config.db_path = db_path
    if storage_root is not None:
        config.storage_root = storage_root
    return config
