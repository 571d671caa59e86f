"""Filename sanitizing, slugs and deterministic output keys."""

from __future__ import annotations

import re
import uuid
from pathlib import PurePosixPath

from vidpipe.core.constants import (
    PROCESSED_NAMESPACE,
    RAW_NAMESPACE,
    SLUG_SUFFIX_LENGTH,
    THUMBNAIL_NAMESPACE,
)
from vidpipe.storage.base import join_key


def sanitize_filename(filename: str) -> str:
    """Lowercase, replace anything outside [a-z0-9._-] with hyphens."""
    name = re.sub(r"[^a-zA-Z0-9._-]", "-", filename)
    name = re.sub(r"-+", "-", name).strip("-")
    return name.lower()


def raw_key(filename: str) -> str:
    """Unique raw upload key: raw/<uuid>-<sanitized-filename>."""
    return join_key(RAW_NAMESPACE, f"{uuid.uuid4()}-{sanitize_filename(filename)}")


def output_keys(raw_locator: str) -> tuple[str, str]:
    """Processed video and thumbnail keys sharing the raw file's stem.

    >>> output_keys("raw/abc123-myvideo.mov")
    ('processed/abc123-myvideo.mp4', 'thumbnails/abc123-myvideo.jpg')
    """
    stem = PurePosixPath(raw_locator).stem
    return (
        join_key(PROCESSED_NAMESPACE, f"{stem}.mp4"),
        join_key(THUMBNAIL_NAMESPACE, f"{stem}.jpg"),
    )


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower())
    return slug.strip("-") or "video"


def generate_slug(title: str) -> str:
    """URL-safe slug with a short random suffix, e.g. ``my-trip-3fa9c1``."""
    suffix = uuid.uuid4().hex[:SLUG_SUFFIX_LENGTH]
    return f"{slugify(title)}-{suffix}"
