"""Upload file discovery and validation."""

from __future__ import annotations

from pathlib import Path

from vidpipe.core.constants import MAX_UPLOAD_BYTES, VIDEO_EXTENSIONS
from vidpipe.core.exceptions import UploadRejected


def is_video_file(path: Path) -> bool:
    """Check if path points to a video file by extension."""
    return path.is_file() and path.suffix.lower() in VIDEO_EXTENSIONS


def discover_videos(path: Path) -> list[Path]:
    """Find all video files in a path (file or directory).

    If path is a file, returns [path] if it's a video.
    If path is a directory, recursively finds all videos.
    """
    if path.is_file():
        return [path] if is_video_file(path) else []
    if path.is_dir():
        return sorted(p for p in path.rglob("*") if is_video_file(p))
    return []


def validate_upload(path: Path, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
    """Reject missing files, unsupported extensions and oversized uploads."""
    if not path.is_file():
        raise UploadRejected(f"File not found: {path}")
    ext = path.suffix.lower()
    if ext not in VIDEO_EXTENSIONS:
        allowed = ", ".join(sorted(VIDEO_EXTENSIONS))
        raise UploadRejected(f"Invalid file extension {ext or '(none)'}. Allowed: {allowed}")
    size = path.stat().st_size
    if size > max_bytes:
        raise UploadRejected(
            f"File too large ({size} bytes). Maximum size is {max_bytes} bytes."
        )
    if size == 0:
        raise UploadRejected(f"File is empty: {path}")
