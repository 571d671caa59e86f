"""Default paths, encoding profile values and pipeline constants."""

from pathlib import Path

# Paths
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "vidpipe"
DEFAULT_DB_PATH = DEFAULT_CONFIG_DIR / "vidpipe.db"
DEFAULT_STORAGE_ROOT = DEFAULT_CONFIG_DIR / "uploads"
DEFAULT_PUBLIC_URL_PREFIX = "/api/uploads"

# Config file
CONFIG_FILE_PATH = DEFAULT_CONFIG_DIR / "config.json"

# External tools
DEFAULT_ENCODER_PATH = "ffmpeg"
DEFAULT_PROBER_PATH = "ffprobe"
DEFAULT_TOOL_TIMEOUT_SEC = 60 * 60
DEFAULT_PROBE_TIMEOUT_SEC = 30

# Worker pool
DEFAULT_CONCURRENCY = 2

# Web delivery profile (H.264 + AAC, 720p, faststart)
DEFAULT_OUTPUT_HEIGHT = 720
DEFAULT_CRF = 23
DEFAULT_PRESET = "medium"
DEFAULT_AUDIO_BITRATE = "128k"
DEFAULT_THUMBNAIL_WIDTH = 1280
DEFAULT_THUMBNAIL_FRACTION = 0.25

# Blob store namespaces
RAW_NAMESPACE = "raw"
PROCESSED_NAMESPACE = "processed"
THUMBNAIL_NAMESPACE = "thumbnails"

# Pipeline progress checkpoints
PROGRESS_TRANSCODING = 10
PROGRESS_THUMBNAIL = 70
PROGRESS_PROBING_OUTPUT = 85
PROGRESS_DONE = 100

MAX_ERROR_MESSAGE_LENGTH = 2000
MIN_ERROR_MESSAGE_LENGTH = 32

# Uploads
MAX_UPLOAD_BYTES = 2 * 1024 * 1024 * 1024  # 2GB
SLUG_SUFFIX_LENGTH = 6

# Admin listing
DEFAULT_PAGE_SIZE = 20

# Video extensions accepted for upload
VIDEO_EXTENSIONS = {
    ".mp4", ".mkv", ".avi", ".mov", ".webm", ".flv",
    ".wmv", ".m4v", ".mpg", ".mpeg", ".3gp", ".ts",
}
