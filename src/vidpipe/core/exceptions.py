"""Exception hierarchy for vidpipe."""


class VidpipeError(Exception):
    """Base exception for all vidpipe errors."""


class FFmpegError(VidpipeError):
    """FFmpeg/ffprobe command failed."""

    def __init__(self, message: str, cmd: str | None = None, returncode: int | None = None):
        self.cmd = cmd
        self.returncode = returncode
        super().__init__(message)


class ProbeError(FFmpegError):
    """Input unreadable, not a media container, or missing video stream info."""


class TranscodeError(FFmpegError):
    """Encoder exited non-zero, crashed, or timed out."""


class InvalidTransition(VidpipeError):
    """Illegal job status change (e.g. retrying a job that is not FAILED)."""


InvalidState = InvalidTransition


class NotFound(VidpipeError):
    """Referenced record does not exist."""


class VideoNotFoundError(NotFound):
    """Video ID not found in database."""


class JobNotFoundError(NotFound):
    """Processing job ID not found in database."""


class DatabaseError(VidpipeError):
    """Database operation failed."""


class StorageError(VidpipeError):
    """Blob store operation failed."""


class UploadRejected(VidpipeError):
    """Uploaded file failed validation (extension, size)."""
