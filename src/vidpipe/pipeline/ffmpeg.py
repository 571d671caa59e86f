"""FFmpeg/ffprobe wrappers: media probing, web transcoding, thumbnails."""

from __future__ import annotations

import json
import logging
import math
import subprocess
from dataclasses import dataclass
from pathlib import Path

from vidpipe.core.config import OutputProfile, VidpipeConfig
from vidpipe.core.exceptions import FFmpegError, ProbeError, TranscodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaInfo:
    duration_sec: int
    width: int
    height: int

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


def _run(
    cmd: list[str],
    *,
    timeout: float,
    error_cls: type[FFmpegError],
    action: str,
) -> subprocess.CompletedProcess:
    """Run an external tool, mapping every failure mode onto ``error_cls``."""
    logger.debug("Running: %s", " ".join(cmd))
    try:
        return subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=timeout)
    except FileNotFoundError:
        raise error_cls(f"{cmd[0]} not found. Install ffmpeg or set its path in the config.", cmd=" ".join(cmd))
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or "").strip() or f"exit code {e.returncode}"
        raise error_cls(f"{action} failed: {detail}", cmd=" ".join(cmd), returncode=e.returncode)
    except subprocess.TimeoutExpired:
        raise error_cls(f"{action} timed out after {timeout:g}s", cmd=" ".join(cmd))


def _round_seconds(value: float) -> int:
    # Half-up, so 29.5s reports as 30
    return int(math.floor(value + 0.5))


def parse_probe_output(raw: str, path: Path) -> MediaInfo:
    """Turn ffprobe's JSON into MediaInfo, or raise ProbeError."""
    try:
        data = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise ProbeError(f"ffprobe returned invalid JSON for {path.name}: {e}")

    fmt = data.get("format", {})
    streams = data.get("streams", [])
    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    if not video_stream or not video_stream.get("width") or not video_stream.get("height"):
        raise ProbeError(f"Could not determine video resolution for {path.name}")

    duration = fmt.get("duration") or video_stream.get("duration")
    try:
        duration_sec = _round_seconds(float(duration))
    except (TypeError, ValueError):
        raise ProbeError(f"Could not determine duration for {path.name}")

    return MediaInfo(
        duration_sec=duration_sec,
        width=int(video_stream["width"]),
        height=int(video_stream["height"]),
    )


class Prober:
    """Extracts duration and frame size with ffprobe. Read-only."""

    def __init__(self, config: VidpipeConfig):
        self.prober_path = config.prober_path
        self.timeout = config.probe_timeout_sec

    def probe(self, path: Path) -> MediaInfo:
        cmd = [
            self.prober_path, "-v", "error",
            "-print_format", "json",
            "-show_format", "-show_streams",
            str(path),
        ]
        result = _run(cmd, timeout=self.timeout, error_cls=ProbeError, action="ffprobe")
        return parse_probe_output(result.stdout, path)


class Transcoder:
    """Encodes the single web-delivery rendition and grabs thumbnails.

    Only one output profile exists. A multi-rendition (ABR ladder) output
    would be added here.
    """

    def __init__(self, config: VidpipeConfig, prober: Prober | None = None):
        self.encoder_path = config.encoder_path
        self.timeout = config.tool_timeout_sec
        self.profile: OutputProfile = config.output_profile
        self.prober = prober or Prober(config)

    def transcode_command(self, input_path: Path, output_path: Path) -> list[str]:
        p = self.profile
        return [
            self.encoder_path, "-y",
            "-i", str(input_path),
            "-c:v", "libx264",
            "-preset", p.preset,
            "-crf", str(p.crf),
            "-vf", f"scale=-2:{p.height}",
            "-pix_fmt", "yuv420p",
            "-c:a", "aac",
            "-b:a", p.audio_bitrate,
            "-movflags", "+faststart",
            "-f", "mp4",
            str(output_path),
        ]

    def thumbnail_command(self, input_path: Path, output_path: Path, timestamp: float) -> list[str]:
        return [
            self.encoder_path, "-y",
            "-ss", f"{timestamp:.3f}",
            "-i", str(input_path),
            "-frames:v", "1",
            "-vf", f"scale={self.profile.thumbnail_width}:-2",
            "-q:v", "2",
            "-f", "image2",
            str(output_path),
        ]

    def transcode(self, input_path: Path, output_path: Path) -> None:
        """H.264/AAC MP4 scaled to the profile height, moov atom up front."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.transcode_command(input_path, output_path)
        _run(cmd, timeout=self.timeout, error_cls=TranscodeError, action="Transcoding")
        if not output_path.is_file():
            raise TranscodeError(f"Encoder produced no output at {output_path}", cmd=" ".join(cmd))

    def extract_thumbnail(
        self,
        input_path: Path,
        output_path: Path,
        at_fraction: float | None = None,
        duration_sec: float | None = None,
    ) -> None:
        """Single JPEG frame at ``at_fraction`` of the input's duration."""
        if at_fraction is None:
            at_fraction = self.profile.thumbnail_fraction
        if duration_sec is None:
            try:
                duration_sec = self.prober.probe(input_path).duration_sec
            except ProbeError as e:
                raise TranscodeError(f"Thumbnail extraction failed: {e}", cmd=e.cmd, returncode=e.returncode) from e

        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.thumbnail_command(input_path, output_path, max(duration_sec, 0) * at_fraction)
        _run(cmd, timeout=self.timeout, error_cls=TranscodeError, action="Thumbnail extraction")
        if not output_path.is_file():
            raise TranscodeError(f"Encoder produced no thumbnail at {output_path}", cmd=" ".join(cmd))
