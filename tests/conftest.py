"""Shared fixtures: temp database, local blob store and fake media tools."""

from __future__ import annotations

import threading
import uuid
from pathlib import Path

import pytest

from vidpipe.core.exceptions import StorageError
from vidpipe.db.models import JobRecord, VideoRecord, VideoStatus
from vidpipe.db.repository import Repository
from vidpipe.pipeline.ffmpeg import MediaInfo
from vidpipe.pipeline.ledger import JobLedger
from vidpipe.pipeline.orchestrator import Orchestrator
from vidpipe.storage.local import LocalBlobStore

SOURCE_1080P = MediaInfo(duration_sec=30, width=1920, height=1080)
OUTPUT_720P = MediaInfo(duration_sec=30, width=1280, height=720)


class FakeProber:
    """Returns (or raises) queued results in call order, then repeats the last."""

    def __init__(self, *results):
        self.results = list(results) or [SOURCE_1080P, OUTPUT_720P]
        self.calls: list[Path] = []
        self._lock = threading.Lock()

    def probe(self, path: Path) -> MediaInfo:
        with self._lock:
            self.calls.append(path)
            result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeTranscoder:
    def __init__(self, transcode_error: Exception | None = None, thumbnail_error: Exception | None = None):
        self.transcode_error = transcode_error
        self.thumbnail_error = thumbnail_error
        self.transcoded: list[tuple[Path, Path]] = []
        self.thumbnails: list[tuple[Path, Path, float | None]] = []

    def transcode(self, input_path: Path, output_path: Path) -> None:
        self.transcoded.append((input_path, output_path))
        if self.transcode_error:
            raise self.transcode_error
        output_path.write_bytes(b"mp4:" + input_path.read_bytes())

    def extract_thumbnail(self, input_path, output_path, at_fraction=None, duration_sec=None) -> None:
        self.thumbnails.append((input_path, output_path, duration_sec))
        if self.thumbnail_error:
            raise self.thumbnail_error
        output_path.write_bytes(b"\xff\xd8\xff\xe0jpeg")


class ThumbnailWriteFailingStore(LocalBlobStore):
    """Simulates an I/O error when the thumbnail is written to the store."""

    def write_file(self, path: Path, key: str) -> str:
        if key.startswith("thumbnails/"):
            raise StorageError(f"Failed to store {path} as {key}: [Errno 5] Input/output error")
        return super().write_file(path, key)


class RecordingLedger(JobLedger):
    """Ledger that remembers every progress value written per job."""

    def __init__(self, repo: Repository):
        super().__init__(repo)
        self.progress: dict[str, list[int]] = {}
        self._lock = threading.Lock()

    def set_progress(self, job_id: str, percent: int) -> None:
        super().set_progress(job_id, percent)
        with self._lock:
            self.progress.setdefault(job_id, []).append(self.get(job_id).progress)


@pytest.fixture()
def repo(tmp_path: Path) -> Repository:
    repo = Repository(tmp_path / "test.db")
    yield repo
    repo.close()


@pytest.fixture()
def store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "uploads")


@pytest.fixture()
def make_video(repo: Repository, store: LocalBlobStore):
    """Create a stored raw file, a PROCESSING video and a QUEUED job."""

    def _make(raw_name: str = "abc123-myvideo.mov", *, with_job: bool = True, **overrides):
        locator = store.write(b"raw-bytes-" + raw_name.encode(), f"raw/{raw_name}")
        video_id = str(uuid.uuid4())
        fields = dict(
            id=video_id,
            creator_id="creator-1",
            title="My video",
            slug=f"my-video-{video_id[:6]}",
            raw_locator=locator,
            media_locator=locator,
            status=VideoStatus.PROCESSING,
        )
        fields.update(overrides)
        repo.insert_video(VideoRecord(**fields))
        job_id = None
        if with_job:
            job_id = str(uuid.uuid4())
            repo.insert_job(JobRecord(id=job_id, video_id=video_id))
        return video_id, job_id

    return _make


@pytest.fixture()
def make_orchestrator(repo: Repository, store: LocalBlobStore):
    def _make(prober=None, transcoder=None, *, blob_store=None, ledger=None, **kwargs) -> Orchestrator:
        return Orchestrator(
            repo,
            blob_store or store,
            prober or FakeProber(),
            transcoder or FakeTranscoder(),
            ledger=ledger,
            **kwargs,
        )

    return _make
