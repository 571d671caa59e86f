"""Caller-facing operations: upload, enqueue, retry, status, listing, delete."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from vidpipe.core.config import VidpipeConfig
from vidpipe.core.constants import DEFAULT_PAGE_SIZE, MAX_UPLOAD_BYTES
from vidpipe.core.exceptions import (
    DatabaseError,
    InvalidTransition,
    StorageError,
    VideoNotFoundError,
)
from vidpipe.db.models import (
    JobPage,
    JobRecord,
    JobStatus,
    JobStatusView,
    UploadResult,
    UploadStatus,
    VideoRecord,
    VideoStatus,
)
from vidpipe.db.repository import Repository
from vidpipe.pipeline.dispatcher import Dispatcher
from vidpipe.pipeline.ffmpeg import Prober, Transcoder
from vidpipe.pipeline.ledger import JobLedger
from vidpipe.pipeline.orchestrator import Orchestrator
from vidpipe.storage.base import BlobStore
from vidpipe.storage.local import LocalBlobStore
from vidpipe.utils.naming import generate_slug, raw_key
from vidpipe.utils.video import validate_upload

logger = logging.getLogger(__name__)

_SLUG_ATTEMPTS = 5


def _status_view(job: JobRecord) -> JobStatusView:
    return JobStatusView(
        job_id=job.id,
        video_id=job.video_id,
        status=job.status,
        progress=job.progress,
        error_message=job.error_message,
        completed_at=job.completed_at,
    )


def _normalize_tags(tags: list[str] | None) -> list[str]:
    seen: list[str] = []
    for tag in tags or []:
        name = tag.strip().lower()
        if name and name not in seen:
            seen.append(name)
    return seen


class ProcessingService:
    def __init__(
        self,
        repo: Repository,
        store: BlobStore,
        dispatcher: Dispatcher,
        *,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
    ):
        self.repo = repo
        self.store = store
        self.dispatcher = dispatcher
        self.ledger = JobLedger(repo)
        self.max_upload_bytes = max_upload_bytes

    # --- Pipeline entry points ---

    def enqueue(self, video_id: str) -> str:
        """Create a QUEUED job for the video and hand it to the dispatcher."""
        with self.repo.atomic():
            self.repo.get_video(video_id)
            active = self.repo.get_active_job(video_id)
            if active is not None:
                raise InvalidTransition(
                    f"Video {video_id} already has an active job ({active.id}, {active.status.value})"
                )
            job = self.repo.insert_job(JobRecord(id=str(uuid.uuid4()), video_id=video_id))
        self.dispatcher.submit(video_id, job.id)
        return job.id

    def retry(self, job_id: str) -> None:
        """Re-run a FAILED job from QUEUED; the video goes back to PROCESSING."""
        with self.repo.atomic():
            job = self.ledger.get(job_id)
            self.ledger.reset_for_retry(job_id)
            self.repo.set_video_status(job.video_id, VideoStatus.PROCESSING)
        logger.info("Retrying job %s for video %s", job_id, job.video_id)
        if not self.dispatcher.submit(job.video_id, job_id):
            logger.info("Job %s already has a run queued; it will pick up the retry", job_id)

    def get_status(self, job_id: str) -> JobStatusView:
        return _status_view(self.ledger.get(job_id))

    # --- Upload flow ---

    def create_upload(
        self,
        source: Path,
        title: str,
        *,
        creator_id: str,
        description: str | None = None,
        category_id: str | None = None,
        tags: list[str] | None = None,
    ) -> UploadResult:
        """Store a raw upload, create its Video (PROCESSING) and start a job."""
        validate_upload(source, self.max_upload_bytes)
        locator = self.store.write_file(source, raw_key(source.name))

        video = VideoRecord(
            id=str(uuid.uuid4()),
            creator_id=creator_id,
            title=title,
            slug=self._unique_slug(title),
            description=description,
            category_id=category_id,
            tags=_normalize_tags(tags),
            raw_locator=locator,
            media_locator=locator,
            status=VideoStatus.PROCESSING,
        )
        try:
            self.repo.insert_video(video)
        except DatabaseError:
            self.store.delete(locator)
            raise
        job_id = self.enqueue(video.id)
        logger.info("Upload %s stored as %s (video %s)", source.name, locator, video.id)
        return UploadResult(video_id=video.id, job_id=job_id, slug=video.slug)

    def _unique_slug(self, title: str) -> str:
        for _ in range(_SLUG_ATTEMPTS):
            slug = generate_slug(title)
            if not self.repo.slug_exists(slug):
                return slug
        raise DatabaseError(f"Could not generate a unique slug for {title!r}")

    def get_upload_status(self, video_id: str) -> UploadStatus:
        video = self.repo.get_video(video_id)
        job = self.repo.get_latest_job(video_id)
        return UploadStatus(
            video_id=video.id,
            title=video.title,
            slug=video.slug,
            status=video.status,
            thumbnail_url=video.thumbnail_url,
            processing_job=_status_view(job) if job else None,
        )

    # --- Admin ---

    def list_jobs(
        self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE, status: JobStatus | None = None
    ) -> JobPage:
        return self.repo.list_jobs(page=page, limit=limit, status=status)

    def delete_video(self, video_id: str) -> None:
        """Remove the video's blobs, jobs and record.

        A run still in flight notices the missing video when it finalizes.
        """
        video = self.repo.get_video(video_id)
        locators = {video.raw_locator, video.media_locator, video.thumbnail_locator}
        for locator in sorted(loc for loc in locators if loc):
            try:
                self.store.delete(locator)
            except StorageError:
                logger.warning("Could not delete blob %s of video %s", locator, video_id)
        self.repo.delete_video(video_id)
        logger.info("Deleted video %s", video_id)

    def close(self, wait: bool = True) -> None:
        self.dispatcher.shutdown(wait=wait)
        self.repo.close()


def build_service(config: VidpipeConfig) -> ProcessingService:
    """Wire repository, local blob store, ffmpeg tools and worker pool from config."""
    repo = Repository(config.db_path)
    store = LocalBlobStore(config.storage_root, config.public_url_prefix)
    prober = Prober(config)
    orchestrator = Orchestrator(
        repo,
        store,
        prober,
        Transcoder(config, prober),
        max_error_length=config.max_error_length,
    )
    dispatcher = Dispatcher(orchestrator.run, concurrency=config.concurrency)
    return ProcessingService(repo, store, dispatcher, max_upload_bytes=config.max_upload_bytes)
