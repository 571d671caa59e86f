"""Pipeline orchestrator: raw upload -> published, web-deliverable video.

A run walks a fixed sequence of stages::

    QUEUED -> STARTED -> PROBING_INPUT -> TRANSCODING -> THUMBNAIL
           -> PROBING_OUTPUT -> FINALIZING -> COMPLETED

and drops to FAILED from any non-terminal stage. Progress checkpoints are
written to the job ledger between stages. The owning video only becomes
PUBLISHED in the finalize transaction, together with the job's COMPLETED
status; a failure marks the job FAILED and reverts the video to DRAFT in the
same way. There is no automatic retry inside a run.
"""

from __future__ import annotations

import logging
import tempfile
from enum import Enum
from pathlib import Path, PurePosixPath

from vidpipe.core.constants import (
    MAX_ERROR_MESSAGE_LENGTH,
    PROGRESS_PROBING_OUTPUT,
    PROGRESS_THUMBNAIL,
    PROGRESS_TRANSCODING,
)
from vidpipe.core.exceptions import VideoNotFoundError, VidpipeError
from vidpipe.db.models import JobStatus, VideoStatus
from vidpipe.db.repository import Repository, utcnow
from vidpipe.pipeline.ffmpeg import MediaInfo, Prober, Transcoder
from vidpipe.pipeline.ledger import JobLedger
from vidpipe.storage.base import BlobStore
from vidpipe.utils.naming import output_keys

logger = logging.getLogger(__name__)

_ELLIPSIS = "..."


class Stage(str, Enum):
    QUEUED = "queued"
    STARTED = "started"
    PROBING_INPUT = "probing_input"
    TRANSCODING = "transcoding"
    THUMBNAIL = "thumbnail_extracting"
    PROBING_OUTPUT = "probing_output"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"


def truncate_message(message: str, limit: int = MAX_ERROR_MESSAGE_LENGTH) -> str:
    if len(message) <= limit:
        return message
    if limit <= len(_ELLIPSIS):
        return message[: max(limit, 0)]
    return message[: limit - len(_ELLIPSIS)] + _ELLIPSIS


class Orchestrator:
    def __init__(
        self,
        repo: Repository,
        store: BlobStore,
        prober: Prober,
        transcoder: Transcoder,
        *,
        ledger: JobLedger | None = None,
        max_error_length: int = MAX_ERROR_MESSAGE_LENGTH,
    ):
        self.repo = repo
        self.store = store
        self.prober = prober
        self.transcoder = transcoder
        self.ledger = ledger or JobLedger(repo)
        self.max_error_length = max_error_length

    def run(self, video_id: str, job_id: str) -> JobStatus | None:
        """Process one job to a terminal state.

        Returns the job's final status, or None when the job was not QUEUED
        (another run already owns it) and nothing was done.
        """
        if not self.ledger.mark_started(job_id):
            return None

        stage = Stage.STARTED
        written: list[str] = []
        logger.info("Job %s started for video %s", job_id, video_id)

        try:
            video = self.repo.find_video(video_id)
            if video is None:
                raise VideoNotFoundError(f"video not found: {video_id}")

            processed_key, thumbnail_key = output_keys(video.raw_locator)

            with self.store.staged(video.raw_locator) as raw_path, \
                    tempfile.TemporaryDirectory(prefix="vidpipe_job_") as scratch:
                processed_local = Path(scratch) / PurePosixPath(processed_key).name
                thumbnail_local = Path(scratch) / PurePosixPath(thumbnail_key).name

                stage = self._enter(job_id, Stage.PROBING_INPUT)
                source = self.prober.probe(raw_path)
                logger.info(
                    "Job %s input: %ss at %s", job_id, source.duration_sec, source.resolution
                )

                stage = self._enter(job_id, Stage.TRANSCODING, PROGRESS_TRANSCODING)
                self.transcoder.transcode(raw_path, processed_local)
                written.append(self.store.write_file(processed_local, processed_key))

                stage = self._enter(job_id, Stage.THUMBNAIL, PROGRESS_THUMBNAIL)
                self.transcoder.extract_thumbnail(
                    raw_path, thumbnail_local, duration_sec=source.duration_sec
                )
                written.append(self.store.write_file(thumbnail_local, thumbnail_key))

                # The encode changes both duration and frame size, so the
                # published metadata comes from the output, not the input
                stage = self._enter(job_id, Stage.PROBING_OUTPUT, PROGRESS_PROBING_OUTPUT)
                output = self.prober.probe(processed_local)

            stage = self._enter(job_id, Stage.FINALIZING)
            return self._finalize(video_id, job_id, written[0], written[1], output)
        except Exception as e:
            self._fail(video_id, job_id, stage, e, written)
            return JobStatus.FAILED

    def _enter(self, job_id: str, stage: Stage, progress: int | None = None) -> Stage:
        logger.info("Job %s -> %s", job_id, stage.value)
        if progress is not None:
            self.ledger.set_progress(job_id, progress)
        return stage

    def _finalize(
        self,
        video_id: str,
        job_id: str,
        processed_locator: str,
        thumbnail_locator: str,
        info: MediaInfo,
    ) -> JobStatus:
        with self.repo.atomic():
            video = self.repo.find_video(video_id)
            if video is not None:
                self.repo.update_video(
                    video_id,
                    media_locator=processed_locator,
                    media_url=self.store.public_url(processed_locator),
                    thumbnail_locator=thumbnail_locator,
                    thumbnail_url=self.store.public_url(thumbnail_locator),
                    duration_sec=info.duration_sec,
                    status=VideoStatus.PUBLISHED,
                    published_at=video.published_at or utcnow(),
                )
                self.ledger.mark_completed(job_id, info.resolution)
            elif self.repo.find_job(job_id) is not None:
                self.ledger.mark_failed(job_id, "video deleted during processing")

        if video is None:
            logger.warning("Video %s was deleted while job %s was running", video_id, job_id)
            self._discard_outputs([processed_locator, thumbnail_locator], keep=())
            return JobStatus.FAILED

        logger.info("Job %s completed: %s, %ss", job_id, info.resolution, info.duration_sec)
        return JobStatus.COMPLETED

    def _fail(
        self, video_id: str, job_id: str, stage: Stage, exc: Exception, written: list[str]
    ) -> None:
        message = truncate_message(str(exc) or type(exc).__name__, self.max_error_length)
        if isinstance(exc, VidpipeError):
            logger.error("Job %s failed during %s: %s", job_id, stage.value, message)
        else:
            logger.exception("Job %s crashed during %s", job_id, stage.value)

        video = None
        try:
            with self.repo.atomic():
                self.ledger.mark_failed(job_id, message)
                video = self.repo.find_video(video_id)
                if video is not None:
                    self.repo.set_video_status(video_id, VideoStatus.DRAFT)
        except Exception:
            logger.exception("Could not record failure of job %s", job_id)
            # Keep the video out of PROCESSING even if the job row is unwritable
            try:
                video = self.repo.find_video(video_id)
                if video is not None:
                    self.repo.set_video_status(video_id, VideoStatus.DRAFT)
            except Exception:
                logger.exception("Could not revert video %s to DRAFT", video_id)

        keep = (video.media_locator, video.thumbnail_locator) if video is not None else ()
        self._discard_outputs(written, keep=keep)

    def _discard_outputs(self, locators: list[str], keep: tuple) -> None:
        """Best-effort removal of outputs no video record points at."""
        for locator in locators:
            if locator in keep:
                continue
            try:
                self.store.delete(locator)
            except Exception:
                logger.exception("Could not delete orphaned output %s", locator)
