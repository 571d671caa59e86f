"""Durable lifecycle record of processing jobs."""

from __future__ import annotations

import logging

from vidpipe.core.constants import PROGRESS_DONE
from vidpipe.core.exceptions import InvalidTransition
from vidpipe.db.models import JOB_TRANSITIONS, JobRecord, JobStatus
from vidpipe.db.repository import Repository, utcnow

logger = logging.getLogger(__name__)


def check_transition(job: JobRecord, target: JobStatus) -> None:
    if target not in JOB_TRANSITIONS[job.status]:
        raise InvalidTransition(
            f"Job {job.id} cannot move from {job.status.value} to {target.value}"
        )


class JobLedger:
    """Status/progress mutations for jobs, each one atomic.

    Every method runs inside ``Repository.atomic()``, so a caller can also
    group several ledger and video updates into one transaction by opening
    an outer ``atomic()`` block.
    """

    def __init__(self, repo: Repository):
        self.repo = repo

    def get(self, job_id: str) -> JobRecord:
        return self.repo.get_job(job_id)

    def mark_started(self, job_id: str) -> bool:
        """QUEUED -> PROCESSING. Returns False (and changes nothing) otherwise."""
        with self.repo.atomic():
            job = self.repo.get_job(job_id)
            if job.status is not JobStatus.QUEUED:
                logger.warning("Job %s not started: status is %s", job_id, job.status.value)
                return False
            self.repo.update_job(job_id, status=JobStatus.PROCESSING, started_at=utcnow())
        return True

    def set_progress(self, job_id: str, percent: int) -> None:
        percent = max(0, min(100, int(percent)))
        with self.repo.atomic():
            job = self.repo.get_job(job_id)
            if percent < job.progress:
                logger.warning(
                    "Progress regression for job %s: %d -> %d", job_id, job.progress, percent
                )
            self.repo.update_job(job_id, progress=percent)
        logger.debug("Job %s progress %d%%", job_id, percent)

    def mark_completed(self, job_id: str, resolution: str) -> None:
        with self.repo.atomic():
            check_transition(self.repo.get_job(job_id), JobStatus.COMPLETED)
            self.repo.update_job(
                job_id,
                status=JobStatus.COMPLETED,
                progress=PROGRESS_DONE,
                completed_at=utcnow(),
                resolution=resolution,
            )

    def mark_failed(self, job_id: str, error_message: str) -> None:
        """Progress is left where the run stopped."""
        with self.repo.atomic():
            check_transition(self.repo.get_job(job_id), JobStatus.FAILED)
            self.repo.update_job(
                job_id,
                status=JobStatus.FAILED,
                completed_at=utcnow(),
                error_message=error_message,
            )

    def reset_for_retry(self, job_id: str) -> None:
        with self.repo.atomic():
            job = self.repo.get_job(job_id)
            if job.status is not JobStatus.FAILED:
                raise InvalidTransition(
                    f"Only failed jobs can be retried (job {job_id} is {job.status.value})"
                )
            self.repo.update_job(
                job_id,
                status=JobStatus.QUEUED,
                progress=0,
                error_message=None,
                started_at=None,
                completed_at=None,
            )
