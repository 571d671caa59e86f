"""Bounded worker pool that runs pipeline jobs off the caller's thread."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from typing import Callable

from vidpipe.core.constants import DEFAULT_CONCURRENCY

logger = logging.getLogger(__name__)

RunFn = Callable[[str, str], object]


class Dispatcher:
    """Fire-and-forget scheduling of ``run(video_id, job_id)`` calls.

    Each worker spends nearly all of its time waiting on an ffmpeg child
    process, so threads are enough; the pool size caps how many encodes run
    at once. A job id has at most one run in flight; submitting a job
    whose run is still winding down (for example a retry that lands while
    the failed run is cleaning up its outputs) schedules one follow-up run
    that starts when the current one returns. Whatever a run raises is logged and dropped so it never reaches ``submit`` callers or
    other runs.
    """

    def __init__(self, run: RunFn, concurrency: int = DEFAULT_CONCURRENCY):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._run = run
        self.concurrency = concurrency
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix="vidpipe-worker"
        )
        self._lock = threading.Lock()
        self._active: dict[str, concurrent.futures.Future] = {}
        # job_id -> video_id of a run to start once the active one returns
        self._follow_ups: dict[str, str] = {}
        self._closed = False

    def submit(self, video_id: str, job_id: str) -> bool:
        """Schedule a run.

        Returns False only when the job already has a run in flight *and* a
        follow-up run queued behind it.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Dispatcher is shut down")
            if job_id in self._active:
                if job_id in self._follow_ups:
                    logger.warning("Job %s already has a run queued; submission ignored", job_id)
                    return False
                self._follow_ups[job_id] = video_id
                logger.info("Job %s still has a run finishing; queued a follow-up run", job_id)
                return True
            self._active[job_id] = self._executor.submit(self._guarded, video_id, job_id)
        logger.info("Queued job %s for video %s", job_id, video_id)
        return True

    def _guarded(self, video_id: str, job_id: str) -> object:
        try:
            return self._run(video_id, job_id)
        except Exception:
            logger.exception("Unhandled error in job %s (video %s)", job_id, video_id)
            return None
        finally:
            self._release(job_id)

    def _release(self, job_id: str) -> None:
        with self._lock:
            follow_up = self._follow_ups.pop(job_id, None)
            if follow_up is None or self._closed:
                self._active.pop(job_id, None)
                if follow_up is not None:
                    logger.warning("Dropped follow-up run of job %s: dispatcher shut down", job_id)
                return
            # The follow-up takes over the slot directly
            self._active[job_id] = self._executor.submit(self._guarded, follow_up, job_id)
        logger.info("Started follow-up run of job %s", job_id)

    def active_jobs(self) -> list[str]:
        with self._lock:
            return list(self._active)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until every in-flight run, follow-ups included, finishes.

        Returns False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = list(self._active.values())
            if not pending:
                return True
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            concurrent.futures.wait(pending, timeout=remaining)

    def shutdown(self, wait: bool = True) -> None:
        if wait:
            self.wait()
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "Dispatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown(wait=True)
