"""Tests for the bounded worker pool."""

from __future__ import annotations

import threading
import time

import pytest

from conftest import FakeTranscoder, RecordingLedger
from vidpipe.db.models import JobStatus, VideoStatus
from vidpipe.pipeline.dispatcher import Dispatcher


def test_submit_does_not_block_caller() -> None:
    release = threading.Event()
    started = threading.Event()

    def run(video_id: str, job_id: str) -> None:
        started.set()
        release.wait(5)

    with Dispatcher(run, concurrency=1) as dispatcher:
        t0 = time.monotonic()
        assert dispatcher.submit("v1", "j1") is True
        assert time.monotonic() - t0 < 1.0
        assert started.wait(5)
        assert dispatcher.active_jobs() == ["j1"]
        release.set()
        assert dispatcher.wait(timeout=5)
    assert dispatcher.active_jobs() == []


def test_resubmission_during_a_run_queues_one_follow_up() -> None:
    release = threading.Event()
    calls: list[str] = []

    def run(video_id: str, job_id: str) -> None:
        calls.append(job_id)
        release.wait(5)

    with Dispatcher(run, concurrency=2) as dispatcher:
        assert dispatcher.submit("v1", "j1") is True
        assert dispatcher.submit("v1", "j1") is True
        assert dispatcher.submit("v1", "j1") is False
        assert dispatcher.active_jobs() == ["j1"]
        release.set()
        assert dispatcher.wait(timeout=5)

    # The original run plus exactly one follow-up, never two at once
    assert calls == ["j1", "j1"]


def test_follow_up_starts_only_after_current_run_returns() -> None:
    first_running = threading.Event()
    release_first = threading.Event()
    order: list[str] = []

    def run(video_id: str, job_id: str) -> None:
        if not first_running.is_set():
            first_running.set()
            release_first.wait(5)
            order.append("first-done")
        else:
            order.append("follow-up")

    with Dispatcher(run, concurrency=2) as dispatcher:
        dispatcher.submit("v1", "j1")
        assert first_running.wait(5)
        dispatcher.submit("v1", "j1")
        release_first.set()
        assert dispatcher.wait(timeout=5)

    assert order == ["first-done", "follow-up"]
    assert dispatcher.active_jobs() == []


def test_crashing_run_does_not_affect_others(caplog) -> None:
    done: list[str] = []

    def run(video_id: str, job_id: str) -> None:
        if job_id == "bad":
            raise RuntimeError("worker exploded")
        done.append(job_id)

    with Dispatcher(run, concurrency=2) as dispatcher:
        dispatcher.submit("v0", "bad")
        dispatcher.submit("v1", "good-1")
        dispatcher.submit("v2", "good-2")
        assert dispatcher.wait(timeout=5)

    assert sorted(done) == ["good-1", "good-2"]
    assert "Unhandled error in job bad" in caplog.text


def test_concurrency_is_bounded() -> None:
    lock = threading.Lock()
    running = 0
    peak = 0

    def run(video_id: str, job_id: str) -> None:
        nonlocal running, peak
        with lock:
            running += 1
            peak = max(peak, running)
        time.sleep(0.05)
        with lock:
            running -= 1

    with Dispatcher(run, concurrency=2) as dispatcher:
        for i in range(6):
            dispatcher.submit(f"v{i}", f"j{i}")
        assert dispatcher.wait(timeout=10)

    assert peak <= 2


def test_submit_after_shutdown_raises() -> None:
    dispatcher = Dispatcher(lambda v, j: None, concurrency=1)
    dispatcher.shutdown()
    with pytest.raises(RuntimeError):
        dispatcher.submit("v", "j")


def test_invalid_concurrency() -> None:
    with pytest.raises(ValueError):
        Dispatcher(lambda v, j: None, concurrency=0)


def test_two_uploads_run_in_parallel(repo, make_video, make_orchestrator) -> None:
    """Both jobs must be inside transcode at the same time with a pool of 2."""
    barrier = threading.Barrier(2, timeout=5)

    class ParallelTranscoder(FakeTranscoder):
        def transcode(self, input_path, output_path):
            barrier.wait()
            super().transcode(input_path, output_path)

    ledger = RecordingLedger(repo)
    orch = make_orchestrator(transcoder=ParallelTranscoder(), ledger=ledger)
    first = make_video("aaa111-first.mov")
    second = make_video("bbb222-second.mp4")

    with Dispatcher(orch.run, concurrency=2) as dispatcher:
        dispatcher.submit(*first)
        dispatcher.submit(*second)
        assert dispatcher.wait(timeout=10)

    for video_id, job_id in (first, second):
        job = repo.get_job(job_id)
        assert job.status is JobStatus.COMPLETED, job.error_message
        assert repo.get_video(video_id).status is VideoStatus.PUBLISHED
        progress = ledger.progress[job_id] + [job.progress]
        assert progress == sorted(progress)
        assert progress[-1] == 100
