"""CRUD operations for videos and processing jobs."""

from __future__ import annotations

import json
import math
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterator

from vidpipe.core.exceptions import (
    DatabaseError,
    InvalidTransition,
    JobNotFoundError,
    VideoNotFoundError,
)
from vidpipe.db.connection import get_connection
from vidpipe.db.models import (
    JobListItem,
    JobPage,
    JobRecord,
    JobStatus,
    ProcessingSummary,
    VideoRecord,
    VideoStatus,
)
from vidpipe.db.schema import migrate

_VIDEO_COLUMNS = frozenset({
    "title", "slug", "description", "category_id", "tags_json", "raw_locator",
    "media_locator", "media_url", "thumbnail_locator", "thumbnail_url",
    "duration_sec", "view_count", "status", "published_at",
})

_JOB_COLUMNS = frozenset({
    "status", "progress", "error_message", "resolution",
    "started_at", "completed_at",
})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _row_to_video(row: sqlite3.Row) -> VideoRecord:
    data = dict(row)
    data["tags"] = json.loads(data.pop("tags_json") or "[]")
    return VideoRecord(**data)


def _row_to_job(row: sqlite3.Row) -> JobRecord:
    return JobRecord(**dict(row))


class Repository:
    """SQLite-backed store for Video and ProcessingJob records.

    One connection is shared by every worker thread. All access goes through
    a re-entrant lock, and ``atomic()`` wraps a block of statements in a
    single transaction so that readers never observe a partial update.
    """

    def __init__(self, db_path: Path | None = None):
        self.conn = get_connection(db_path)
        self._lock = threading.RLock()
        self._depth = 0
        migrate(self.conn)

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run the enclosed statements in one transaction.

        Nested blocks join the outermost transaction, which commits on normal
        exit and rolls back if any exception escapes.
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self.conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield
            except BaseException:
                self._depth -= 1
                if outermost:
                    self.conn.execute("ROLLBACK")
                raise
            self._depth -= 1
            if outermost:
                self.conn.execute("COMMIT")

    # --- Videos ---

    def insert_video(self, video: VideoRecord) -> VideoRecord:
        now = utcnow()
        video = video.model_copy(update={
            "created_at": video.created_at or now,
            "updated_at": now,
        })
        try:
            with self.atomic():
                self.conn.execute(
                    """INSERT INTO videos (id, creator_id, title, slug, description, category_id,
                       tags_json, raw_locator, media_locator, media_url, thumbnail_locator,
                       thumbnail_url, duration_sec, view_count, status, published_at,
                       created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        video.id, video.creator_id, video.title, video.slug,
                        video.description, video.category_id, json.dumps(video.tags),
                        video.raw_locator, video.media_locator, video.media_url,
                        video.thumbnail_locator, video.thumbnail_url, video.duration_sec,
                        video.view_count, _to_db(video.status), _to_db(video.published_at),
                        _to_db(video.created_at), _to_db(video.updated_at),
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise DatabaseError(f"Video already exists: {e}") from e
        return video

    def find_video(self, video_id: str) -> VideoRecord | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM videos WHERE id = ?", (video_id,)
            ).fetchone()
        return _row_to_video(row) if row else None

    def get_video(self, video_id: str) -> VideoRecord:
        video = self.find_video(video_id)
        if video is None:
            raise VideoNotFoundError(f"Video not found: {video_id}")
        return video

    def slug_exists(self, slug: str) -> bool:
        with self._lock:
            row = self.conn.execute(
                "SELECT 1 FROM videos WHERE slug = ?", (slug,)
            ).fetchone()
        return row is not None

    def update_video(self, video_id: str, **fields: Any) -> None:
        if "tags" in fields:
            fields["tags_json"] = json.dumps(fields.pop("tags"))
        unknown = set(fields) - _VIDEO_COLUMNS
        if unknown:
            raise DatabaseError(f"Unknown video columns: {sorted(unknown)}")
        fields["updated_at"] = utcnow()
        assignments = ", ".join(f"{name} = ?" for name in fields)
        with self.atomic():
            cur = self.conn.execute(
                f"UPDATE videos SET {assignments} WHERE id = ?",
                (*(_to_db(v) for v in fields.values()), video_id),
            )
            if cur.rowcount == 0:
                raise VideoNotFoundError(f"Video not found: {video_id}")

    def set_video_status(self, video_id: str, status: VideoStatus) -> None:
        self.update_video(video_id, status=status)

    def delete_video(self, video_id: str) -> None:
        with self.atomic():
            self.conn.execute("DELETE FROM processing_jobs WHERE video_id = ?", (video_id,))
            self.conn.execute("DELETE FROM videos WHERE id = ?", (video_id,))

    # --- Processing jobs ---

    def insert_job(self, job: JobRecord) -> JobRecord:
        job = job.model_copy(update={"queued_at": job.queued_at or utcnow()})
        try:
            with self.atomic():
                self.conn.execute(
                    """INSERT INTO processing_jobs (id, video_id, status, progress, error_message,
                       resolution, queued_at, started_at, completed_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        job.id, job.video_id, _to_db(job.status), job.progress,
                        job.error_message, job.resolution, _to_db(job.queued_at),
                        _to_db(job.started_at), _to_db(job.completed_at),
                    ),
                )
        except sqlite3.IntegrityError as e:
            if "idx_jobs_one_active" in str(e) or "processing_jobs.video_id" in str(e):
                raise InvalidTransition(
                    f"Video {job.video_id} already has an active processing job"
                ) from e
            raise DatabaseError(f"Could not create job: {e}") from e
        return job

    def find_job(self, job_id: str) -> JobRecord | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM processing_jobs WHERE id = ?", (job_id,)
            ).fetchone()
        return _row_to_job(row) if row else None

    def get_job(self, job_id: str) -> JobRecord:
        job = self.find_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return job

    def update_job(self, job_id: str, **fields: Any) -> None:
        unknown = set(fields) - _JOB_COLUMNS
        if unknown:
            raise DatabaseError(f"Unknown job columns: {sorted(unknown)}")
        assignments = ", ".join(f"{name} = ?" for name in fields)
        try:
            with self.atomic():
                cur = self.conn.execute(
                    f"UPDATE processing_jobs SET {assignments} WHERE id = ?",
                    (*(_to_db(v) for v in fields.values()), job_id),
                )
                if cur.rowcount == 0:
                    raise JobNotFoundError(f"Job not found: {job_id}")
        except sqlite3.IntegrityError as e:
            raise InvalidTransition(
                f"Job {job_id} conflicts with another active job for the same video"
            ) from e

    def get_active_job(self, video_id: str) -> JobRecord | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM processing_jobs WHERE video_id = ? AND status IN (?, ?)",
                (video_id, JobStatus.QUEUED.value, JobStatus.PROCESSING.value),
            ).fetchone()
        return _row_to_job(row) if row else None

    def get_latest_job(self, video_id: str) -> JobRecord | None:
        with self._lock:
            row = self.conn.execute(
                """SELECT * FROM processing_jobs WHERE video_id = ?
                   ORDER BY queued_at DESC, rowid DESC LIMIT 1""",
                (video_id,),
            ).fetchone()
        return _row_to_job(row) if row else None

    def list_jobs(
        self, page: int = 1, limit: int = 20, status: JobStatus | None = None
    ) -> JobPage:
        """Paginated job listing, newest first, with a per-status summary."""
        page = max(page, 1)
        limit = max(limit, 1)
        where = ""
        params: tuple = ()
        if status is not None:
            where = "WHERE j.status = ?"
            params = (status.value,)

        today_start = utcnow().replace(hour=0, minute=0, second=0, microsecond=0).isoformat()

        with self._lock:
            rows = self.conn.execute(
                f"""SELECT j.*, v.title AS video_title, v.slug AS video_slug,
                           v.creator_id AS creator_id
                    FROM processing_jobs j
                    JOIN videos v ON v.id = j.video_id
                    {where}
                    ORDER BY j.queued_at DESC, j.rowid DESC
                    LIMIT ? OFFSET ?""",
                (*params, limit, (page - 1) * limit),
            ).fetchall()
            total = self.conn.execute(
                f"SELECT COUNT(*) FROM processing_jobs j {where}", params
            ).fetchone()[0]
            counts = self.conn.execute(
                """SELECT
                     SUM(status = 'QUEUED'),
                     SUM(status = 'PROCESSING'),
                     SUM(status = 'COMPLETED' AND completed_at >= ?),
                     SUM(status = 'FAILED' AND completed_at >= ?)
                   FROM processing_jobs""",
                (today_start, today_start),
            ).fetchone()

        items = []
        for r in rows:
            data = dict(r)
            items.append(
                JobListItem(
                    video_title=data.pop("video_title"),
                    video_slug=data.pop("video_slug"),
                    creator_id=data.pop("creator_id"),
                    job=JobRecord(**data),
                )
            )
        return JobPage(
            jobs=items,
            total_count=total,
            total_pages=math.ceil(total / limit),
            page=page,
            summary=ProcessingSummary(
                queued=counts[0] or 0,
                processing=counts[1] or 0,
                completed_today=counts[2] or 0,
                failed_today=counts[3] or 0,
            ),
        )
