"""Pydantic models for database entities and service responses."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class VideoStatus(str, Enum):
    DRAFT = "DRAFT"
    PROCESSING = "PROCESSING"
    PUBLISHED = "PUBLISHED"
    UNLISTED = "UNLISTED"
    REJECTED = "REJECTED"


class JobStatus(str, Enum):
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Legal job transitions; anything else raises InvalidTransition
JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset({JobStatus.QUEUED}),
}


class VideoRecord(BaseModel):
    id: str
    creator_id: str
    title: str
    slug: str
    description: str | None = None
    category_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    raw_locator: str
    media_locator: str
    media_url: str | None = None
    thumbnail_locator: str | None = None
    thumbnail_url: str | None = None
    duration_sec: int | None = None
    view_count: int = 0
    status: VideoStatus = VideoStatus.PROCESSING
    published_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class JobRecord(BaseModel):
    id: str
    video_id: str
    status: JobStatus = JobStatus.QUEUED
    progress: int = Field(default=0, ge=0, le=100)
    error_message: str | None = None
    resolution: str | None = None
    queued_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class JobStatusView(BaseModel):
    """Read-only projection polled by the UI."""

    job_id: str
    video_id: str
    status: JobStatus
    progress: int
    error_message: str | None = None
    completed_at: datetime | None = None


class UploadResult(BaseModel):
    video_id: str
    job_id: str
    slug: str


class UploadStatus(BaseModel):
    video_id: str
    title: str
    slug: str
    status: VideoStatus
    thumbnail_url: str | None = None
    processing_job: JobStatusView | None = None


class JobListItem(BaseModel):
    job: JobRecord
    video_title: str
    video_slug: str
    creator_id: str


class ProcessingSummary(BaseModel):
    queued: int
    processing: int
    completed_today: int
    failed_today: int


class JobPage(BaseModel):
    jobs: list[JobListItem]
    total_count: int
    total_pages: int
    page: int
    summary: ProcessingSummary
