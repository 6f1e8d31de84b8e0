"""
Job-related Pydantic schemas.
"""
import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class JobStatus(str, enum.Enum):
    """Job lifecycle status: queued -> processing -> completed | failed."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition_to(self, target: "JobStatus") -> bool:
        return target in JOB_TRANSITIONS[self]


JOB_TRANSITIONS = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class JobErrorKind(str, enum.Enum):
    """Which orchestration step a failed job broke in."""

    VALIDATION = "validation"
    GENERATION = "generation"
    PUBLISH = "publish"
    INTERNAL = "internal"


class JobError(BaseModel):
    """Structured error recorded on a failed job."""
    model_config = ConfigDict(frozen=True)

    message: str
    kind: JobErrorKind


class JobRecord(BaseModel):
    """A single attempt to generate and publish one topic for one site."""
    model_config = ConfigDict(frozen=True)

    job_id: str
    topic_id: str
    site_id: str
    status: JobStatus
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    title: Optional[str] = None
    wordpress_post_id: Optional[int] = None
    published_url: Optional[str] = None
    error: Optional[JobError] = None


class BlogNowRequest(BaseModel):
    """Request schema for on-demand publication of one topic."""
    site_id: str
    topic_id: str


class BlogNowResponse(BaseModel):
    """Response schema for on-demand publication."""
    success: bool
    job_id: Optional[str] = None
    status: Optional[JobStatus] = None
    message: str
