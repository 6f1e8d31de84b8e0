"""
Scheduler-related Pydantic schemas.
"""
import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from autoblogger_backend.schemas.job import JobStatus


def parse_clock(value: str) -> int:
    """Parse an ``HH:MM`` clock time into minutes after midnight."""
    try:
        hour_str, minute_str = str(value).strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
    except ValueError:
        raise ValueError(f"Invalid clock time {value!r}, expected HH:MM")
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Clock time out of range: {value!r}")
    return hour * 60 + minute


class Frequency(str, enum.Enum):
    """How often a schedule fires."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class TimeRange(BaseModel):
    """A clock-time window, e.g. 09:00-11:30."""
    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _check_clock(cls, value: str) -> str:
        parse_clock(value)
        return value

    @property
    def start_minutes(self) -> int:
        return parse_clock(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_clock(self.end)


class ScheduleRecord(BaseModel):
    """A recurring publication policy for one site."""
    model_config = ConfigDict(frozen=True)

    schedule_id: str
    site_id: str
    user_id: Optional[str] = None
    frequency: Frequency = Frequency.DAILY
    posts_per_interval: int = Field(default=1, ge=1)
    enabled: bool = True
    next_run_time: Optional[datetime] = None
    last_run_time: Optional[datetime] = None
    # Time selection: random ranges, then fixed times, then legacy hours
    time_ranges: List[TimeRange] = []
    fixed_times: List[str] = []
    start_hour: Optional[int] = Field(default=None, ge=0, le=24)
    end_hour: Optional[int] = Field(default=None, ge=0, le=24)

    @field_validator("fixed_times")
    @classmethod
    def _check_fixed_times(cls, value: List[str]) -> List[str]:
        for item in value:
            parse_clock(item)
        return value


class ScheduleResult(BaseModel):
    """Outcome of processing one due schedule within a sweep."""
    schedule_id: str
    site_id: str
    status: str  # processed, skipped, failed
    dispatched_job_ids: List[str] = []
    next_run_time: Optional[datetime] = None
    error: Optional[str] = None


class SweepResult(BaseModel):
    """Outcome of one scheduler sweep."""
    success: bool
    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    dispatched: int = 0
    schedules: List[ScheduleResult] = []
    error: Optional[str] = None


class ReconciliationEntry(BaseModel):
    """A topic marked published whose job did not complete."""
    topic_id: str
    site_id: str
    topic_title: str
    job_id: Optional[str] = None
    job_status: Optional[JobStatus] = None
    error_message: Optional[str] = None


class ReconciliationReport(BaseModel):
    """Topics left in the dispatch-then-mark-published inconsistency window."""
    generated_at: datetime
    entries: List[ReconciliationEntry] = []

    @property
    def count(self) -> int:
        return len(self.entries)
