"""
Job store accessor: reads and partial updates of jobs, topics, sites and schedules.

Each call opens its own session so the accessor can be used from worker
threads and from concurrently running orchestrations.
"""
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from autoblogger_backend.core.errors import ConfigurationError, InternalError
from autoblogger_backend.db.base import GeneratedPost, Job, Schedule, Site, Topic, utc_now
from autoblogger_backend.db.session import SessionLocal
from autoblogger_backend.schemas.content import GeneratedContent, HealthResult
from autoblogger_backend.schemas.job import JobError, JobRecord, JobStatus
from autoblogger_backend.schemas.scheduler import ReconciliationEntry, ScheduleRecord
from autoblogger_backend.schemas.site import SiteConfig, TopicRecord, TopicStatus

logger = logging.getLogger(__name__)

JOB_FIELDS = frozenset({
    "title", "wordpress_post_id", "published_url",
    "started_at", "completed_at", "failed_at", "error",
})
TOPIC_FIELDS = frozenset({"published_at", "wordpress_post_id", "last_job_id"})
SCHEDULE_FIELDS = frozenset({"next_run_time", "last_run_time", "enabled"})


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _check_fields(fields: dict, allowed: frozenset, record: str) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise InternalError(f"Unknown {record} fields: {', '.join(sorted(unknown))}")


def _job_record(row: Job) -> JobRecord:
    error = None
    if row.error_message or row.error_kind:
        error = JobError(message=row.error_message or "", kind=row.error_kind or "internal")
    return JobRecord(
        job_id=row.job_id,
        topic_id=row.topic_id,
        site_id=row.site_id,
        status=row.status,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        started_at=_aware(row.started_at),
        completed_at=_aware(row.completed_at),
        failed_at=_aware(row.failed_at),
        title=row.title,
        wordpress_post_id=row.wordpress_post_id,
        published_url=row.published_url,
        error=error,
    )


def _topic_record(row: Topic) -> TopicRecord:
    return TopicRecord(
        id=row.id,
        site_id=row.site_id,
        title=row.title,
        description=row.description,
        keywords=row.keywords or [],
        status=row.status,
        published_at=_aware(row.published_at),
        wordpress_post_id=row.wordpress_post_id,
        last_job_id=row.last_job_id,
    )


def _site_config(row: Site) -> SiteConfig:
    try:
        return SiteConfig(
            site_id=row.site_id,
            name=row.name,
            url=row.url,
            username=row.wp_username,
            app_password=row.wp_app_password,
            settings=row.settings or {},
        )
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid settings for site {row.site_id}: {e.errors()[0].get('msg')}") from e


def _schedule_record(row: Schedule) -> ScheduleRecord:
    return ScheduleRecord(
        schedule_id=row.schedule_id,
        site_id=row.site_id,
        user_id=row.user_id,
        frequency=row.frequency,
        posts_per_interval=row.posts_per_interval,
        enabled=row.enabled,
        next_run_time=_aware(row.next_run_time),
        last_run_time=_aware(row.last_run_time),
        time_ranges=row.time_ranges or [],
        fixed_times=row.fixed_times or [],
        start_hour=row.start_hour,
        end_hour=row.end_hour,
    )


class JobStore:
    """Accessor over the jobs, topics, sites and schedules tables."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise InternalError(f"Store operation failed: {e.__class__.__name__}") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ---------- jobs ----------

    def create_job(self, topic_id: str, site_id: str) -> JobRecord:
        now = utc_now()
        with self._session() as db:
            row = Job(
                job_id=uuid.uuid4().hex,
                topic_id=topic_id,
                site_id=site_id,
                status=JobStatus.QUEUED.value,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            db.flush()
            return _job_record(row)

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        with self._session() as db:
            row = db.get(Job, job_id)
            return _job_record(row) if row else None

    def update_job_status(
        self, job_id: str, status: JobStatus, expected: Optional[JobStatus] = None, **fields
    ) -> JobRecord:
        """Move a job to ``status`` and merge ``fields`` into the record.

        Passing the current status patches fields without a transition.
        Terminal jobs and edges outside the state machine are refused.
        With ``expected``, the update only applies while the stored status
        still equals it; concurrent callers racing on the same edge get an
        ``InternalError`` instead of a second transition.
        """
        _check_fields(fields, JOB_FIELDS, "job")
        status = JobStatus(status)
        with self._session() as db:
            if expected is not None:
                expected = JobStatus(expected)
                # Conditional write takes the row lock before the status is read back
                matched = (
                    db.query(Job)
                    .filter(Job.job_id == job_id, Job.status == expected.value)
                    .update({Job.updated_at: utc_now()}, synchronize_session=False)
                )
                if not matched:
                    row = db.get(Job, job_id)
                    if row is None:
                        raise InternalError(f"Job {job_id} not found")
                    raise InternalError(f"Job {job_id} is {row.status}, expected {expected.value}")

            row = db.get(Job, job_id)
            if row is None:
                raise InternalError(f"Job {job_id} not found")

            current = JobStatus(row.status)
            if current.is_terminal:
                raise InternalError(f"Job {job_id} is already {current.value}")
            if status != current and not current.can_transition_to(status):
                raise InternalError(f"Illegal job transition {current.value} -> {status.value}")

            error = fields.pop("error", None)
            if error is not None:
                error = JobError.model_validate(error)
                row.error_message = error.message
                row.error_kind = error.kind.value
            for key, value in fields.items():
                setattr(row, key, value)
            row.status = status.value
            row.updated_at = utc_now()
            db.flush()
            return _job_record(row)

    # ---------- topics ----------

    def get_topic(self, topic_id: str, site_id: str) -> Optional[TopicRecord]:
        with self._session() as db:
            row = db.query(Topic).filter(Topic.id == topic_id, Topic.site_id == site_id).first()
            return _topic_record(row) if row else None

    def list_approved_topics(self, site_id: str) -> List[TopicRecord]:
        with self._session() as db:
            rows = (
                db.query(Topic)
                .filter(Topic.site_id == site_id, Topic.status == TopicStatus.APPROVED.value)
                .order_by(Topic.id)
                .all()
            )
            return [_topic_record(row) for row in rows]

    def update_topic_status(self, topic_id: str, site_id: str, status: TopicStatus, **fields) -> TopicRecord:
        _check_fields(fields, TOPIC_FIELDS, "topic")
        status = TopicStatus(status)
        with self._session() as db:
            row = db.query(Topic).filter(Topic.id == topic_id, Topic.site_id == site_id).first()
            if row is None:
                raise InternalError(f"Topic {topic_id} not found for site {site_id}")
            for key, value in fields.items():
                setattr(row, key, value)
            row.status = status.value
            db.flush()
            return _topic_record(row)

    # ---------- sites ----------

    def get_site(self, site_id: str) -> Optional[SiteConfig]:
        with self._session() as db:
            row = db.get(Site, site_id)
            return _site_config(row) if row else None

    def update_site_health(self, site_id: str, result: HealthResult, checked_at: datetime) -> None:
        with self._session() as db:
            row = db.get(Site, site_id)
            if row is None:
                raise InternalError(f"Site {site_id} not found")
            row.health_status = "healthy" if result.healthy else "unhealthy"
            row.health_status_code = result.status_code
            row.health_response_ms = result.response_time_ms
            row.last_health_check = checked_at

    # ---------- schedules ----------

    def scan_due_schedules(self, now: datetime) -> List[ScheduleRecord]:
        """Enabled schedules whose next run is due; never-run schedules count as due."""
        with self._session() as db:
            rows = (
                db.query(Schedule)
                .filter(
                    Schedule.enabled.is_(True),
                    or_(Schedule.next_run_time.is_(None), Schedule.next_run_time <= now),
                )
                .order_by(Schedule.schedule_id)
                .all()
            )
            schedules = []
            for row in rows:
                try:
                    schedules.append(_schedule_record(row))
                except PydanticValidationError as e:
                    logger.error(
                        f"Skipping malformed schedule {row.schedule_id}: {e.errors()[0].get('msg')}",
                        extra={"schedule_id": row.schedule_id, "site_id": row.site_id},
                    )
            return schedules

    def claim_schedule(self, schedule_id: str, expected_next_run: Optional[datetime], **fields) -> bool:
        """Apply ``fields`` only if the schedule's next run still equals ``expected_next_run``.

        Returns False when a concurrent sweep already moved the schedule.
        """
        _check_fields(fields, SCHEDULE_FIELDS, "schedule")
        with self._session() as db:
            query = db.query(Schedule).filter(Schedule.schedule_id == schedule_id, Schedule.enabled.is_(True))
            if expected_next_run is None:
                query = query.filter(Schedule.next_run_time.is_(None))
            else:
                query = query.filter(Schedule.next_run_time == expected_next_run)
            return query.update(fields, synchronize_session=False) == 1

    def update_schedule(self, schedule_id: str, **fields) -> None:
        _check_fields(fields, SCHEDULE_FIELDS, "schedule")
        with self._session() as db:
            row = db.get(Schedule, schedule_id)
            if row is None:
                raise InternalError(f"Schedule {schedule_id} not found")
            for key, value in fields.items():
                setattr(row, key, value)

    # ---------- content ----------

    def save_content(self, job_id: str, site_id: str, topic_id: str, content: GeneratedContent) -> str:
        content_id = f"{job_id}-{uuid.uuid4().hex[:8]}"
        with self._session() as db:
            db.add(GeneratedPost(
                content_id=content_id,
                job_id=job_id,
                site_id=site_id,
                topic_id=topic_id,
                content=content.model_dump(),
            ))
        return content_id

    # ---------- reconciliation ----------

    def find_unreconciled_topics(self) -> List[ReconciliationEntry]:
        """Published topics whose last dispatched job failed or never got recorded."""
        with self._session() as db:
            rows = (
                db.query(Topic, Job)
                .outerjoin(Job, Job.job_id == Topic.last_job_id)
                .filter(
                    Topic.status == TopicStatus.PUBLISHED.value,
                    Topic.last_job_id.isnot(None),
                    or_(Job.job_id.is_(None), Job.status == JobStatus.FAILED.value),
                )
                .order_by(Topic.site_id, Topic.id)
                .all()
            )
            return [
                ReconciliationEntry(
                    topic_id=topic.id,
                    site_id=topic.site_id,
                    topic_title=topic.title,
                    job_id=topic.last_job_id,
                    job_status=job.status if job else None,
                    error_message=job.error_message if job else None,
                )
                for topic, job in rows
            ]
