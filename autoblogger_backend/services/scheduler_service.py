"""
Scheduler service: due-schedule sweeps, topic selection and next-run computation.
"""
import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import List, Optional

from dateutil.relativedelta import relativedelta

from autoblogger_backend.core.errors import AutoBloggerError, short_message
from autoblogger_backend.db.base import utc_now
from autoblogger_backend.schemas.scheduler import (
    Frequency,
    ReconciliationReport,
    ScheduleRecord,
    ScheduleResult,
    SweepResult,
    parse_clock,
)
from autoblogger_backend.schemas.site import TopicRecord, TopicStatus
from autoblogger_backend.services.job_service import JobService
from autoblogger_backend.services.job_store import JobStore

logger = logging.getLogger(__name__)

INTERVALS = {
    Frequency.DAILY: relativedelta(days=1),
    Frequency.WEEKLY: relativedelta(days=7),
    Frequency.BIWEEKLY: relativedelta(days=14),
    Frequency.MONTHLY: relativedelta(months=1),
}

DEFAULT_START_HOUR = 9
DEFAULT_END_HOUR = 17
LAST_MINUTE_OF_DAY = 24 * 60 - 1


def advance(moment: datetime, frequency: Frequency) -> datetime:
    """Move a moment forward by one schedule interval."""
    return moment + INTERVALS[Frequency(frequency)]


def _random_minute(start: int, end: int, rng: random.Random) -> int:
    # Degenerate windows resolve to their start
    if end <= start:
        return start
    return rng.randrange(start, end)


def pick_minute_of_day(schedule: ScheduleRecord, rng: random.Random) -> int:
    """Choose the minute of day a run fires at: ranges, then fixed times, then legacy hours."""
    if schedule.time_ranges:
        window = rng.choice(schedule.time_ranges)
        return _random_minute(window.start_minutes, window.end_minutes, rng)

    if schedule.fixed_times:
        return parse_clock(rng.choice(schedule.fixed_times))

    start_hour = DEFAULT_START_HOUR if schedule.start_hour is None else schedule.start_hour
    end_hour = DEFAULT_END_HOUR if schedule.end_hour is None else schedule.end_hour
    return _random_minute(start_hour * 60, end_hour * 60, rng)


def compute_next_run_time(
    schedule: ScheduleRecord,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    anchor: Optional[datetime] = None,
) -> datetime:
    """
    Compute the next run of a schedule, strictly after ``now``.

    Args:
        schedule: Schedule whose frequency and time mode drive the result
        now: Current time (UTC); defaults to the wall clock
        rng: Random source for the jitter
        anchor: Moment the first interval is added to; defaults to ``now``

    Returns:
        Timezone-aware UTC datetime with seconds zeroed
    """
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    rng = rng or random.Random()

    candidate = _at_minute(advance(anchor or now, schedule.frequency), schedule, rng)
    while candidate <= now:
        # Running late: the chosen time already passed, push out another interval
        candidate = _at_minute(advance(candidate, schedule.frequency), schedule, rng)
    return candidate


def _at_minute(day: datetime, schedule: ScheduleRecord, rng: random.Random) -> datetime:
    minute = min(pick_minute_of_day(schedule, rng), LAST_MINUTE_OF_DAY)
    return day.replace(hour=minute // 60, minute=minute % 60, second=0, microsecond=0)


class SchedulerService:
    """Service for running due schedules."""

    def __init__(self, store: JobStore, job_service: JobService, rng: Optional[random.Random] = None):
        self.store = store
        self.job_service = job_service
        self.rng = rng or random.Random()

    async def run_due_schedules(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Process every enabled schedule whose next run is due.

        Schedules run concurrently; one failing schedule never stops the sweep.
        """
        now = now or utc_now()
        try:
            schedules = await asyncio.to_thread(self.store.scan_due_schedules, now)
        except AutoBloggerError as e:
            logger.exception(f"Error scanning schedules: {e}")
            return SweepResult(success=False, error=e.message)

        logger.info(f"Found {len(schedules)} schedules to process")

        results: List[ScheduleResult] = await asyncio.gather(
            *(self._process_schedule_isolated(schedule, now) for schedule in schedules)
        )

        sweep = SweepResult(
            success=True,
            total=len(results),
            processed=sum(1 for r in results if r.status == "processed"),
            skipped=sum(1 for r in results if r.status == "skipped"),
            failed=sum(1 for r in results if r.status == "failed"),
            dispatched=sum(len(r.dispatched_job_ids) for r in results),
            schedules=results,
        )
        logger.info(
            f"Sweep finished: {sweep.processed} processed, {sweep.skipped} skipped, "
            f"{sweep.failed} failed, {sweep.dispatched} jobs dispatched"
        )

        try:
            report = await self.reconciliation_report()
        except AutoBloggerError:
            logger.exception("Could not build reconciliation report")
        else:
            if report.count:
                logger.warning(
                    f"{report.count} topics are marked published without a completed job",
                    extra={"topic_ids": [entry.topic_id for entry in report.entries]},
                )

        return sweep

    async def _process_schedule_isolated(self, schedule: ScheduleRecord, now: datetime) -> ScheduleResult:
        try:
            return await self.process_schedule(schedule, now)
        except Exception as e:  # noqa: BLE001
            logger.exception(f"Error processing schedule {schedule.schedule_id}: {e}")
            return ScheduleResult(
                schedule_id=schedule.schedule_id,
                site_id=schedule.site_id,
                status="failed",
                error=short_message(str(e) or e.__class__.__name__),
            )

    async def process_schedule(self, schedule: ScheduleRecord, now: datetime) -> ScheduleResult:
        """Move a due schedule's next run forward, then dispatch jobs for it."""
        site = await asyncio.to_thread(self.store.get_site, schedule.site_id)
        if site is None:
            logger.warning(f"Site not found: {schedule.site_id}", extra={"schedule_id": schedule.schedule_id})
            return ScheduleResult(schedule_id=schedule.schedule_id, site_id=schedule.site_id, status="skipped")

        next_run = await self.update_next_run_time(schedule, now)
        if next_run is None:
            logger.info(f"Schedule {schedule.schedule_id} already claimed by another sweep")
            return ScheduleResult(schedule_id=schedule.schedule_id, site_id=schedule.site_id, status="skipped")

        topics = await asyncio.to_thread(self.store.list_approved_topics, schedule.site_id)
        job_ids: List[str] = []

        if not topics:
            logger.info(f"No approved topics for site {schedule.site_id}")
        else:
            selected = self.select_topics(topics, schedule.posts_per_interval)
            logger.info(f"Publishing {len(selected)} topics for site {schedule.site_id}")
            for topic in selected:
                try:
                    job = await self.job_service.enqueue(topic.id, schedule.site_id)
                    job_ids.append(job.job_id)
                    # Marked at dispatch time; see reconciliation_report for the gap this leaves
                    await asyncio.to_thread(
                        self.store.update_topic_status,
                        topic.id,
                        schedule.site_id,
                        TopicStatus.PUBLISHED,
                        last_job_id=job.job_id,
                    )
                except AutoBloggerError as e:
                    logger.error(
                        f"Error publishing topic {topic.id}: {e.message}",
                        extra={"schedule_id": schedule.schedule_id, "site_id": schedule.site_id},
                    )

        return ScheduleResult(
            schedule_id=schedule.schedule_id,
            site_id=schedule.site_id,
            status="processed",
            dispatched_job_ids=job_ids,
            next_run_time=next_run,
        )

    def select_topics(self, topics: List[TopicRecord], count: int) -> List[TopicRecord]:
        """Pick up to ``count`` distinct topics uniformly at random."""
        return self.rng.sample(topics, min(count, len(topics)))

    async def update_next_run_time(self, schedule: ScheduleRecord, now: datetime) -> Optional[datetime]:
        """
        Persist the schedule's next run, provided no other sweep moved it since the scan.

        Returns:
            The new next run time, or None when the schedule was already claimed
        """
        next_run = compute_next_run_time(schedule, now=now, rng=self.rng)
        claimed = await asyncio.to_thread(
            self.store.claim_schedule,
            schedule.schedule_id,
            schedule.next_run_time,
            next_run_time=next_run,
            last_run_time=now,
        )
        if not claimed:
            return None
        logger.info(f"Updated next run time for schedule {schedule.schedule_id} to {next_run.isoformat()}")
        return next_run

    async def reconciliation_report(self) -> ReconciliationReport:
        """Topics marked published at dispatch whose job failed or never recorded."""
        entries = await asyncio.to_thread(self.store.find_unreconciled_topics)
        return ReconciliationReport(generated_at=utc_now(), entries=entries)
