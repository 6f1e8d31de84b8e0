"""
Job creation and fire-and-forget dispatch to the orchestrator.
"""
import asyncio
import logging
from typing import Optional, Set

from autoblogger_backend.core.errors import ConfigurationError
from autoblogger_backend.schemas.job import JobRecord
from autoblogger_backend.schemas.site import TopicStatus
from autoblogger_backend.services.blog_processor import BlogProcessor
from autoblogger_backend.services.job_store import JobStore

logger = logging.getLogger(__name__)


class JobService:
    """Service for job creation and dispatch."""

    def __init__(self, store: JobStore, processor: BlogProcessor):
        self.store = store
        self.processor = processor
        self._tasks: Set[asyncio.Task] = set()

    async def create_job(self, site_id: str, topic_id: str) -> JobRecord:
        """
        Queue an on-demand job for an approved topic and start it in the background.

        Raises:
            ConfigurationError: Site or topic missing, or topic not approved
        """
        site, topic = await asyncio.gather(
            asyncio.to_thread(self.store.get_site, site_id),
            asyncio.to_thread(self.store.get_topic, topic_id, site_id),
        )
        if site is None:
            raise ConfigurationError("Site not found")
        if topic is None:
            raise ConfigurationError("Topic not found")
        if topic.status is not TopicStatus.APPROVED:
            raise ConfigurationError(f"Topic is {topic.status.value}; only approved topics can be published")

        return await self.enqueue(topic_id, site_id)

    async def enqueue(self, topic_id: str, site_id: str) -> JobRecord:
        """Create a queued job record and dispatch it."""
        job = await asyncio.to_thread(self.store.create_job, topic_id, site_id)
        logger.info(f"Job {job.job_id} queued for topic {topic_id}", extra={"site_id": site_id})
        self.dispatch(job.job_id, topic_id, site_id)
        return job

    def dispatch(self, job_id: str, topic_id: str, site_id: str) -> asyncio.Task:
        """Start the orchestrator for a job without waiting for it."""
        task = asyncio.create_task(
            self.processor.run_job(job_id, topic_id, site_id),
            name=f"run-job-{job_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for dispatched jobs, e.g. on shutdown."""
        if not self._tasks:
            return
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            logger.warning(f"{len(still_running)} dispatched jobs still running after drain timeout")
