"""
Job orchestrator: validate the target, generate content, publish, finalize.
"""
import asyncio
import logging
from typing import Callable, Optional

from autoblogger_backend.core.ai_providers import ContentProvider, build_prompt, default_options, get_provider
from autoblogger_backend.core.config import Settings, settings as default_settings
from autoblogger_backend.core.errors import (
    AutoBloggerError,
    ConfigurationError,
    GenerationError,
    PublishError,
    ValidationError,
)
from autoblogger_backend.db.base import utc_now
from autoblogger_backend.schemas.job import JobError, JobErrorKind, JobRecord, JobStatus
from autoblogger_backend.schemas.site import TopicStatus
from autoblogger_backend.services.job_store import JobStore
from autoblogger_backend.services.wordpress_service import WordPressService

logger = logging.getLogger(__name__)

ProviderFactory = Callable[..., ContentProvider]


class BlogProcessor:
    """Drives one job through validate -> generate -> publish -> finalize."""

    def __init__(
        self,
        store: JobStore,
        wordpress: WordPressService,
        settings: Settings = default_settings,
        provider_factory: ProviderFactory = get_provider,
    ):
        self.store = store
        self.wordpress = wordpress
        self.settings = settings
        self.provider_factory = provider_factory

    async def run_job(self, job_id: str, topic_id: str, site_id: str) -> Optional[JobRecord]:
        """
        Process a queued job to a terminal state.

        Never raises: every failure ends as a failed job record. Jobs that
        are not queued (already running or terminal) are left untouched.
        """
        try:
            job = await asyncio.to_thread(self.store.get_job, job_id)
        except AutoBloggerError:
            logger.exception("Could not load job", extra={"job_id": job_id})
            return None

        if job is None:
            logger.error("Job not found", extra={"job_id": job_id})
            return None
        if job.status is not JobStatus.QUEUED:
            logger.info(f"Job {job_id} is already {job.status.value}, nothing to do")
            return job

        try:
            await asyncio.to_thread(
                self.store.update_job_status,
                job_id,
                JobStatus.PROCESSING,
                expected=JobStatus.QUEUED,
                started_at=utc_now(),
            )
        except AutoBloggerError as e:
            # Lost the start to a concurrent run, or the store is unavailable
            logger.warning(f"Could not start job: {e.message}", extra={"job_id": job_id})
            return None

        try:
            if (job.topic_id, job.site_id) != (topic_id, site_id):
                raise ConfigurationError("Job does not belong to the requested topic and site")
            return await self._process(job_id, topic_id, site_id)
        except AutoBloggerError as e:
            return await self._fail(job_id, e.kind, e.message)
        except Exception as e:  # noqa: BLE001
            logger.exception("Blog processing failed unexpectedly", extra={"job_id": job_id})
            return await self._fail(job_id, JobErrorKind.INTERNAL, f"Unexpected error: {e.__class__.__name__}")

    async def _process(self, job_id: str, topic_id: str, site_id: str) -> JobRecord:
        site, topic = await asyncio.gather(
            asyncio.to_thread(self.store.get_site, site_id),
            asyncio.to_thread(self.store.get_topic, topic_id, site_id),
        )
        if site is None or topic is None:
            raise ConfigurationError("Site or topic not found")

        logger.info(f"Processing blog for site: {site.name}, topic: {topic.title}", extra={"job_id": job_id})

        # Nothing is generated for a site that fails validation
        validation = await self.wordpress.validate_site(site)
        if not validation.is_valid:
            raise ValidationError(f"WordPress validation failed: {validation.error}")
        logger.info("WordPress validation successful", extra={"job_id": job_id})

        await asyncio.to_thread(self.store.update_job_status, job_id, JobStatus.PROCESSING, title=topic.title)

        provider = self.provider_factory(site.settings.ai_provider, self.settings)
        result = await provider.generate_content(build_prompt(site, topic), default_options(self.settings))
        if not result.ok:
            raise GenerationError(result.error or "Content generation failed")

        content = result.content
        if not content.title:
            content = content.model_copy(update={"title": topic.title})

        await asyncio.to_thread(self.store.save_content, job_id, site_id, topic_id, content)

        publish = await self.wordpress.publish_post(site, content)
        if not publish.success:
            raise PublishError(f"Failed to publish to WordPress: {publish.error}")

        now = utc_now()
        context = {"job_id": job_id, "topic_id": topic_id, "site_id": site_id, "wordpress_post_id": publish.post_id}
        try:
            job = await asyncio.to_thread(
                self.store.update_job_status,
                job_id,
                JobStatus.COMPLETED,
                completed_at=now,
                title=content.title,
                wordpress_post_id=publish.post_id,
                published_url=publish.url,
            )
        except AutoBloggerError:
            logger.error("Post published but job could not be completed", extra=context)
            raise

        try:
            await asyncio.to_thread(
                self.store.update_topic_status,
                topic_id,
                site_id,
                TopicStatus.PUBLISHED,
                published_at=now,
                wordpress_post_id=publish.post_id,
                last_job_id=job_id,
            )
        except AutoBloggerError:
            # Job stays completed; the topic needs manual reconciliation
            logger.exception("Job completed but topic status update failed", extra=context)

        logger.info(f"Blog processed successfully, post_id: {publish.post_id}", extra=context)
        return job

    async def _fail(self, job_id: str, kind: JobErrorKind, message: str) -> Optional[JobRecord]:
        logger.error(f"Blog processing failed ({kind.value}): {message}", extra={"job_id": job_id})
        try:
            return await asyncio.to_thread(
                self.store.update_job_status,
                job_id,
                JobStatus.FAILED,
                failed_at=utc_now(),
                error=JobError(message=message, kind=kind),
            )
        except AutoBloggerError:
            logger.exception("Could not record job failure", extra={"job_id": job_id})
            return None
