"""
Service wiring shared by the HTTP routers and the periodic sweep.
"""
from functools import lru_cache

from autoblogger_backend.core.config import settings
from autoblogger_backend.db.session import SessionLocal
from autoblogger_backend.services.blog_processor import BlogProcessor
from autoblogger_backend.services.job_service import JobService
from autoblogger_backend.services.job_store import JobStore
from autoblogger_backend.services.scheduler_service import SchedulerService
from autoblogger_backend.services.site_service import SiteService
from autoblogger_backend.services.wordpress_service import WordPressService


@lru_cache
def get_store() -> JobStore:
    return JobStore(SessionLocal)


@lru_cache
def get_wordpress_service() -> WordPressService:
    return WordPressService.from_settings(settings)


@lru_cache
def get_job_service() -> JobService:
    processor = BlogProcessor(get_store(), get_wordpress_service(), settings)
    return JobService(get_store(), processor)


@lru_cache
def get_scheduler_service() -> SchedulerService:
    return SchedulerService(get_store(), get_job_service())


@lru_cache
def get_site_service() -> SiteService:
    return SiteService(get_store(), get_wordpress_service())
