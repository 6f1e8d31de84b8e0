"""
FastAPI main application for AutoBlogger backend.
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI

from autoblogger_backend.core.config import settings
from autoblogger_backend.core.deps import get_job_service, get_scheduler_service
from autoblogger_backend.db.init_db import init_db
from autoblogger_backend.routers import jobs, scheduler, sites

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Periodic timer for schedule sweeps
sweep_scheduler = AsyncIOScheduler(timezone="UTC")

app = FastAPI(
    title="AutoBlogger Backend API",
    description="Job orchestration and scheduling backend for the AutoBlogger WordPress plugin",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(jobs.router, prefix="/v1/jobs", tags=["jobs"])
app.include_router(scheduler.router, prefix="/v1/scheduler", tags=["scheduler"])
app.include_router(sites.router, prefix="/v1/sites", tags=["sites"])


async def process_due_schedules():
    """Background task run by APScheduler for each sweep."""
    try:
        result = await get_scheduler_service().run_due_schedules()
        logger.info(f"Processed schedules: {result.processed}/{result.total}, dispatched {result.dispatched} jobs")
    except Exception as e:
        logger.exception(f"Error processing schedules: {e}")


@app.on_event("startup")
async def startup_event():
    """Initialize database and the sweep timer on startup."""
    init_db()

    if settings.SCHEDULER_ENABLED:
        sweep_scheduler.add_job(
            process_due_schedules,
            trigger=IntervalTrigger(minutes=settings.SCHEDULER_INTERVAL_MINUTES),
            id="process_schedules",
            name="Process due schedules",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        sweep_scheduler.start()
        logger.info(f"APScheduler started - schedules swept every {settings.SCHEDULER_INTERVAL_MINUTES} minutes")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the sweep timer and let dispatched jobs finish."""
    if sweep_scheduler.running:
        sweep_scheduler.shutdown(wait=False)
        logger.info("APScheduler stopped")
    await get_job_service().drain(timeout=settings.DISPATCH_DRAIN_TIMEOUT_S)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "AutoBlogger Backend API", "version": "1.0.0"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
