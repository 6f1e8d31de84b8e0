"""
Job management endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException

from autoblogger_backend.core.deps import get_job_service, get_store
from autoblogger_backend.core.errors import ConfigurationError, InternalError
from autoblogger_backend.schemas.job import BlogNowRequest, BlogNowResponse, JobRecord
from autoblogger_backend.services.job_service import JobService
from autoblogger_backend.services.job_store import JobStore

router = APIRouter()


@router.post("/blog-now", response_model=BlogNowResponse)
async def blog_now(
    request: BlogNowRequest,
    service: JobService = Depends(get_job_service),
):
    """Queue generation and publication of one approved topic."""
    try:
        job = await service.create_job(site_id=request.site_id, topic_id=request.topic_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except InternalError as e:
        raise HTTPException(status_code=500, detail=e.message)

    return BlogNowResponse(
        success=True,
        job_id=job.job_id,
        status=job.status,
        message="Blog generation queued",
    )


@router.get("/{job_id}/status", response_model=JobRecord)
async def get_job_status(
    job_id: str,
    store: JobStore = Depends(get_store),
):
    """Get job status."""
    job = store.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job
