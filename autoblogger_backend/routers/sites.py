"""
Site endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException

from autoblogger_backend.core.deps import get_site_service
from autoblogger_backend.schemas.site import SiteHealthResponse
from autoblogger_backend.services.site_service import SiteService

router = APIRouter()


@router.get("/{site_id}/health", response_model=SiteHealthResponse)
async def site_health(site_id: str, service: SiteService = Depends(get_site_service)):
    """Check whether a site is reachable."""
    result = await service.check_health(site_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Site not found")
    return result
