"""
Site health checks.
"""
import asyncio
import logging
from typing import Optional

from autoblogger_backend.db.base import utc_now
from autoblogger_backend.schemas.site import SiteHealthResponse
from autoblogger_backend.services.job_store import JobStore
from autoblogger_backend.services.wordpress_service import WordPressService

logger = logging.getLogger(__name__)


class SiteService:
    """Service for site reachability checks."""

    def __init__(self, store: JobStore, wordpress: WordPressService):
        self.store = store
        self.wordpress = wordpress

    async def check_health(self, site_id: str) -> Optional[SiteHealthResponse]:
        """Probe a site's URL and persist the outcome; None when the site is unknown."""
        site = await asyncio.to_thread(self.store.get_site, site_id)
        if site is None:
            return None

        result = await self.wordpress.check_health(site.url)
        checked_at = utc_now()
        await asyncio.to_thread(self.store.update_site_health, site_id, result, checked_at)
        logger.info(
            f"Health check for site {site_id}: {'healthy' if result.healthy else 'unhealthy'}",
            extra={"status_code": result.status_code, "response_time_ms": result.response_time_ms},
        )

        return SiteHealthResponse(
            site_id=site_id,
            url=site.url,
            healthy=result.healthy,
            status_code=result.status_code,
            response_time_ms=result.response_time_ms,
            last_checked=checked_at,
            error=result.error,
        )
