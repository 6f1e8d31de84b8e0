"""
WordPress REST communication: target validation, post publishing, health checks.
"""
import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List

import requests
from requests.auth import HTTPBasicAuth

from autoblogger_backend.core.config import Settings
from autoblogger_backend.core.errors import short_message
from autoblogger_backend.schemas.content import GeneratedContent, HealthResult, PublishResult, ValidationResult
from autoblogger_backend.schemas.site import SiteConfig

logger = logging.getLogger(__name__)

POSTS_PATH = "/wp-json/wp/v2/posts"
TAGS_PATH = "/wp-json/wp/v2/tags"


def posts_endpoint(site: SiteConfig) -> str:
    return site.url.rstrip("/") + POSTS_PATH


def _upstream_error(response: requests.Response) -> str:
    """Error text from a WordPress error response, preferring its JSON message."""
    try:
        data = response.json()
        if isinstance(data, dict):
            message = data.get("message") or data.get("error")
            if message:
                return short_message(message)
    except ValueError:
        pass
    return short_message(response.text or response.reason or f"Status {response.status_code}")


class WordPressService:
    """Validator and publisher for WordPress sites using application passwords."""

    def __init__(self, validate_timeout_s: float = 10, publish_timeout_s: float = 30):
        self.validate_timeout_s = validate_timeout_s
        self.publish_timeout_s = publish_timeout_s

    @classmethod
    def from_settings(cls, settings: Settings) -> "WordPressService":
        return cls(settings.WP_VALIDATE_TIMEOUT_S, settings.WP_PUBLISH_TIMEOUT_S)

    @staticmethod
    def _auth(site: SiteConfig) -> HTTPBasicAuth:
        return HTTPBasicAuth(site.username, site.app_password.get_secret_value())

    # ---------- validation ----------

    async def validate_site(self, site: SiteConfig) -> ValidationResult:
        """Confirm the posts endpoint is reachable and the credentials work."""
        return await asyncio.to_thread(self._validate_site, site)

    def _validate_site(self, site: SiteConfig) -> ValidationResult:
        url = posts_endpoint(site)
        logger.info(f"Validating WordPress connection: {url}", extra={"site_id": site.site_id})
        try:
            response = requests.get(
                url,
                params={"per_page": 1},
                auth=self._auth(site),
                headers={"Accept": "application/json"},
                timeout=self.validate_timeout_s,
            )
        except requests.Timeout:
            return ValidationResult(is_valid=False, error="WordPress connection timeout")
        except requests.RequestException as e:
            return ValidationResult(is_valid=False, error=short_message(f"Cannot connect to WordPress: {e}"))

        status = response.status_code
        if status == 200:
            return ValidationResult(is_valid=True, status_code=status)
        if status == 401:
            return ValidationResult(is_valid=False, status_code=status, error="Invalid WordPress credentials")
        if status == 404:
            return ValidationResult(
                is_valid=False,
                status_code=status,
                error="WordPress REST API not found. Ensure permalinks are enabled.",
            )
        return ValidationResult(
            is_valid=False,
            status_code=status,
            error=short_message(f"WordPress API returned status {status}: {response.reason or ''}".rstrip(": ")),
        )

    # ---------- terms ----------

    def ensure_tag(self, site: SiteConfig, name: str) -> int:
        """Id of the site's tag called ``name``, creating the tag when missing."""
        url = site.url.rstrip("/") + TAGS_PATH
        response = requests.get(
            url,
            params={"search": name, "per_page": 100},
            auth=self._auth(site),
            headers={"Accept": "application/json"},
            timeout=self.validate_timeout_s,
        )
        response.raise_for_status()
        for term in response.json():
            if (term.get("name") or "").strip().lower() == name.lower():
                return int(term["id"])

        response = requests.post(
            url,
            json={"name": name},
            auth=self._auth(site),
            headers={"Accept": "application/json"},
            timeout=self.validate_timeout_s,
        )
        response.raise_for_status()
        return int(response.json()["id"])

    def resolve_tag_ids(self, site: SiteConfig, names: Iterable[str]) -> List[int]:
        """Tag ids for keyword names; a keyword whose tag cannot be resolved is left out."""
        ids: List[int] = []
        for name in names:
            name = (name or "").strip()
            if not name:
                continue
            try:
                tag_id = self.ensure_tag(site, name)
            except (requests.RequestException, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Skipping tag {name!r}: {e.__class__.__name__}", extra={"site_id": site.site_id})
                continue
            if tag_id not in ids:
                ids.append(tag_id)
        return ids

    # ---------- publishing ----------

    @staticmethod
    def build_post_payload(site: SiteConfig, content: GeneratedContent, tag_ids: Iterable[int] = ()) -> Dict[str, Any]:
        title = content.title or "Untitled Post"
        return {
            "title": title,
            "content": content.content,
            "excerpt": content.excerpt,
            "status": "publish" if site.settings.auto_publish else "draft",
            "categories": list(site.settings.default_categories),
            "tags": list(tag_ids),
            "meta": {
                "_yoast_wpseo_title": content.seo_title or title[:60],
                "_yoast_wpseo_metadesc": content.seo_description,
            },
        }

    async def publish_post(self, site: SiteConfig, content: GeneratedContent) -> PublishResult:
        """Create a post on the site; any non-201 answer is a failed publish."""
        return await asyncio.to_thread(self._publish_post, site, content)

    def _publish_post(self, site: SiteConfig, content: GeneratedContent) -> PublishResult:
        url = posts_endpoint(site)
        tag_ids = self.resolve_tag_ids(site, content.keywords)
        logger.info(f"Publishing post to WordPress: {url}", extra={"site_id": site.site_id})
        try:
            response = requests.post(
                url,
                json=self.build_post_payload(site, content, tag_ids),
                auth=self._auth(site),
                headers={"Accept": "application/json"},
                timeout=self.publish_timeout_s,
            )
        except requests.Timeout:
            return PublishResult(success=False, error="WordPress publish timeout")
        except requests.RequestException as e:
            return PublishResult(success=False, error=short_message(f"Cannot connect to WordPress: {e}"))

        if response.status_code != 201:
            error = _upstream_error(response)
            logger.error(f"WordPress publishing failed: {response.status_code} - {error}")
            return PublishResult(success=False, error=error)

        try:
            post = response.json()
            post_id = int(post["id"])
        except (ValueError, KeyError, TypeError):
            return PublishResult(success=False, error="WordPress returned an unreadable post response")

        logger.info(f"Post published to WordPress, post_id: {post_id}", extra={"site_id": site.site_id})
        return PublishResult(success=True, post_id=post_id, url=post.get("link"))

    # ---------- health ----------

    async def check_health(self, url: str) -> HealthResult:
        return await asyncio.to_thread(self._check_health, url)

    def _check_health(self, url: str) -> HealthResult:
        started = time.monotonic()
        try:
            response = requests.get(url, timeout=self.validate_timeout_s)
        except requests.Timeout:
            return HealthResult(
                healthy=False,
                response_time_ms=int((time.monotonic() - started) * 1000),
                error="Request timeout",
            )
        except requests.RequestException as e:
            return HealthResult(
                healthy=False,
                response_time_ms=int((time.monotonic() - started) * 1000),
                error=short_message(str(e)),
            )

        return HealthResult(
            healthy=200 <= response.status_code < 400,
            status_code=response.status_code,
            response_time_ms=int((time.monotonic() - started) * 1000),
        )
