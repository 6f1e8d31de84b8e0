"""
Site and topic schemas.
"""
import enum
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr


class AIProvider(str, enum.Enum):
    """Content generation backends a site can select."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class TopicStatus(str, enum.Enum):
    """Topic approval/publication status."""

    PENDING = "pending"
    APPROVED = "approved"
    PUBLISHED = "published"
    REJECTED = "rejected"


class GenerationSettings(BaseModel):
    """Per-site generation settings, immutable for the duration of a job."""
    model_config = ConfigDict(frozen=True)

    tone: str = "professional"
    audience: str = "general readers"
    length: str = "800-1200"
    # Settings blobs written by the WordPress plugin use camelCase keys
    auto_publish: bool = Field(default=False, validation_alias=AliasChoices("auto_publish", "autoPublish"))
    ai_provider: AIProvider = Field(default=AIProvider.OPENAI, validation_alias=AliasChoices("ai_provider", "aiProvider"))
    default_categories: List[int] = Field(
        default=[], validation_alias=AliasChoices("default_categories", "defaultCategories")
    )


class SiteConfig(BaseModel):
    """A WordPress publish target."""
    model_config = ConfigDict(frozen=True)

    site_id: str
    name: str
    url: str
    username: str
    app_password: SecretStr
    settings: GenerationSettings = GenerationSettings()


class TopicRecord(BaseModel):
    """A candidate subject for a blog post."""
    model_config = ConfigDict(frozen=True)

    id: str
    site_id: str
    title: str
    description: Optional[str] = None
    keywords: List[str] = []
    status: TopicStatus
    published_at: Optional[datetime] = None
    wordpress_post_id: Optional[int] = None
    last_job_id: Optional[str] = None


class SiteHealthResponse(BaseModel):
    """Health check result for a site."""
    site_id: str
    url: str
    healthy: bool
    status_code: int
    response_time_ms: int
    last_checked: datetime
    error: Optional[str] = None
