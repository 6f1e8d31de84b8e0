"""
Generated content and WordPress call result schemas.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GeneratedContent(BaseModel):
    """Structured blog post returned by an AI backend."""
    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None
    content: str = Field(min_length=1)
    excerpt: str = ""
    seo_title: str = ""
    seo_description: str = ""
    keywords: List[str] = []


class GenerationOptions(BaseModel):
    """Per-call generation options."""
    model_config = ConfigDict(frozen=True)

    temperature: float = 0.7
    max_output_tokens: int = 4000
    timeout_s: float = 60


class GenerationResult(BaseModel):
    """Either generated content or a short error message, never both."""
    content: Optional[GeneratedContent] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.content is not None and self.error is None


class ValidationResult(BaseModel):
    """Outcome of probing a site's write endpoint."""
    is_valid: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class PublishResult(BaseModel):
    """Outcome of creating a post on the destination site."""
    success: bool
    post_id: Optional[int] = None
    url: Optional[str] = None
    error: Optional[str] = None


class HealthResult(BaseModel):
    """Outcome of a site reachability probe."""
    healthy: bool
    status_code: int = 0
    response_time_ms: int = 0
    error: Optional[str] = None
