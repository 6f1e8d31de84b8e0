"""
Error taxonomy for job orchestration.

Every error carries the job error ``kind`` it is recorded under when the
orchestrator turns it into a failed job.
"""
from autoblogger_backend.schemas.job import JobErrorKind

MAX_ERROR_CHARS = 300


def short_message(message: str, limit: int = MAX_ERROR_CHARS) -> str:
    """Collapse whitespace and truncate a message for persisted job errors."""
    text = " ".join(str(message or "").split())
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


class AutoBloggerError(Exception):
    """Base class for all orchestration errors."""

    kind = JobErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(short_message(message))
        self.message = short_message(message)


class ConfigurationError(AutoBloggerError):
    """Missing site/topic/API key or unknown provider identifier."""


class ValidationError(AutoBloggerError):
    """Publish target is unreachable, unauthenticated or misconfigured."""

    kind = JobErrorKind.VALIDATION


class GenerationError(AutoBloggerError):
    """AI backend failed or returned an unusable response."""

    kind = JobErrorKind.GENERATION


class PublishError(AutoBloggerError):
    """Publish target rejected the post."""

    kind = JobErrorKind.PUBLISH


class InternalError(AutoBloggerError):
    """Store read/write failure or an illegal state transition."""
