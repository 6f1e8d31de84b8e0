"""Pytest fixtures for AutoBlogger backend tests."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from autoblogger_backend.core.config import Settings
from autoblogger_backend.db.base import Schedule, Site, Topic
from autoblogger_backend.db.init_db import init_db
from autoblogger_backend.db.session import make_engine, make_session_factory
from autoblogger_backend.schemas.content import (
    GeneratedContent,
    GenerationResult,
    PublishResult,
    ValidationResult,
)
from autoblogger_backend.services.blog_processor import BlogProcessor
from autoblogger_backend.services.job_store import JobStore

NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)


# --- Database Fixtures ---

@pytest.fixture
def session_factory(tmp_path):
    """Fresh SQLite database file per test."""
    engine = make_engine(f"sqlite:///{tmp_path / 'autoblogger-test.db'}")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> JobStore:
    return JobStore(session_factory)


@pytest.fixture
def add_site(session_factory):
    """Factory fixture inserting a site row."""
    def _add(site_id: str = "site-1", **overrides) -> str:
        values = {
            "site_id": site_id,
            "name": "Example Garden Blog",
            "url": "https://blog.example.com",
            "wp_username": "editor",
            "wp_app_password": "abcd efgh ijkl mnop",
            "settings": {
                "tone": "friendly",
                "audience": "home gardeners",
                "length": "900-1100",
                "autoPublish": True,
                "aiProvider": "openai",
                "defaultCategories": [3],
            },
        }
        values.update(overrides)
        with session_factory() as db:
            db.add(Site(**values))
            db.commit()
        return site_id
    return _add


@pytest.fixture
def add_topic(session_factory):
    """Factory fixture inserting a topic row."""
    def _add(topic_id: str = "topic-1", site_id: str = "site-1", status: str = "approved", **overrides) -> str:
        values = {
            "id": topic_id,
            "site_id": site_id,
            "title": f"Growing tomatoes on a balcony ({topic_id})",
            "description": "Container varieties, watering and support",
            "status": status,
        }
        values.update(overrides)
        with session_factory() as db:
            db.add(Topic(**values))
            db.commit()
        return topic_id
    return _add


@pytest.fixture
def add_schedule(session_factory):
    """Factory fixture inserting a schedule row."""
    def _add(schedule_id: str = "schedule-1", site_id: str = "site-1", **overrides) -> str:
        values = {
            "schedule_id": schedule_id,
            "site_id": site_id,
            "user_id": "user-1",
            "frequency": "daily",
            "posts_per_interval": 1,
            "enabled": True,
            "next_run_time": NOW.replace(minute=0),
            "fixed_times": ["08:15"],
        }
        values.update(overrides)
        with session_factory() as db:
            db.add(Schedule(**values))
            db.commit()
        return schedule_id
    return _add


# --- Settings Fixtures ---

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        OPENAI_API_KEY="sk-test",
        ANTHROPIC_API_KEY="sk-ant-test",
        AI_TIMEOUT_S=5,
    )


# --- Mock Fixtures ---

@pytest.fixture
def wordpress() -> MagicMock:
    """WordPress service that accepts the site and publishes post 42."""
    service = MagicMock()
    service.validate_site = AsyncMock(return_value=ValidationResult(is_valid=True, status_code=200))
    service.publish_post = AsyncMock(
        return_value=PublishResult(success=True, post_id=42, url="https://site/x")
    )
    return service


@pytest.fixture
def provider() -> MagicMock:
    """Content provider returning a fixed post."""
    mock = MagicMock()
    mock.generate_content = AsyncMock(
        return_value=GenerationResult(content=GeneratedContent(title="X", content="<p>Y</p>"))
    )
    return mock


@pytest.fixture
def provider_factory(provider) -> MagicMock:
    return MagicMock(return_value=provider)


@pytest.fixture
def processor(store, wordpress, test_settings, provider_factory) -> BlogProcessor:
    return BlogProcessor(store, wordpress, test_settings, provider_factory=provider_factory)
