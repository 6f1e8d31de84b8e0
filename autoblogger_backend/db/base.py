"""
Database models for sites, topics, schedules, jobs and generated posts.
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text

from autoblogger_backend.db.session import Base


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Site(Base):
    """WordPress site model."""
    __tablename__ = "sites"

    site_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)  # WordPress base URL
    wp_username = Column(String, nullable=False)
    wp_app_password = Column(String, nullable=False)  # Application password, opaque here
    settings = Column(JSON, nullable=True)  # tone, audience, length, autoPublish, aiProvider...
    # Health check
    health_status = Column(String, nullable=True)  # healthy, unhealthy
    health_status_code = Column(Integer, nullable=True)
    health_response_ms = Column(Integer, nullable=True)
    last_health_check = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class Topic(Base):
    """Candidate blog topic owned by a site."""
    __tablename__ = "topics"

    id = Column(String, primary_key=True, index=True)
    site_id = Column(String, ForeignKey("sites.site_id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    keywords = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="pending", index=True)  # pending, approved, published, rejected
    published_at = Column(DateTime(timezone=True), nullable=True)
    wordpress_post_id = Column(Integer, nullable=True)
    last_job_id = Column(String, nullable=True)  # Job dispatched for / published by this topic
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class Schedule(Base):
    """Recurring publication policy for a site."""
    __tablename__ = "schedules"

    schedule_id = Column(String, primary_key=True, index=True)
    site_id = Column(String, ForeignKey("sites.site_id"), nullable=False, index=True)
    user_id = Column(String, nullable=True)
    frequency = Column(String, nullable=False, default="daily")  # daily, weekly, biweekly, monthly
    posts_per_interval = Column(Integer, nullable=False, default=1)
    enabled = Column(Boolean, nullable=False, default=True, index=True)
    next_run_time = Column(DateTime(timezone=True), nullable=True, index=True)
    last_run_time = Column(DateTime(timezone=True), nullable=True)
    time_ranges = Column(JSON, nullable=True)  # [{"start": "09:00", "end": "11:00"}]
    fixed_times = Column(JSON, nullable=True)  # ["09:30", "14:00"]
    start_hour = Column(Integer, nullable=True)  # Legacy window
    end_hour = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)


class Job(Base):
    """Content generation and publication job."""
    __tablename__ = "jobs"

    job_id = Column(String, primary_key=True, index=True)
    topic_id = Column(String, nullable=False, index=True)
    site_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="queued")  # queued, processing, completed, failed
    title = Column(String, nullable=True)
    wordpress_post_id = Column(Integer, nullable=True)
    published_url = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
    error_kind = Column(String, nullable=True)  # validation, generation, publish, internal
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)


class GeneratedPost(Base):
    """Content produced by an AI backend for a job."""
    __tablename__ = "generated_posts"

    content_id = Column(String, primary_key=True, index=True)
    job_id = Column(String, ForeignKey("jobs.job_id"), nullable=False, index=True)
    site_id = Column(String, nullable=False)
    topic_id = Column(String, nullable=False)
    content = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)
