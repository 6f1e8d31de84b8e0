"""Tests for the job store accessor."""
from datetime import timedelta

import pytest

from autoblogger_backend.core.errors import ConfigurationError, InternalError
from autoblogger_backend.db.base import GeneratedPost, Site, utc_now
from autoblogger_backend.schemas.content import GeneratedContent, HealthResult
from autoblogger_backend.schemas.job import JobError, JobErrorKind, JobStatus
from autoblogger_backend.schemas.scheduler import Frequency
from autoblogger_backend.schemas.site import AIProvider, TopicStatus

from conftest import NOW


class TestJobs:

    def test_round_trip_of_completion_fields(self, store):
        job = store.create_job("topic-1", "site-1")
        started = utc_now()
        store.update_job_status(job.job_id, JobStatus.PROCESSING, started_at=started)
        store.update_job_status(
            job.job_id,
            JobStatus.COMPLETED,
            completed_at=started + timedelta(seconds=5),
            wordpress_post_id=42,
            published_url="https://site/x",
        )

        stored = store.get_job(job.job_id)
        assert stored.status is JobStatus.COMPLETED
        assert stored.wordpress_post_id == 42
        assert stored.published_url == "https://site/x"
        assert stored.started_at == started
        assert stored.completed_at.tzinfo is not None

    def test_failure_error_is_stored_with_kind(self, store):
        job = store.create_job("topic-1", "site-1")
        store.update_job_status(job.job_id, JobStatus.PROCESSING)
        store.update_job_status(
            job.job_id,
            JobStatus.FAILED,
            failed_at=utc_now(),
            error={"message": "OpenAI request timed out after 60s", "kind": "generation"},
        )

        stored = store.get_job(job.job_id)
        assert stored.error == JobError(message="OpenAI request timed out after 60s", kind=JobErrorKind.GENERATION)
        assert stored.failed_at is not None

    def test_unknown_job(self, store):
        assert store.get_job("missing") is None
        with pytest.raises(InternalError, match="not found"):
            store.update_job_status("missing", JobStatus.PROCESSING)

    def test_expected_status_guards_the_start(self, store):
        job = store.create_job("topic-1", "site-1")

        started = store.update_job_status(job.job_id, JobStatus.PROCESSING, expected=JobStatus.QUEUED)
        assert started.status is JobStatus.PROCESSING

        with pytest.raises(InternalError, match="is processing, expected queued"):
            store.update_job_status(job.job_id, JobStatus.PROCESSING, expected=JobStatus.QUEUED, title="again")
        stored = store.get_job(job.job_id)
        assert stored.status is JobStatus.PROCESSING
        assert stored.title is None

    def test_expected_status_on_unknown_job(self, store):
        with pytest.raises(InternalError, match="not found"):
            store.update_job_status("missing", JobStatus.PROCESSING, expected=JobStatus.QUEUED)

    def test_unknown_fields_are_rejected(self, store):
        job = store.create_job("topic-1", "site-1")

        with pytest.raises(InternalError, match="Unknown job fields: status_code"):
            store.update_job_status(job.job_id, JobStatus.PROCESSING, status_code=500)


class TestTopicsAndSites:

    def test_topic_lookup_is_scoped_to_site(self, store, add_site, add_topic):
        add_site("site-1")
        add_site("site-2")
        add_topic("topic-1", "site-1")

        assert store.get_topic("topic-1", "site-1").status is TopicStatus.APPROVED
        assert store.get_topic("topic-1", "site-2") is None

    def test_list_approved_topics(self, store, add_site, add_topic):
        add_site()
        add_topic("topic-a")
        add_topic("topic-b", status="pending")
        add_topic("topic-c")
        add_topic("topic-d", status="published")

        assert [t.id for t in store.list_approved_topics("site-1")] == ["topic-a", "topic-c"]

    def test_update_topic_status(self, store, add_site, add_topic):
        add_site()
        add_topic()

        topic = store.update_topic_status(
            "topic-1", "site-1", TopicStatus.PUBLISHED, wordpress_post_id=42, last_job_id="job-1"
        )

        assert topic.status is TopicStatus.PUBLISHED
        assert topic.wordpress_post_id == 42
        assert store.get_topic("topic-1", "site-1").last_job_id == "job-1"

    def test_site_settings_accept_plugin_keys(self, store, add_site):
        add_site(settings={"tone": "witty", "autoPublish": True, "aiProvider": "anthropic"})

        site = store.get_site("site-1")
        assert site.settings.tone == "witty"
        assert site.settings.auto_publish is True
        assert site.settings.ai_provider is AIProvider.ANTHROPIC
        assert site.app_password.get_secret_value() == "abcd efgh ijkl mnop"

    def test_unknown_provider_in_settings_is_configuration_error(self, store, add_site):
        add_site(settings={"aiProvider": "gemini"})

        with pytest.raises(ConfigurationError, match="Invalid settings for site site-1"):
            store.get_site("site-1")

    def test_update_site_health(self, store, add_site, session_factory):
        add_site()

        store.update_site_health("site-1", HealthResult(healthy=True, status_code=200, response_time_ms=87), NOW)

        with session_factory() as db:
            row = db.get(Site, "site-1")
            assert row.health_status == "healthy"
            assert row.health_response_ms == 87


class TestSchedules:

    def test_scan_returns_due_enabled_schedules(self, store, add_site, add_schedule):
        add_site()
        add_schedule("due", next_run_time=NOW - timedelta(minutes=1))
        add_schedule("never-run", next_run_time=None)
        add_schedule("future", next_run_time=NOW + timedelta(hours=1))
        add_schedule("disabled", enabled=False, next_run_time=NOW - timedelta(days=1))

        due = store.scan_due_schedules(NOW)

        assert [s.schedule_id for s in due] == ["due", "never-run"]
        assert due[0].frequency is Frequency.DAILY

    def test_malformed_schedule_is_skipped(self, store, add_site, add_schedule):
        add_site()
        add_schedule("bad-frequency", frequency="hourly")
        add_schedule("bad-clock", fixed_times=["25:00"])
        add_schedule("good")

        assert [s.schedule_id for s in store.scan_due_schedules(NOW)] == ["good"]

    def test_update_schedule(self, store, add_site, add_schedule):
        add_site()
        add_schedule(next_run_time=NOW - timedelta(minutes=5))
        next_run = NOW + timedelta(days=1)

        store.update_schedule("schedule-1", next_run_time=next_run, last_run_time=NOW)

        assert store.scan_due_schedules(NOW) == []
        [schedule] = store.scan_due_schedules(NOW + timedelta(days=2))
        assert schedule.next_run_time == next_run
        assert schedule.last_run_time == NOW

    def test_claim_schedule_applies_once(self, store, add_site, add_schedule):
        add_site()
        due_at = NOW - timedelta(minutes=5)
        add_schedule(next_run_time=due_at)
        [scanned] = store.scan_due_schedules(NOW)

        assert store.claim_schedule("schedule-1", scanned.next_run_time, next_run_time=NOW + timedelta(days=1))
        assert not store.claim_schedule("schedule-1", scanned.next_run_time, next_run_time=NOW + timedelta(days=2))

        [schedule] = store.scan_due_schedules(NOW + timedelta(days=3))
        assert schedule.next_run_time == NOW + timedelta(days=1)

    def test_claim_never_run_schedule(self, store, add_site, add_schedule):
        add_site()
        add_schedule(next_run_time=None)

        assert store.claim_schedule("schedule-1", None, next_run_time=NOW, last_run_time=NOW)
        assert not store.claim_schedule("schedule-1", None, next_run_time=NOW)

    def test_claim_ignores_disabled_schedule(self, store, add_site, add_schedule):
        add_site()
        add_schedule(enabled=False)

        assert not store.claim_schedule("schedule-1", NOW.replace(minute=0), next_run_time=NOW)


class TestContentAndReconciliation:

    def test_save_content(self, store, session_factory):
        job = store.create_job("topic-1", "site-1")

        content_id = store.save_content(
            job.job_id, "site-1", "topic-1", GeneratedContent(title="X", content="<p>Y</p>", keywords=["k"])
        )

        with session_factory() as db:
            row = db.get(GeneratedPost, content_id)
            assert row.job_id == job.job_id
            assert row.content["keywords"] == ["k"]

    def test_published_topics_with_failed_or_missing_jobs(self, store, add_site, add_topic):
        add_site()
        add_topic("topic-failed")
        add_topic("topic-done")
        add_topic("topic-lost")
        add_topic("topic-manual")

        failed = store.create_job("topic-failed", "site-1")
        store.update_job_status(failed.job_id, JobStatus.PROCESSING)
        store.update_job_status(
            failed.job_id, JobStatus.FAILED, error=JobError(message="boom", kind=JobErrorKind.PUBLISH)
        )
        done = store.create_job("topic-done", "site-1")
        store.update_job_status(done.job_id, JobStatus.PROCESSING)
        store.update_job_status(done.job_id, JobStatus.COMPLETED)

        store.update_topic_status("topic-failed", "site-1", TopicStatus.PUBLISHED, last_job_id=failed.job_id)
        store.update_topic_status("topic-done", "site-1", TopicStatus.PUBLISHED, last_job_id=done.job_id)
        store.update_topic_status("topic-lost", "site-1", TopicStatus.PUBLISHED, last_job_id="never-recorded")
        store.update_topic_status("topic-manual", "site-1", TopicStatus.PUBLISHED)

        entries = store.find_unreconciled_topics()

        assert [e.topic_id for e in entries] == ["topic-failed", "topic-lost"]
        assert entries[0].job_status is JobStatus.FAILED
        assert entries[0].error_message == "boom"
        assert entries[1].job_status is None
