"""
Test cases for scheduler models.
Tests validation, immutability of the anchor and serialization of job records.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from scheduler.models import (
    ErrorType, Frequency, JobDueEvent, JobRequest, JobStatus, JobView,
    OperationResult, ScheduledJob, generate_job_id
)


class TestEnums:
    """Test cases for scheduler enums."""

    def test_frequency_values(self):
        assert [f.value for f in Frequency] == ["once", "daily", "weekly", "monthly"]

    def test_status_values(self):
        assert JobStatus("active") == JobStatus.ACTIVE
        assert JobStatus("cancelled") == JobStatus.CANCELLED
        assert JobStatus("error") == JobStatus.ERROR

    def test_invalid_frequency(self):
        with pytest.raises(ValueError):
            Frequency("hourly")


class TestScheduledJob:
    """Test cases for ScheduledJob model."""

    def test_defaults(self):
        """New jobs get an id, active status and once frequency."""
        job = ScheduledJob(date="2030-01-01", time="10:00")

        assert len(job.id) == 32
        assert job.status == JobStatus.ACTIVE
        assert job.frequency == Frequency.ONCE
        assert job.crawl_config == {}
        assert job.name is None

    def test_ids_are_unique(self):
        assert generate_job_id() != generate_job_id()

    def test_anchor_is_immutable(self):
        """Date, time and id cannot be reassigned after creation."""
        job = ScheduledJob(date="2030-01-01", time="10:00")

        with pytest.raises(ValidationError):
            job.date = "2031-01-01"
        with pytest.raises(ValidationError):
            job.time = "11:00"
        with pytest.raises(ValidationError):
            job.id = "other"

    def test_mutable_fields(self):
        job = ScheduledJob(date="2030-01-01", time="10:00")

        job.name = "Weekly audit"
        job.frequency = Frequency.WEEKLY
        job.status = JobStatus.CANCELLED

        assert job.name == "Weekly audit"
        assert job.frequency == Frequency.WEEKLY
        assert job.status == JobStatus.CANCELLED

    def test_json_round_trip_preserves_record(self):
        job = ScheduledJob(
            name="Nightly",
            date="2030-01-01",
            time="02:00",
            frequency=Frequency.DAILY,
            crawl_config={"mode": "url", "url": "https://example.com"},
            status=JobStatus.ERROR
        )

        restored = ScheduledJob.model_validate(job.model_dump(mode="json"))

        assert restored.model_dump() == job.model_dump()

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            ScheduledJob(date="2030-01-01", time="10:00", status="paused")


class TestJobRequest:
    """Test cases for JobRequest model."""

    def test_to_job_copies_fields(self):
        request = JobRequest(
            name="Audit",
            date="2030-05-01",
            time="08:15",
            frequency="weekly",
            crawl_config={"url": "https://example.com"}
        )

        job = request.to_job()

        assert job.name == "Audit"
        assert job.date == "2030-05-01"
        assert job.time == "08:15"
        assert job.frequency == Frequency.WEEKLY
        assert job.crawl_config == {"url": "https://example.com"}

    def test_empty_name_becomes_none(self):
        job = JobRequest(name="", date="2030-05-01", time="08:15").to_job()
        assert job.name is None

    def test_date_and_time_required(self):
        with pytest.raises(ValidationError):
            JobRequest(time="08:15")


class TestResults:
    """Test cases for operation results and views."""

    def test_failure_result(self):
        result = OperationResult.failure(ErrorType.NOT_FOUND, "Scheduled job 'x' not found")

        assert result.success is False
        assert result.error_type == ErrorType.NOT_FOUND
        assert result.job is None
        assert result.warning is None

    def test_failure_with_warning(self):
        result = OperationResult.failure(ErrorType.TRIGGER_CONSTRUCTION, "past", warning="not saved")
        assert result.warning == "not saved"

    def test_job_view_from_job(self):
        job = ScheduledJob(date="2030-01-01", time="10:00")
        next_run = datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)

        view = JobView.from_job(job, next_run=next_run, is_active=True)

        assert view.id == job.id
        assert view.next_run == next_run
        assert view.is_active is True

    def test_due_event(self):
        event = JobDueEvent(
            job_id="abc",
            crawl_config={"url": "https://example.com"},
            frequency=Frequency.DAILY,
            fired_at=datetime(2030, 1, 1, tzinfo=timezone.utc)
        )
        assert event.frequency == Frequency.DAILY
