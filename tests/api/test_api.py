"""
Tests for the FastAPI application.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from api.config import config
from api.main import app
from comparison.models import DiffSummary
from crawler.models import CrawlResult
from scheduler.models import (
    ErrorType, Frequency, JobStatus, JobView, OperationResult, ScheduledJob, ValidationResult
)


@pytest.fixture
def client():
    """Create test client (lifespan not run; services are patched per test)."""
    return TestClient(app)


@pytest.fixture
def job_view():
    job = ScheduledJob(
        name="Weekly audit",
        date="2030-01-07",
        time="09:30",
        frequency=Frequency.WEEKLY,
        crawl_config={"url": "https://example.com"}
    )
    return JobView.from_job(job, next_run=datetime(2030, 1, 7, 9, 30, tzinfo=timezone.utc), is_active=True)


@pytest.fixture
def mock_scheduler():
    """Mock scheduler service."""
    mock = MagicMock()
    for name in ("add", "cancel", "delete", "update_name", "update_frequency"):
        setattr(mock, name, AsyncMock())
    mock.get_scheduler_status.return_value = {
        "running": True,
        "timezone": "UTC",
        "job_count": 1,
        "active_jobs": 1,
        "live_triggers": 1,
        "pending_dispatch": 0
    }
    with patch("api.main.scheduler_service", mock):
        yield mock


@pytest.fixture
def mock_pipeline():
    mock = MagicMock()
    mock.run = AsyncMock()
    with patch("api.main.crawl_pipeline", mock):
        yield mock


def not_found(job_id):
    return OperationResult.failure(ErrorType.NOT_FOUND, f"Scheduled job '{job_id}' not found")


class TestHealth:
    """Test cases for the health endpoint."""

    def test_health_before_startup(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "starting"
        assert "timestamp" in data
        assert data["version"] == config.api_version

    def test_health_with_scheduler(self, client, mock_scheduler):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["scheduler"]["live_triggers"] == 1

    def test_services_unavailable(self, client):
        response = client.get("/schedules")

        assert response.status_code == 503
        assert response.json()["error"] == "Scheduler service not available"


class TestSchedules:
    """Test cases for schedule endpoints."""

    def test_list(self, client, mock_scheduler, job_view):
        mock_scheduler.list_jobs.return_value = [job_view]

        response = client.get("/schedules")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["jobs"][0]["id"] == job_view.id
        assert data["jobs"][0]["is_active"] is True
        assert data["jobs"][0]["frequency"] == "weekly"

    def test_create(self, client, mock_scheduler, job_view):
        mock_scheduler.add.return_value = OperationResult(success=True, job=job_view, next_run=job_view.next_run)

        response = client.post("/schedules", json={
            "name": "Weekly audit",
            "date": "2030-01-07",
            "time": "09:30",
            "frequency": "weekly",
            "crawl_config": {"url": "https://example.com"}
        })

        assert response.status_code == 201
        assert response.json()["job"]["id"] == job_view.id
        request = mock_scheduler.add.call_args.args[0]
        assert request.frequency == Frequency.WEEKLY
        assert request.crawl_config == {"url": "https://example.com"}

    def test_create_with_persistence_warning(self, client, mock_scheduler, job_view):
        mock_scheduler.add.return_value = OperationResult(success=True, job=job_view, warning="could not be saved")

        response = client.post("/schedules", json={"date": "2030-01-07", "time": "09:30"})

        assert response.status_code == 201
        assert response.json()["warning"] == "could not be saved"

    def test_create_past_date(self, client, mock_scheduler):
        mock_scheduler.add.return_value = OperationResult.failure(
            ErrorType.VALIDATION, "Date and time must be in the future"
        )

        response = client.post("/schedules", json={"date": "2000-01-01", "time": "09:30"})

        assert response.status_code == 400
        assert response.json()["error_type"] == "validation"

    def test_create_trigger_failure(self, client, mock_scheduler, job_view):
        error_job = job_view.model_copy(update={"status": JobStatus.ERROR, "is_active": False, "next_run": None})
        mock_scheduler.add.return_value = OperationResult.failure(
            ErrorType.TRIGGER_CONSTRUCTION, "Run time is not in the future", job=error_job
        )

        response = client.post("/schedules", json={"date": "2030-01-07", "time": "09:30"})

        assert response.status_code == 422
        assert response.json()["job"]["status"] == "error"

    def test_create_missing_fields(self, client, mock_scheduler):
        response = client.post("/schedules", json={"time": "09:30"})

        assert response.status_code == 422
        mock_scheduler.add.assert_not_called()

    def test_validate(self, client, mock_scheduler):
        mock_scheduler.validate.return_value = ValidationResult(valid=False, error="Date and time must be in the future")

        response = client.post("/schedules/validate", json={"date": "2000-01-01", "time": "10:00"})

        assert response.status_code == 200
        assert response.json() == {"valid": False, "error": "Date and time must be in the future"}
        mock_scheduler.validate.assert_called_once_with("2000-01-01", "10:00")

    def test_cancel(self, client, mock_scheduler, job_view):
        cancelled = job_view.model_copy(update={"status": JobStatus.CANCELLED, "is_active": False})
        mock_scheduler.cancel.return_value = OperationResult(success=True, job=cancelled)

        response = client.post(f"/schedules/{job_view.id}/cancel")

        assert response.status_code == 200
        assert response.json()["job"]["status"] == "cancelled"
        mock_scheduler.cancel.assert_awaited_once_with(job_view.id)

    @pytest.mark.parametrize("method,path,body", [
        ("post", "/schedules/missing/cancel", None),
        ("delete", "/schedules/missing", None),
        ("patch", "/schedules/missing/name", {"name": "x"}),
        ("patch", "/schedules/missing/frequency", {"frequency": "daily"}),
    ])
    def test_unknown_job(self, client, mock_scheduler, method, path, body):
        for name in ("cancel", "delete", "update_name", "update_frequency"):
            getattr(mock_scheduler, name).return_value = not_found("missing")

        kwargs = {"json": body} if body is not None else {}
        response = client.request(method.upper(), path, **kwargs)

        assert response.status_code == 404
        assert response.json()["error"] == "Scheduled job 'missing' not found"

    def test_delete(self, client, mock_scheduler):
        mock_scheduler.delete.return_value = OperationResult(success=True)

        response = client.delete("/schedules/abc")

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_rename(self, client, mock_scheduler, job_view):
        mock_scheduler.update_name.return_value = OperationResult(success=True, job=job_view)

        response = client.patch(f"/schedules/{job_view.id}/name", json={"name": "Weekly audit"})

        assert response.status_code == 200
        mock_scheduler.update_name.assert_awaited_once_with(job_view.id, "Weekly audit")

    def test_update_frequency(self, client, mock_scheduler, job_view):
        mock_scheduler.update_frequency.return_value = OperationResult(success=True, job=job_view)

        response = client.patch(f"/schedules/{job_view.id}/frequency", json={"frequency": "monthly"})

        assert response.status_code == 200
        mock_scheduler.update_frequency.assert_awaited_once_with(job_view.id, Frequency.MONTHLY)

    def test_update_frequency_rejects_unknown_value(self, client, mock_scheduler):
        response = client.patch("/schedules/abc/frequency", json={"frequency": "hourly"})

        assert response.status_code == 422
        mock_scheduler.update_frequency.assert_not_called()


class TestCrawls:
    """Test cases for the immediate crawl endpoint."""

    def test_successful_crawl(self, client, mock_pipeline):
        mock_pipeline.run.return_value = CrawlResult(
            success=True,
            base_name="example_20240201_100000",
            duration_seconds=12.5,
            files=["internal_all.xlsx"],
            comparison=DiffSummary(previous_total=10, current_total=11, added=1, removed=0, changed=2)
        )

        response = client.post("/crawls", json={"url": "https://example.com"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["comparison"]["changed"] == 2
        assert mock_pipeline.run.call_args.args[0].url == "https://example.com"

    def test_failed_crawl(self, client, mock_pipeline):
        mock_pipeline.run.return_value = CrawlResult(success=False, error="Screaming Frog failed: exit code 1")

        response = client.post("/crawls", json={"url": "https://example.com"})

        assert response.status_code == 502
        assert response.json()["error"] == "Screaming Frog failed: exit code 1"

    def test_invalid_request(self, client, mock_pipeline):
        response = client.post("/crawls", json={"mode": "file"})

        assert response.status_code == 422
        mock_pipeline.run.assert_not_called()


class TestPathSettings:
    """Test cases for the path settings endpoints."""

    @pytest.fixture
    def loaded_settings(self, settings):
        with patch("api.main.app_settings", settings):
            yield settings

    def test_settings_unavailable(self, client):
        assert client.get("/settings/paths").status_code == 503

    def test_get(self, client, loaded_settings):
        response = client.get("/settings/paths")

        assert response.status_code == 200
        assert response.json()["output_folder"] == str(loaded_settings.output_folder)
        assert response.json()["screaming_frog_path"] == loaded_settings.screaming_frog_path

    def test_update_persists_and_applies(self, client, loaded_settings, tmp_path):
        new_output = tmp_path / "reports"

        response = client.put("/settings/paths", json={"output_folder": str(new_output)})

        assert response.status_code == 200
        assert response.json()["output_folder"] == str(new_output)
        assert loaded_settings.output_folder == new_output
        saved = json.loads(loaded_settings.settings_file.read_text(encoding="utf-8"))
        assert saved == {"output_folder": str(new_output)}

    def test_update_keeps_omitted_fields(self, client, loaded_settings):
        executable = loaded_settings.screaming_frog_path

        response = client.put("/settings/paths", json={"temp_folder": "/tmp/sf"})

        assert response.status_code == 200
        assert response.json()["screaming_frog_path"] == executable
        assert response.json()["temp_folder"] == "/tmp/sf"

    def test_unwritable_settings_file(self, client, loaded_settings):
        loaded_settings.data_dir.mkdir(parents=True, exist_ok=True)
        loaded_settings.settings_file.mkdir()

        response = client.put("/settings/paths", json={"temp_folder": "/tmp/sf"})

        assert response.status_code == 400
        assert response.json()["error"].startswith("Settings not saved")
        assert str(loaded_settings.temp_folder) != "/tmp/sf"


class TestAuthentication:
    """Test cases for optional API key authentication."""

    @pytest.fixture
    def api_key(self):
        with patch.object(config, "api_keys", "secret-key, other-key"):
            yield "secret-key"

    def test_missing_key(self, client, mock_scheduler, api_key):
        response = client.get("/schedules")

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid API key"

    def test_wrong_key(self, client, mock_scheduler, api_key):
        response = client.get("/schedules", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_valid_key(self, client, mock_scheduler, api_key):
        mock_scheduler.list_jobs.return_value = []

        response = client.get("/schedules", headers={"Authorization": f"Bearer {api_key}"})

        assert response.status_code == 200
        assert response.json() == {"jobs": [], "total": 0}

    def test_health_is_public(self, client, api_key):
        assert client.get("/health").status_code == 200
