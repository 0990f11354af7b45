"""
Error taxonomy shared by the scheduler, comparison and crawler packages.

Internal code raises these; the service boundaries (SchedulerService,
CrawlPipeline, API) convert them into structured results.
"""

from typing import Optional


class CrawlAutomationError(Exception):
    """Base class for all errors raised by this project."""


class ScheduleValidationError(CrawlAutomationError):
    """Malformed or past-dated schedule input."""


class JobNotFoundError(CrawlAutomationError):
    """Referenced job id does not exist."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Scheduled job '{job_id}' not found")


class PersistenceError(CrawlAutomationError):
    """Durable write/read of the job list failed; in-memory state is still valid."""


class TriggerConstructionError(CrawlAutomationError):
    """A schedule pattern could not be armed."""


class ComparisonUnavailableError(CrawlAutomationError):
    """A snapshot needed for comparison could not be located or parsed."""


class SnapshotNotFoundError(ComparisonUnavailableError):
    """The snapshot export does not exist."""


class SnapshotParseError(ComparisonUnavailableError):
    """The snapshot export exists but could not be parsed."""


class CrawlFailedError(CrawlAutomationError):
    """The external crawler failed (non-zero exit, timeout, missing executable)."""

    def __init__(self, message: str, stderr: Optional[str] = None):
        self.stderr = stderr
        super().__init__(message)


class ReportGenerationError(CrawlAutomationError):
    """A comparison report could not be written."""


class InternalAnalysisError(CrawlAutomationError):
    """The internal URL analysis could not read its export or write its workbook."""
