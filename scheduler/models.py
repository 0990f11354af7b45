"""
Models for scheduled crawl jobs.

This module defines Pydantic models for:
- Persisted job records and their lifecycle status
- Job creation requests
- Listing views joined with live trigger state
- Structured operation outcomes
- Due-job events published to the pipeline
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Frequency(str, Enum):
    """How often a scheduled job repeats."""
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class JobStatus(str, Enum):
    """Lifecycle status of a persisted job record."""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    ERROR = "error"


class ErrorType(str, Enum):
    """Failure categories reported by scheduler operations."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TRIGGER_CONSTRUCTION = "trigger_construction"


def generate_job_id() -> str:
    """Generate an opaque job identifier."""
    return uuid.uuid4().hex


class ScheduledJob(BaseModel):
    """Persisted scheduled crawl job."""
    id: str = Field(default_factory=generate_job_id, frozen=True, description="Opaque job identifier")
    name: Optional[str] = Field(default=None, description="User label")
    date: str = Field(..., frozen=True, description="Anchor date (YYYY-MM-DD)")
    time: str = Field(..., frozen=True, description="Anchor time (HH:MM or HH:MM:SS)")
    frequency: Frequency = Field(default=Frequency.ONCE)
    crawl_config: Dict[str, Any] = Field(default_factory=dict, description="Opaque crawl payload")
    status: JobStatus = Field(default=JobStatus.ACTIVE)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class JobRequest(BaseModel):
    """Input for creating a scheduled job."""
    name: Optional[str] = Field(default=None)
    date: str = Field(..., description="Anchor date (YYYY-MM-DD)")
    time: str = Field(..., description="Anchor time (HH:MM or HH:MM:SS)")
    frequency: Frequency = Field(default=Frequency.ONCE)
    crawl_config: Dict[str, Any] = Field(default_factory=dict)

    def to_job(self) -> ScheduledJob:
        """Create a new job record from this request."""
        return ScheduledJob(
            name=self.name or None,
            date=self.date,
            time=self.time,
            frequency=self.frequency,
            crawl_config=self.crawl_config,
        )


class JobView(BaseModel):
    """Job record joined with its live trigger metadata."""
    id: str
    name: Optional[str] = None
    date: str
    time: str
    frequency: Frequency
    crawl_config: Dict[str, Any] = Field(default_factory=dict)
    status: JobStatus
    created_at: datetime
    next_run: Optional[datetime] = Field(default=None, description="Next fire time of the live trigger")
    is_active: bool = Field(default=False, description="Whether a live trigger exists")

    @classmethod
    def from_job(cls, job: ScheduledJob, next_run: Optional[datetime], is_active: bool) -> "JobView":
        return cls(**job.model_dump(), next_run=next_run, is_active=is_active)


class ValidationResult(BaseModel):
    """Verdict of a schedule pre-flight check."""
    valid: bool
    error: Optional[str] = None


class OperationResult(BaseModel):
    """Structured outcome of a mutating scheduler operation."""
    success: bool
    error: Optional[str] = Field(default=None, description="Human-readable failure reason")
    error_type: Optional[ErrorType] = None
    warning: Optional[str] = Field(default=None, description="Non-fatal problem, e.g. durability not guaranteed")
    job: Optional[JobView] = None
    next_run: Optional[datetime] = None

    @classmethod
    def failure(
        cls,
        error_type: ErrorType,
        error: str,
        job: Optional[JobView] = None,
        warning: Optional[str] = None
    ) -> "OperationResult":
        return cls(success=False, error=error, error_type=error_type, job=job, warning=warning)


class JobDueEvent(BaseModel):
    """Published on the dispatch channel when a trigger fires."""
    job_id: str
    crawl_config: Dict[str, Any] = Field(default_factory=dict)
    frequency: Frequency
    fired_at: datetime
