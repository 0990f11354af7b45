"""
API request and response schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from scheduler.models import Frequency, JobView


class ScheduleValidationRequest(BaseModel):
    """Pre-flight check input."""
    date: Optional[str] = Field(None, description="Anchor date (YYYY-MM-DD)")
    time: Optional[str] = Field(None, description="Anchor time (HH:MM or HH:MM:SS)")


class RenameRequest(BaseModel):
    name: Optional[str] = Field(None, description="New label; empty clears it")


class FrequencyRequest(BaseModel):
    frequency: Frequency


class JobListResponse(BaseModel):
    """Scheduled job listing."""
    jobs: List[JobView]
    total: int


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Check timestamp")
    version: str = Field(..., description="API version")
    scheduler: Dict[str, Any] = Field(default_factory=dict, description="Scheduler status")


class PathSettings(BaseModel):
    """User-editable folders and crawler executable; omitted fields are left unchanged."""
    screaming_frog_path: Optional[str] = Field(None, description="Crawler executable")
    output_folder: Optional[str] = Field(None, description="Parent folder of every run folder")
    config_folder: Optional[str] = Field(None, description="Crawler configuration files")
    temp_folder: Optional[str] = None
