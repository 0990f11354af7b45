"""
Pydantic models for crawl requests and results.
Describes what the crawler executable is asked to do and what a pipeline run produced.
"""

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from comparison.models import DiffSummary, InternalAnalysisStats


class CrawlMode(str, Enum):
    """Whether to crawl a live URL or re-export a saved crawl file."""
    URL = "url"
    FILE = "file"


class ExportOptions(BaseModel):
    """
    Export selections as {group: {filter: selected}}.
    Unknown groups and filters are ignored when the command is built.
    """
    export_tabs: Dict[str, Dict[str, bool]] = Field(default_factory=dict)
    bulk_exports: Dict[str, Dict[str, bool]] = Field(default_factory=dict)


class ProcessOptions(BaseModel):
    """Optional pipeline stages run after a successful crawl."""
    internal_analysis: bool = Field(default=False, description="Classify internal URLs by resource type into a workbook")
    comparison: bool = Field(default=True, description="Compare against the previous run of the same domain")


class CrawlRequest(BaseModel):
    """
    A crawl to run. Scheduled jobs carry this as their crawl payload.
    """
    mode: CrawlMode = Field(default=CrawlMode.URL)
    url: Optional[str] = Field(None, description="Start URL (url mode)")
    file_path: Optional[str] = Field(None, description=".seospider file to re-export (file mode)")
    config_file: Optional[str] = Field(None, description="Crawler configuration file (url mode)")
    export_options: Optional[ExportOptions] = Field(None, description="Falls back to the configured defaults")
    process_options: ProcessOptions = Field(default_factory=ProcessOptions)

    model_config = {
        "json_schema_extra": {
            "example": {
                "mode": "url",
                "url": "https://www.example.com",
                "export_options": {"export_tabs": {"internal": {"all": True}}},
                "process_options": {"internal_analysis": True, "comparison": True}
            }
        }
    }

    @model_validator(mode="after")
    def validate_target(self):
        """Ensure the field the mode needs is present."""
        if self.mode == CrawlMode.URL and not self.url:
            raise ValueError("url is required for url mode")
        if self.mode == CrawlMode.FILE and not self.file_path:
            raise ValueError("file_path is required for file mode")
        return self

    @property
    def target(self) -> str:
        return self.url if self.mode == CrawlMode.URL else self.file_path


class CrawlOutput(BaseModel):
    """What the crawl executor produced."""
    output_path: Path
    base_name: str
    duration_seconds: float


class CrawlResult(BaseModel):
    """
    Outcome of a full pipeline run.
    """
    success: bool = Field(..., description="Whether the crawl itself succeeded")
    output_path: Optional[Path] = Field(None, description="Run output folder")
    base_name: Optional[str] = Field(None, description="Run base name, {domain}_{timestamp}")
    duration_seconds: Optional[float] = Field(None, description="Crawler execution time")
    files: List[str] = Field(default_factory=list, description="Exported and generated file names")
    stats: Optional[InternalAnalysisStats] = Field(None, description="Internal URL totals per resource type")
    comparison: Optional[DiffSummary] = Field(None, description="Diff totals against the previous run")
    report_files: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list, description="Non-fatal problems in optional stages")
    error: Optional[str] = Field(None, description="Failure reason when success is false")
