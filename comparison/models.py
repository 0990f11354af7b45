"""
Models for crawl snapshot comparison.

This module defines:
- The fixed, ordered list of tracked export fields
- Snapshot rows keyed by URL
- Diff results and the comparison report handed to the report sink
- Resource type statistics of the internal URL analysis
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, NamedTuple

from pydantic import BaseModel, Field


class ComparisonField(NamedTuple):
    """A tracked export column."""
    key: str
    label: str
    column: str


TRACKED_FIELDS: List[ComparisonField] = [
    ComparisonField("statusCode", "Status Code", "status code"),
    ComparisonField("indexability", "Indexability", "indexability"),
    ComparisonField("indexabilityStatus", "Indexability Status", "indexability status"),
    ComparisonField("title", "Title 1", "title 1"),
    ComparisonField("metaDescription", "Meta Description 1", "meta description 1"),
    ComparisonField("h1", "H1-1", "h1-1"),
    ComparisonField("h1_2", "H1-2", "h1-2"),
    ComparisonField("metaRobots", "Meta Robots 1", "meta robots 1"),
    ComparisonField("canonical", "Canonical Link Element 1", "canonical link element 1"),
    ComparisonField("size", "Size (bytes)", "size (bytes)"),
    ComparisonField("wordCount", "Word Count", "word count"),
    ComparisonField("crawlDepth", "Crawl Depth", "crawl depth"),
    ComparisonField("redirectUrl", "Redirect URL", "redirect url"),
    ComparisonField("redirectType", "Redirect Type", "redirect type"),
    ComparisonField("richResults", "Rich Results Types", "rich results types"),
]

URL_HEADERS = ("address", "url")


class SnapshotRow(BaseModel):
    """One crawled URL with its tracked field values."""
    url: str = Field(..., description="URL in its original casing")
    values: Dict[str, str] = Field(default_factory=dict, description="Tracked field key -> trimmed value")

    def get(self, key: str) -> str:
        return self.values.get(key, "")


Snapshot = Dict[str, SnapshotRow]


class FieldChange(BaseModel):
    """A single tracked field whose value differs between runs."""
    field: str = Field(..., description="Field label")
    old: str
    new: str


class ChangedUrl(BaseModel):
    url: str
    changes: List[FieldChange]


class DiffSummary(BaseModel):
    previous_total: int
    current_total: int
    added: int
    removed: int
    changed: int


class SnapshotDiff(BaseModel):
    """Result of comparing two snapshots."""
    added: List[SnapshotRow] = Field(default_factory=list)
    removed: List[SnapshotRow] = Field(default_factory=list)
    changed: List[ChangedUrl] = Field(default_factory=list)
    summary: DiffSummary


class PreviousCrawl(BaseModel):
    """Most recent earlier run folder for a domain."""
    path: Path
    folder_name: str
    timestamp: str = Field(..., description="Folder timestamp, YYYYMMDD_HHMMSS")


class ComparisonReport(BaseModel):
    """Diff plus the metadata the report sink renders."""
    domain: str
    base_name: str
    previous_folder: str
    previous_date: str
    current_date: str
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    diff: SnapshotDiff


class ResourceRow(BaseModel):
    """One URL of the internal export with the columns resource analysis needs."""
    url: str
    status_code: str = "200"
    content_type: str = "text/html"


class ResourceTypeCount(BaseModel):
    type: str
    count: int
    percentage: str = Field(..., description="Share of all URLs, two decimals")


class InternalAnalysisStats(BaseModel):
    """Per-type totals of the internal URL analysis."""
    total: int
    by_type: List[ResourceTypeCount] = Field(default_factory=list)
