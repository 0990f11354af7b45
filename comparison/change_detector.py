"""
Change detection between two crawl runs.

This module provides:
- compare_snapshots, the pure added/removed/changed diff of two snapshots
- ChangeDetector, which locates and reads both runs' exports and wraps
  the diff with report metadata
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

import structlog

from comparison.models import (
    TRACKED_FIELDS, ChangedUrl, ComparisonField, ComparisonReport, DiffSummary,
    FieldChange, PreviousCrawl, Snapshot, SnapshotDiff
)
from comparison.snapshot_reader import SnapshotReader
from crawler.paths import format_timestamp, split_base_name

logger = structlog.get_logger(__name__)


def compare_snapshots(
    previous: Snapshot,
    current: Snapshot,
    fields: Sequence[ComparisonField] = TRACKED_FIELDS
) -> SnapshotDiff:
    """
    Compare two snapshots keyed by normalized URL.

    Values are compared as exact strings. Result lists follow the input
    snapshots' own iteration order; nothing is sorted.
    """
    added = [row for key, row in current.items() if key not in previous]
    removed = [row for key, row in previous.items() if key not in current]

    changed: List[ChangedUrl] = []
    for key, current_row in current.items():
        previous_row = previous.get(key)
        if previous_row is None:
            continue

        changes = []
        for field in fields:
            old = previous_row.get(field.key)
            new = current_row.get(field.key)
            if old != new:
                changes.append(FieldChange(field=field.label, old=old, new=new))

        if changes:
            changed.append(ChangedUrl(url=current_row.url, changes=changes))

    return SnapshotDiff(
        added=added,
        removed=removed,
        changed=changed,
        summary=DiffSummary(
            previous_total=len(previous),
            current_total=len(current),
            added=len(added),
            removed=len(removed),
            changed=len(changed)
        )
    )


class ChangeDetector:
    """Compares the current crawl run against the previous one for the same domain."""

    def __init__(self, reader: Optional[SnapshotReader] = None):
        self.reader = reader or SnapshotReader()
        self.logger = logger.bind(component="change_detector")

    async def compare_runs(
        self,
        current_path: Path,
        previous_crawl: PreviousCrawl,
        base_name: str
    ) -> ComparisonReport:
        """
        Diff the current run folder against a previous run folder.

        Args:
            current_path: Output folder of the current run
            previous_crawl: Previous run located for the same domain
            base_name: Current run's base name, {domain}_{timestamp}

        Returns:
            ComparisonReport with the diff and date metadata

        Raises:
            ComparisonUnavailableError: If either export is missing or unparseable
        """
        self.logger.info(
            "Comparing crawl runs",
            current=str(current_path),
            previous=str(previous_crawl.path)
        )

        current = await asyncio.to_thread(self.reader.read_folder, Path(current_path))
        previous = await asyncio.to_thread(self.reader.read_folder, previous_crawl.path)

        self.logger.info(
            "Snapshots read",
            current_rows=len(current),
            previous_rows=len(previous)
        )

        diff = compare_snapshots(previous, current, self.reader.fields)

        domain, current_timestamp = split_base_name(base_name)
        report = ComparisonReport(
            domain=domain,
            base_name=base_name,
            previous_folder=previous_crawl.folder_name,
            previous_date=format_timestamp(previous_crawl.timestamp),
            current_date=format_timestamp(current_timestamp),
            generated_at=datetime.utcnow(),
            diff=diff
        )

        self.logger.info(
            "Comparison completed",
            added=diff.summary.added,
            removed=diff.summary.removed,
            changed=diff.summary.changed
        )
        return report
