"""
Report generation for crawl comparisons.

Writes a ComparisonReport next to the current run's exports as JSON
(full report) and CSV (summary, added/removed URLs, field changes).
"""

import csv
import json
from pathlib import Path
from typing import Iterable, List

import structlog

from comparison.models import ComparisonReport
from utilities.exceptions import ReportGenerationError

logger = structlog.get_logger(__name__)

SUPPORTED_FORMATS = ("json", "csv")


class ReportGenerator:
    """Generator for comparison reports."""

    def __init__(self, formats: Iterable[str] = SUPPORTED_FORMATS):
        """
        Initialize report generator.

        Args:
            formats: Report formats to write (json/csv)
        """
        self.formats = [fmt for fmt in formats if fmt in SUPPORTED_FORMATS]
        self.logger = logger.bind(component="report_generator")

    def generate(self, output_path: Path, base_name: str, report: ComparisonReport) -> List[Path]:
        """
        Write the report in every configured format.

        Returns:
            Paths of the written files

        Raises:
            ReportGenerationError: If a file cannot be written
        """
        output_path = Path(output_path)
        written = []

        for fmt in self.formats:
            filepath = output_path / f"{base_name}_comparison.{fmt}"
            try:
                if fmt == "json":
                    self._export_json_report(filepath, report)
                else:
                    self._export_csv_report(filepath, report)
            except OSError as e:
                self.logger.error("Failed to write comparison report", filepath=str(filepath), error=str(e))
                raise ReportGenerationError(f"Could not write {filepath.name}: {e}") from e

            self.logger.info("Exported comparison report", filepath=str(filepath), format=fmt)
            written.append(filepath)

        return written

    def _export_json_report(self, filepath: Path, report: ComparisonReport) -> None:
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(report.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

    def _export_csv_report(self, filepath: Path, report: ComparisonReport) -> None:
        diff = report.diff
        summary = diff.summary

        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)

            writer.writerow([
                "Domain", "Previous Crawl", "Previous Date", "Current Date",
                "Previous Total", "Current Total", "Added", "Removed", "Changed"
            ])
            writer.writerow([
                report.domain,
                report.previous_folder,
                report.previous_date,
                report.current_date,
                summary.previous_total,
                summary.current_total,
                summary.added,
                summary.removed,
                summary.changed
            ])

            writer.writerow([])
            writer.writerow(["Added URLs"])
            for row in diff.added:
                writer.writerow([row.url])

            writer.writerow([])
            writer.writerow(["Removed URLs"])
            for row in diff.removed:
                writer.writerow([row.url])

            writer.writerow([])
            writer.writerow(["Changed URL", "Field", "Old Value", "New Value"])
            for item in diff.changed:
                for change in item.changes:
                    writer.writerow([item.url, change.field, change.old, change.new])
