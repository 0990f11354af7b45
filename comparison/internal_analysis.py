"""
Internal URL analysis.

Classifies every URL of a run's internal export by resource type (images,
css, javascript, pdf, fonts, videos, documents, html, other) and writes
``{base_name}_internal_analysis.xlsx`` into the run folder: a summary sheet
plus one sheet per non-empty type.
"""

import re
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Tuple
from zipfile import BadZipFile

import pandas as pd
import structlog
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils.exceptions import InvalidFileException

from comparison.models import InternalAnalysisStats, ResourceRow, ResourceTypeCount
from comparison.snapshot_reader import SnapshotReader
from utilities.exceptions import InternalAnalysisError, SnapshotNotFoundError

logger = structlog.get_logger(__name__)

OTHER_TYPE = "other"

URL_COLUMNS = ("address", "url")
STATUS_COLUMNS = ("status code", "status")
CONTENT_TYPE_COLUMNS = ("content type", "content-type")

HEADER_FILL = PatternFill("solid", fgColor="FF4472C4")
HEADER_FONT = Font(bold=True, color="FFFFFFFF")
TOTAL_FILL = PatternFill("solid", fgColor="FFE2E8F0")
STATUS_FILLS = (
    (400, PatternFill("solid", fgColor="FFEF4444")),
    (300, PatternFill("solid", fgColor="FFFBBF24")),
)
OK_FILL = PatternFill("solid", fgColor="FF22C55E")


class ResourceClassifier(NamedTuple):
    name: str
    content_types: Tuple[str, ...]
    url_pattern: "re.Pattern"
    trailing_slash: bool = False

    def matches(self, url: str, content_type: str) -> bool:
        if any(marker in content_type for marker in self.content_types):
            return True
        if self.url_pattern.search(url):
            return True
        return self.trailing_slash and url.endswith("/")


def _extensions(*names: str) -> "re.Pattern":
    return re.compile(rf"\.({'|'.join(names)})(\?|#|$)", re.IGNORECASE)


# first match wins
CLASSIFIERS = (
    ResourceClassifier("images", ("image",), _extensions("jpg", "jpeg", "png", "gif", "svg", "webp", "ico", "bmp")),
    ResourceClassifier("css", ("css",), _extensions("css")),
    ResourceClassifier("javascript", ("javascript", "ecmascript"), _extensions("js", "jsx", "mjs")),
    ResourceClassifier("pdf", ("pdf",), _extensions("pdf")),
    ResourceClassifier("fonts", ("font",), _extensions("woff", "woff2", "ttf", "eot", "otf")),
    ResourceClassifier("videos", ("video",), _extensions("mp4", "webm", "ogg", "avi", "mov")),
    ResourceClassifier("documents", (), _extensions("doc", "docx", "xls", "xlsx", "ppt", "pptx", "txt", "csv")),
    ResourceClassifier("html", ("html",), _extensions("html", "htm"), trailing_slash=True),
)

RESOURCE_TYPES = [classifier.name for classifier in CLASSIFIERS] + [OTHER_TYPE]


def classify_url(url: str, content_type: str) -> str:
    """Resource type of a URL from its content type or, failing that, its extension."""
    url = url.lower()
    content_type = content_type.lower()
    for classifier in CLASSIFIERS:
        if classifier.matches(url, content_type):
            return classifier.name
    return OTHER_TYPE


def classify_rows(rows: List[ResourceRow]) -> Dict[str, List[ResourceRow]]:
    """Group rows by resource type; every type is present, in RESOURCE_TYPES order."""
    grouped: Dict[str, List[ResourceRow]] = {name: [] for name in RESOURCE_TYPES}
    for row in rows:
        grouped[classify_url(row.url, row.content_type)].append(row)
    return grouped


def _percentage(count: int, total: int) -> str:
    return f"{count / total * 100:.2f}" if total else "0.00"


def build_stats(grouped: Dict[str, List[ResourceRow]], total: int) -> InternalAnalysisStats:
    return InternalAnalysisStats(
        total=total,
        by_type=[
            ResourceTypeCount(type=name, count=len(items), percentage=_percentage(len(items), total))
            for name, items in grouped.items()
        ]
    )


class InternalUrlAnalyzer:
    """Writes the per-resource-type workbook for a run folder."""

    def __init__(self, reader: Optional[SnapshotReader] = None):
        self.reader = reader or SnapshotReader()
        self.logger = logger.bind(component="internal_analysis")

    def analyze(self, folder: Path, base_name: str) -> Optional[InternalAnalysisStats]:
        """
        Classify the internal export of a run folder and write the analysis workbook.

        Returns:
            Statistics per resource type, or None when the folder has no internal export

        Raises:
            InternalAnalysisError: If the export cannot be parsed or the workbook cannot be written
        """
        folder = Path(folder)
        try:
            export_path = self.reader.find_export(folder)
        except SnapshotNotFoundError as e:
            self.logger.warning("No internal export to analyze", folder=str(folder), error=str(e))
            return None

        self.logger.info("Analyzing internal URLs", export=export_path.name)
        rows = self.read_rows(export_path)
        grouped = classify_rows(rows)
        stats = build_stats(grouped, len(rows))

        output_file = folder / f"{base_name}_internal_analysis.xlsx"
        self._write_workbook(output_file, grouped, stats)

        self.logger.info("Internal analysis completed", output_file=str(output_file), total=stats.total)
        return stats

    def read_rows(self, path: Path) -> List[ResourceRow]:
        """URL, status code and content type of every data row of an export."""
        try:
            frame = self.reader.load_frame(Path(path))
        except pd.errors.EmptyDataError:
            return []
        except (ValueError, OSError, BadZipFile, InvalidFileException, pd.errors.ParserError) as e:
            raise InternalAnalysisError(f"Could not parse {Path(path).name}: {e}") from e

        if frame.empty:
            return []

        cells = frame.fillna("").astype(str).values.tolist()
        url_column, status_column, type_column = self._resolve_columns(cells[0])

        rows = []
        for cells_row in cells[1:]:
            url = self._cell(cells_row, url_column)
            if not url:
                continue
            rows.append(ResourceRow(
                url=url,
                status_code=self._cell(cells_row, status_column) or "200",
                content_type=self._cell(cells_row, type_column) or "text/html"
            ))
        return rows

    @staticmethod
    def _resolve_columns(header: List[str]) -> Tuple[int, Optional[int], Optional[int]]:
        """URL defaults to the first column; missing status and content type columns use row defaults."""
        url_column, status_column, type_column = 0, None, None
        for index, name in enumerate(header):
            normalized = str(name).strip().lower()
            if normalized in URL_COLUMNS:
                url_column = index
            elif normalized in STATUS_COLUMNS:
                status_column = index
            elif normalized in CONTENT_TYPE_COLUMNS:
                type_column = index
        return url_column, status_column, type_column

    @staticmethod
    def _cell(row: List[str], column: Optional[int]) -> str:
        if column is None or column >= len(row):
            return ""
        return row[column].strip()

    def _write_workbook(
        self,
        output_file: Path,
        grouped: Dict[str, List[ResourceRow]],
        stats: InternalAnalysisStats
    ) -> None:
        summary = pd.DataFrame(
            [[entry.type.upper(), entry.count, f"{entry.percentage}%"] for entry in stats.by_type]
            + [["TOTAL", stats.total, "100%"]],
            columns=["Type", "Count", "Percentage"]
        )

        try:
            with pd.ExcelWriter(output_file, engine="openpyxl") as writer:
                summary.to_excel(writer, sheet_name="Summary", index=False)
                sheet = writer.sheets["Summary"]
                self._style_header(sheet)
                for cell in sheet[sheet.max_row]:
                    cell.font = Font(bold=True)
                    cell.fill = TOTAL_FILL

                for name, items in grouped.items():
                    if not items:
                        continue
                    frame = pd.DataFrame(
                        [[item.url, item.status_code, item.content_type] for item in items],
                        columns=["URL", "Status Code", "Content Type"]
                    )
                    frame.to_excel(writer, sheet_name=name.upper(), index=False)
                    sheet = writer.sheets[name.upper()]
                    self._style_header(sheet)
                    self._color_status(sheet)
        except (OSError, ValueError) as e:
            self.logger.error("Failed to write internal analysis", output_file=str(output_file), error=str(e))
            raise InternalAnalysisError(f"Could not write {output_file.name}: {e}") from e

    @staticmethod
    def _style_header(sheet) -> None:
        sheet.freeze_panes = "A2"
        for cell in sheet[1]:
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = Alignment(horizontal="center", vertical="center")

    @staticmethod
    def _color_status(sheet) -> None:
        for (cell,) in sheet.iter_rows(min_row=2, min_col=2, max_col=2):
            try:
                code = int(float(cell.value))
            except (TypeError, ValueError):
                continue

            fill = next((fill for floor, fill in STATUS_FILLS if code >= floor), None)
            if fill is None and code == 200:
                fill = OK_FILL
            if fill is not None:
                cell.fill = fill
                if code >= 400:
                    cell.font = Font(color="FFFFFFFF")
