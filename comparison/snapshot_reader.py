"""
Snapshot reader for crawler exports.

Locates the internal-URLs export inside a run folder and parses it into
a URL-keyed snapshot of the tracked fields.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence
from zipfile import BadZipFile

import pandas as pd
import structlog
from openpyxl.utils.exceptions import InvalidFileException

from comparison.models import TRACKED_FIELDS, URL_HEADERS, ComparisonField, Snapshot, SnapshotRow
from utilities.exceptions import SnapshotNotFoundError, SnapshotParseError

logger = structlog.get_logger(__name__)

SNAPSHOT_EXTENSIONS = (".xlsx", ".csv")
EXCLUDED_MARKERS = ("analysis", "comparison")


class SnapshotReader:
    """Parser turning a tabular export into a Snapshot."""

    def __init__(self, fields: Sequence[ComparisonField] = TRACKED_FIELDS):
        self.fields = list(fields)
        self.logger = logger.bind(component="snapshot_reader")

    def find_export(self, folder: Path) -> Path:
        """
        Locate the internal-URLs export of a run folder.

        Raises:
            SnapshotNotFoundError: If the folder is missing or holds no such export
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise SnapshotNotFoundError(f"Crawl folder not found: {folder}")

        candidates = sorted(
            path for path in folder.iterdir()
            if path.is_file() and path.suffix.lower() in SNAPSHOT_EXTENSIONS
        )
        for path in candidates:
            name = path.name.lower()
            if "internal" in name and not any(marker in name for marker in EXCLUDED_MARKERS):
                return path

        raise SnapshotNotFoundError(f"No internal export found in {folder}")

    def read_folder(self, folder: Path) -> Snapshot:
        return self.read(self.find_export(folder))

    def read(self, path: Path) -> Snapshot:
        """
        Parse an export file.

        Args:
            path: .xlsx or .csv export with a header row

        Returns:
            Mapping of lower-cased, trimmed URL to SnapshotRow, in file order

        Raises:
            SnapshotNotFoundError: If the file does not exist
            SnapshotParseError: If the file cannot be parsed
        """
        path = Path(path)
        if not path.is_file():
            raise SnapshotNotFoundError(f"Snapshot export not found: {path}")

        try:
            frame = self.load_frame(path)
        except pd.errors.EmptyDataError:
            self.logger.info("Snapshot export is empty", path=str(path))
            return {}
        except (ValueError, OSError, BadZipFile, InvalidFileException, pd.errors.ParserError) as e:
            self.logger.error("Failed to parse snapshot export", path=str(path), error=str(e))
            raise SnapshotParseError(f"Could not parse {path.name}: {e}") from e

        if frame.empty:
            return {}

        rows = frame.fillna("").astype(str).values.tolist()
        snapshot = self._build_snapshot(rows[0], rows[1:])

        self.logger.debug("Read snapshot export", path=str(path), urls=len(snapshot))
        return snapshot

    def load_frame(self, path: Path) -> pd.DataFrame:
        """Raw cells of an export, header row included, every value as a string."""
        if path.suffix.lower() == ".csv":
            return pd.read_csv(
                path,
                header=None,
                dtype=str,
                keep_default_na=False,
                encoding="utf-8-sig"
            )
        return pd.read_excel(
            path,
            header=None,
            dtype=str,
            keep_default_na=False,
            engine="openpyxl"
        )

    def _build_snapshot(self, header: List[str], rows: List[List[str]]) -> Snapshot:
        url_column, field_columns = self._resolve_columns(header)

        snapshot: Dict[str, SnapshotRow] = {}
        for row in rows:
            url = row[url_column].strip() if url_column < len(row) else ""
            if not url:
                continue

            values = {}
            for field in self.fields:
                column = field_columns.get(field.key)
                values[field.key] = self._cell(row, column)

            snapshot[url.lower()] = SnapshotRow(url=url, values=values)

        return snapshot

    def _resolve_columns(self, header: List[str]):
        """Map the URL column and each tracked field to a column index. Last match wins."""
        url_column = 0
        field_columns: Dict[str, int] = {}

        for index, name in enumerate(header):
            normalized = str(name).strip().lower()
            if normalized in URL_HEADERS:
                url_column = index
            for field in self.fields:
                if normalized == field.column:
                    field_columns[field.key] = index

        return url_column, field_columns

    @staticmethod
    def _cell(row: List[str], column: Optional[int]) -> str:
        if column is None or column >= len(row):
            return ""
        return row[column].strip()
