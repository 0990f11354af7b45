"""
Pytest configuration and shared fixtures.
"""

import csv
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List

import pytest

from comparison.models import TRACKED_FIELDS, SnapshotRow
from utilities.config import AppSettings


@pytest.fixture
def settings(tmp_path):
    """Settings with every folder under tmp_path."""
    return AppSettings(
        screaming_frog_path=str(tmp_path / "bin" / "screamingfrogseospider"),
        output_folder=tmp_path / "output",
        config_folder=tmp_path / "configs",
        temp_folder=tmp_path / "temp",
        data_dir=tmp_path / "data",
        timezone="UTC",
    )


@pytest.fixture
def tz():
    return timezone.utc


@pytest.fixture
def future_anchor():
    """(date, time) two days from now, at 09:30 UTC."""
    anchor = datetime.now(timezone.utc) + timedelta(days=2)
    return anchor.strftime("%Y-%m-%d"), "09:30"


@pytest.fixture
def past_anchor():
    anchor = datetime.now(timezone.utc) - timedelta(days=2)
    return anchor.strftime("%Y-%m-%d"), "09:30"


@pytest.fixture
def sample_crawl_config():
    return {
        "mode": "url",
        "url": "https://www.example.com",
        "process_options": {"comparison": True},
    }


def make_row(url: str, **values: str) -> SnapshotRow:
    """SnapshotRow with the given tracked values and every other field empty."""
    row_values = {field.key: "" for field in TRACKED_FIELDS}
    row_values.update(values)
    return SnapshotRow(url=url, values=row_values)


def make_snapshot(*rows: SnapshotRow) -> Dict[str, SnapshotRow]:
    return {row.url.strip().lower(): row for row in rows}


def write_export(path: Path, header: List[str], rows: List[List[str]]) -> Path:
    """Write a CSV export like the crawler's internal_all export."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)
    return path


EXPORT_HEADER = ["Address", "Status Code", "Indexability", "Title 1", "Meta Description 1", "H1-1"]


@pytest.fixture
def export_header():
    return list(EXPORT_HEADER)


@pytest.fixture
def row_factory():
    return make_row


@pytest.fixture
def snapshot_factory():
    return make_snapshot


@pytest.fixture
def export_writer():
    return write_export
