"""
Test cases for the internal URL analysis.
"""

import pandas as pd
import pytest

from comparison.internal_analysis import (
    RESOURCE_TYPES, InternalUrlAnalyzer, build_stats, classify_rows, classify_url
)
from comparison.models import ResourceRow
from utilities.exceptions import InternalAnalysisError

HEADER = ["Address", "Status Code", "Content Type", "Indexability"]
ROWS = [
    ["https://example.com/", "200", "text/html; charset=UTF-8", "Indexable"],
    ["https://example.com/logo.png", "200", "image/png", "Non-Indexable"],
    ["https://example.com/app.js?v=2", "200", "application/javascript", "Non-Indexable"],
    ["https://example.com/style.css", "301", "text/css", "Non-Indexable"],
    ["https://example.com/guide.pdf", "404", "application/pdf", "Non-Indexable"],
    ["https://example.com/feed", "200", "application/rss+xml", "Non-Indexable"],
]


@pytest.fixture
def run_folder(tmp_path, export_writer):
    folder = tmp_path / "example_20240201_100000"
    export_writer(folder / "internal_all.csv", HEADER, ROWS)
    return folder


class TestClassifyUrl:
    """Test cases for resource type classification."""

    @pytest.mark.parametrize("url,content_type,expected", [
        ("https://example.com/a.JPG", "", "images"),
        ("https://example.com/photo", "image/webp", "images"),
        ("https://example.com/font.woff2?x=1", "", "fonts"),
        ("https://example.com/report.docx", "", "documents"),
        ("https://example.com/data.csv", "", "documents"),
        ("https://example.com/clip.mp4#t=10", "", "videos"),
        ("https://example.com/page.html", "", "html"),
        ("https://example.com/dir/", "", "html"),
        ("https://example.com/data", "application/json", "other"),
    ])
    def test_types(self, url, content_type, expected):
        assert classify_url(url, content_type) == expected

    def test_first_match_wins(self):
        assert classify_url("https://example.com/file.pdf", "text/html") == "pdf"
        assert classify_url("https://example.com/x.js", "text/css") == "css"

    def test_content_type_is_case_insensitive(self):
        assert classify_url("https://example.com/x", "Application/JavaScript") == "javascript"


class TestClassifyRows:
    """Test cases for grouping and statistics."""

    def test_every_type_present_in_order(self):
        grouped = classify_rows([ResourceRow(url="https://example.com/")])

        assert list(grouped) == RESOURCE_TYPES
        assert [row.url for row in grouped["html"]] == ["https://example.com/"]

    def test_stats(self):
        rows = [ResourceRow(url=row[0], status_code=row[1], content_type=row[2]) for row in ROWS]

        stats = build_stats(classify_rows(rows), len(rows))

        by_type = {entry.type: entry for entry in stats.by_type}
        assert stats.total == 6
        assert by_type["images"].count == 1
        assert by_type["images"].percentage == "16.67"
        assert by_type["videos"].count == 0
        assert sum(entry.count for entry in stats.by_type) == 6

    def test_empty_stats(self):
        stats = build_stats(classify_rows([]), 0)

        assert stats.total == 0
        assert all(entry.percentage == "0.00" for entry in stats.by_type)


class TestInternalUrlAnalyzer:
    """Test cases for InternalUrlAnalyzer."""

    def test_read_rows_defaults(self, tmp_path, export_writer):
        path = export_writer(tmp_path / "internal_all.csv", ["Address", "Status Code", "Content Type"], [
            ["https://example.com/a", "", ""],
            ["", "200", "text/html"],
        ])

        rows = InternalUrlAnalyzer().read_rows(path)

        assert rows == [ResourceRow(url="https://example.com/a", status_code="200", content_type="text/html")]

    def test_analyze_writes_workbook(self, run_folder):
        stats = InternalUrlAnalyzer().analyze(run_folder, "example_20240201_100000")

        assert stats.total == 6
        workbook = run_folder / "example_20240201_100000_internal_analysis.xlsx"
        sheets = pd.read_excel(workbook, sheet_name=None, engine="openpyxl")
        assert list(sheets) == ["Summary", "IMAGES", "CSS", "JAVASCRIPT", "PDF", "HTML", "OTHER"]

        summary = sheets["Summary"]
        assert summary["Type"].tolist()[-1] == "TOTAL"
        assert summary["Count"].tolist()[-1] == 6
        assert summary.loc[summary["Type"] == "PDF", "Percentage"].item() == "16.67%"

        assert sheets["PDF"]["URL"].tolist() == ["https://example.com/guide.pdf"]
        assert list(sheets["HTML"].columns) == ["URL", "Status Code", "Content Type"]

    def test_workbook_not_taken_as_export(self, run_folder):
        analyzer = InternalUrlAnalyzer()
        analyzer.analyze(run_folder, "example_20240201_100000")

        assert analyzer.reader.find_export(run_folder).name == "internal_all.csv"

    def test_no_internal_export(self, tmp_path):
        folder = tmp_path / "example_20240201_100000"
        folder.mkdir()

        assert InternalUrlAnalyzer().analyze(folder, "example_20240201_100000") is None
        assert list(folder.iterdir()) == []

    def test_corrupt_export(self, tmp_path):
        folder = tmp_path / "example_20240201_100000"
        folder.mkdir()
        (folder / "internal_all.xlsx").write_bytes(b"not a workbook")

        with pytest.raises(InternalAnalysisError, match="Could not parse internal_all.xlsx"):
            InternalUrlAnalyzer().analyze(folder, "example_20240201_100000")

    def test_unwritable_workbook(self, run_folder):
        (run_folder / "example_20240201_100000_internal_analysis.xlsx").mkdir()

        with pytest.raises(InternalAnalysisError, match="Could not write"):
            InternalUrlAnalyzer().analyze(run_folder, "example_20240201_100000")
