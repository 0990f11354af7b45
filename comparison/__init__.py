"""
Comparison package for crawl snapshots.

This package contains:
- Snapshot export discovery and parsing
- Snapshot comparison (added, removed and changed URLs)
- Comparison report generation
"""
