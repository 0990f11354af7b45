"""
Scheduler package for recurring crawl jobs.

This package contains:
- Scheduled job models and the durable job store
- Trigger construction on top of APScheduler
- The scheduler engine publishing due jobs
- The event notification channel
"""

__version__ = "1.0.0"
