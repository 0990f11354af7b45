"""
Crawler package driving the Screaming Frog SEO Spider CLI.

This package contains:
- Crawl request and result models
- Run folder path management
- Command construction and the subprocess executor
- The crawl pipeline coordinator
"""
