"""
FastAPI RESTful API for the SEO Crawl Automation system.

This module provides a REST API for:
- Managing scheduled crawl jobs
- Running crawls on demand
- Optional API key authentication
"""
