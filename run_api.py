#!/usr/bin/env python3
"""
Script to run the SEO Crawl Automation API server.
"""

import sys
from pathlib import Path

import uvicorn

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.config import config
from utilities.config import load_settings
from utilities.logger import setup_logging


def main():
    """Run the API server."""
    settings = load_settings()
    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.get_log_file_path(),
        debug=settings.debug
    )

    print("Starting SEO Crawl Automation API Server")
    print(f"Host: {config.host}")
    print(f"Port: {config.port}")
    print(f"Debug: {config.debug}")
    print(f"Jobs file: {settings.jobs_file}")
    print("=" * 50)

    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
