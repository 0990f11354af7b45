"""
Main entry point for one-off crawls.

Usage:
    python main.py https://www.example.com [--config crawl.seospiderconfig] [--no-compare]
    python main.py --file example_20240101_100000.seospider
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from crawler.models import CrawlMode, CrawlRequest, ProcessOptions
from crawler.pipeline import CrawlPipeline
from scheduler.events import EventBus, EventType
from utilities.config import load_settings
from utilities.logger import get_logger, setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a Screaming Frog crawl and compare it with the previous run")
    parser.add_argument("url", nargs="?", help="URL to crawl")
    parser.add_argument("--file", dest="file_path", help="Existing .seospider file to re-export")
    parser.add_argument("--config", dest="config_file", help="Crawler configuration file")
    parser.add_argument("--no-compare", action="store_true", help="Skip comparison with the previous run")
    parser.add_argument("--analyze", action="store_true", help="Classify internal URLs by resource type")

    args = parser.parse_args(argv)
    if bool(args.url) == bool(args.file_path):
        parser.error("give either a URL or --file")
    return args


def build_request(args: argparse.Namespace) -> CrawlRequest:
    return CrawlRequest(
        mode=CrawlMode.FILE if args.file_path else CrawlMode.URL,
        url=args.url,
        file_path=args.file_path,
        config_file=args.config_file,
        process_options=ProcessOptions(internal_analysis=args.analyze, comparison=not args.no_compare)
    )


async def main(argv=None):
    """Main function to run one crawl."""
    args = parse_args(argv)
    settings = load_settings()

    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.get_log_file_path(),
        debug=settings.debug
    )

    logger = get_logger(__name__)

    events = EventBus()
    events.subscribe(EventType.CRAWL_PHASE, lambda phase, job_id=None: print(f"-> {phase}"))

    pipeline = CrawlPipeline(settings, events)
    result = await pipeline.run(build_request(args))

    if not result.success:
        logger.error("Crawl failed", error=result.error)
        sys.exit(1)

    logger.info(
        "Crawl finished",
        output_path=str(result.output_path),
        duration_seconds=result.duration_seconds,
        files=result.files
    )
    if result.stats:
        counts = ", ".join(f"{entry.type} {entry.count}" for entry in result.stats.by_type if entry.count)
        print(f"Internal URLs: {result.stats.total} ({counts})")
    if result.comparison:
        summary = result.comparison
        print(
            f"Compared with previous run: {summary.previous_total} -> {summary.current_total} URLs, "
            f"{summary.added} added, {summary.removed} removed, {summary.changed} changed"
        )
    for warning in result.warnings:
        print(f"Warning: {warning}")


if __name__ == "__main__":
    # Run the async main function
    asyncio.run(main())
