"""
Main entry point for the crawl scheduler daemon.

Loads persisted jobs, re-arms their triggers and runs due crawls until
SIGINT or SIGTERM. Shutdown cancels live triggers only; persisted jobs
are recovered on the next start.
"""

import asyncio
import signal
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

import structlog
from crawler.pipeline import CrawlPipeline
from scheduler.events import EventBus, EventType
from scheduler.scheduler_service import SchedulerService
from utilities.config import load_settings
from utilities.logger import setup_logging


async def main():
    """Main function to start the scheduler service."""
    settings = load_settings()
    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.get_log_file_path(),
        debug=settings.debug
    )

    logger = structlog.get_logger(__name__)
    logger.info("Starting crawl scheduler daemon", jobs_file=str(settings.jobs_file))

    events = EventBus()
    events.subscribe(
        EventType.JOB_REMOVED,
        lambda job_id: logger.info("One-shot job finished and removed", job_id=job_id)
    )
    events.subscribe(
        EventType.CRAWL_PHASE,
        lambda phase, job_id=None: logger.info("Crawl phase", phase=phase, job_id=job_id)
    )

    scheduler_service = SchedulerService(settings, events)
    pipeline = CrawlPipeline(settings, events)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop_event.set)

    rebuilt = await scheduler_service.start()
    worker = asyncio.create_task(pipeline.consume(scheduler_service.due_jobs))

    print("\n" + "=" * 60)
    print("CRAWL SCHEDULER RUNNING")
    print("=" * 60)
    print(f"Timezone: {settings.timezone}")
    print(f"Live triggers: {rebuilt}")
    for job in scheduler_service.list_jobs():
        next_run = job.next_run.isoformat() if job.next_run else "-"
        print(f"  {job.id}  {job.frequency.value:<8} {job.status.value:<10} next: {next_run}  {job.name or ''}")
    print("=" * 60)

    try:
        await stop_event.wait()
        logger.info("Received shutdown signal, shutting down gracefully...")
    finally:
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass
        scheduler_service.shutdown()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        print(f"Failed to start scheduler service: {str(e)}")
        sys.exit(1)
