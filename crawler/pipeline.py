"""
Crawl pipeline coordinator.

This module provides:
- CrawlPipeline.run: crawl executor -> export collection -> internal URL
  analysis -> previous run lookup -> snapshot comparison -> comparison report
- CrawlPipeline.consume: worker loop over the scheduler's due-job queue
"""

import asyncio
from typing import Any, Dict, List, Optional, Set, Union

import structlog
from pydantic import ValidationError

from comparison.change_detector import ChangeDetector
from comparison.internal_analysis import InternalUrlAnalyzer
from comparison.report_generator import ReportGenerator
from crawler.models import CrawlRequest, CrawlResult
from crawler.paths import OutputPaths, split_base_name
from crawler.screaming_frog import ScreamingFrogService
from scheduler.events import EventBus, EventType
from scheduler.models import JobDueEvent
from utilities.config import AppSettings
from utilities.exceptions import (
    ComparisonUnavailableError, CrawlFailedError, InternalAnalysisError, ReportGenerationError
)
from utilities.logger import CrawlLogger

logger = structlog.get_logger(__name__)

EXPORT_EXTENSIONS = (".xlsx", ".csv", ".json")


class CrawlPipeline:
    """Runs crawls and their optional comparison stages."""

    def __init__(
        self,
        settings: AppSettings,
        events: Optional[EventBus] = None,
        executor: Optional[ScreamingFrogService] = None,
        detector: Optional[ChangeDetector] = None,
        reports: Optional[ReportGenerator] = None,
        analyzer: Optional[InternalUrlAnalyzer] = None
    ):
        self.settings = settings
        self.events = events or EventBus()
        self.paths = OutputPaths(settings)
        self.executor = executor or ScreamingFrogService(settings, self.paths)
        self.detector = detector or ChangeDetector()
        self.reports = reports or ReportGenerator(settings.report_formats)
        self.analyzer = analyzer or InternalUrlAnalyzer()
        self.logger = logger.bind(component="crawl_pipeline")

    async def run(
        self,
        request: Union[CrawlRequest, Dict[str, Any]],
        job_id: Optional[str] = None
    ) -> CrawlResult:
        """
        Run one crawl end to end.

        Failures of the crawl itself produce an unsuccessful result; failures
        of the comparison stages only add warnings to a successful one.
        """
        crawl_logger = CrawlLogger().bind_context(job_id=job_id)

        def emit(phase: str) -> None:
            crawl_logger.log_phase(phase)
            self.events.emit(EventType.CRAWL_PHASE, phase=phase, job_id=job_id)

        try:
            if not isinstance(request, CrawlRequest):
                request = CrawlRequest.model_validate(request)
        except ValidationError as e:
            crawl_logger.log_error(str(e))
            return CrawlResult(success=False, error=f"Invalid crawl configuration: {e}")

        crawl_logger.log_crawl_start(target=request.target, mode=request.mode.value)

        try:
            emit("Preparing environment...")
            self.paths.ensure_directories()

            output = await self.executor.execute(request, emit)
        except (CrawlFailedError, OSError) as e:
            crawl_logger.log_error(str(e))
            emit("Crawl failed")
            return CrawlResult(success=False, error=str(e))

        crawl_logger.bind_context(base_name=output.base_name)
        result = CrawlResult(
            success=True,
            output_path=output.output_path,
            base_name=output.base_name,
            duration_seconds=output.duration_seconds
        )

        emit("Collecting exported files...")
        exported = self.paths.list_files(output.output_path, EXPORT_EXTENSIONS)
        self.logger.debug("Exported files collected", base_name=output.base_name, files=len(exported))
        generated: List[str] = []

        if request.process_options.internal_analysis:
            await self._analyze(result, emit, crawl_logger, generated)

        if request.process_options.comparison:
            await self._compare(result, emit, crawl_logger)
            generated.extend(result.report_files)

        result.files = sorted(set(exported).union(generated))

        emit("Done")
        crawl_logger.log_crawl_complete(
            output_path=str(output.output_path),
            duration_seconds=output.duration_seconds,
            files=result.files,
            warnings=len(result.warnings)
        )
        return result

    async def _analyze(self, result: CrawlResult, emit, crawl_logger: CrawlLogger, generated: List[str]) -> None:
        """Classify the run's internal URLs; failures only add a warning."""
        try:
            emit("Analyzing internal URLs...")
            stats = await asyncio.to_thread(self.analyzer.analyze, result.output_path, result.base_name)
        except InternalAnalysisError as e:
            crawl_logger.log_warning("Internal analysis failed", error=str(e))
            result.warnings.append(f"Internal analysis skipped: {e}")
            emit("Warning: internal analysis failed, but the crawl completed.")
            return

        if stats is not None:
            result.stats = stats
            generated.append(f"{result.base_name}_internal_analysis.xlsx")

    async def _compare(self, result: CrawlResult, emit, crawl_logger: CrawlLogger) -> None:
        """Compare against the previous run of the same domain and write the report."""
        emit("Looking for previous crawl...")
        domain, _ = split_base_name(result.base_name)
        previous = self.paths.find_previous_crawl(domain, exclude_folder=result.base_name)

        if previous is None:
            emit("No previous crawl found to compare")
            return

        try:
            emit("Comparing with previous crawl...")
            report = await self.detector.compare_runs(result.output_path, previous, result.base_name)
        except ComparisonUnavailableError as e:
            crawl_logger.log_warning("Comparison unavailable", error=str(e))
            result.warnings.append(f"Comparison skipped: {e}")
            emit("Warning: comparison failed, but the crawl completed.")
            return

        result.comparison = report.diff.summary

        try:
            emit("Writing comparison report...")
            written = await asyncio.to_thread(
                self.reports.generate, result.output_path, result.base_name, report
            )
            result.report_files = [path.name for path in written]
        except ReportGenerationError as e:
            crawl_logger.log_warning("Comparison report not written", error=str(e))
            result.warnings.append(f"Comparison report not written: {e}")
            emit("Warning: comparison report failed, but the crawl completed.")

    async def consume(self, queue: "asyncio.Queue[JobDueEvent]") -> None:
        """
        Run due jobs from the scheduler's queue until cancelled.

        At most ``max_concurrent_crawls`` crawls run at once.
        """
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_crawls)
        running: Set[asyncio.Task] = set()

        self.logger.info("Pipeline worker started", max_concurrent_crawls=self.settings.max_concurrent_crawls)
        event: Optional[JobDueEvent] = None
        try:
            while True:
                event = await queue.get()
                await semaphore.acquire()
                task = asyncio.create_task(self._run_due(event, semaphore, queue))
                running.add(task)
                task.add_done_callback(running.discard)
                event = None
        except asyncio.CancelledError:
            if event is not None:
                # dequeued but never started
                queue.put_nowait(event)
                queue.task_done()
                self.logger.info("Due job returned to queue", job_id=event.job_id)

            tasks = list(running)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self.logger.info("Pipeline worker stopped", cancelled_runs=len(tasks))
            raise

    async def _run_due(
        self,
        event: JobDueEvent,
        semaphore: asyncio.Semaphore,
        queue: "asyncio.Queue[JobDueEvent]"
    ) -> None:
        try:
            result = await self.run(event.crawl_config, job_id=event.job_id)
            self.logger.info(
                "Scheduled crawl finished",
                job_id=event.job_id,
                success=result.success,
                error=result.error,
                warnings=len(result.warnings)
            )
        except Exception as e:
            self.logger.error("Scheduled crawl raised unexpectedly", job_id=event.job_id, error=str(e))
        finally:
            semaphore.release()
            queue.task_done()
