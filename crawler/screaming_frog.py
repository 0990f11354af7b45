"""
Crawl executor wrapping the Screaming Frog SEO Spider command line.

Runs the executable as a subprocess on the event loop and reports the
run folder it exported into.
"""

import asyncio
import time
from pathlib import Path
from typing import Callable, List, Optional

import structlog

from crawler.command_builder import CommandBuilder
from crawler.models import CrawlMode, CrawlOutput, CrawlRequest, ExportOptions
from crawler.paths import OutputPaths, split_base_name
from utilities.config import AppSettings
from utilities.exceptions import CrawlFailedError

logger = structlog.get_logger(__name__)

STDERR_LIMIT = 500
SAVED_CRAWL_SUFFIX = ".seospider"

ProgressCallback = Callable[[str], None]


def _no_progress(phase: str) -> None:
    pass


class ScreamingFrogService:
    """Crawl executor for url and file mode requests."""

    def __init__(self, settings: AppSettings, paths: Optional[OutputPaths] = None):
        """
        Initialize crawl executor.

        Args:
            settings: Application settings (executable, CLI options, default exports)
            paths: Output path helper (built from settings when omitted)
        """
        self.settings = settings
        self.paths = paths or OutputPaths(settings)
        self.logger = logger.bind(component="screaming_frog")

    @property
    def commands(self) -> CommandBuilder:
        return CommandBuilder(self.settings.screaming_frog_path, self.settings.cli)

    async def execute(
        self,
        request: CrawlRequest,
        on_progress: ProgressCallback = _no_progress
    ) -> CrawlOutput:
        """
        Run the crawler for a request.

        Raises:
            CrawlFailedError: If the executable or input file is missing, the
                process exits non-zero or the configured timeout elapses
        """
        if request.mode == CrawlMode.FILE:
            return await self.process_existing_crawl(request, on_progress)
        return await self.execute_crawl(request, on_progress)

    async def execute_crawl(
        self,
        request: CrawlRequest,
        on_progress: ProgressCallback = _no_progress
    ) -> CrawlOutput:
        """Crawl a live URL into a fresh run folder."""
        self.logger.info("Starting crawl", url=request.url)

        on_progress("Checking Screaming Frog...")
        self.paths.validate_executable()

        on_progress("Preparing output folder...")
        output_path, base_name = self.paths.create_output_directory(request.url)

        on_progress("Running crawl...")
        args = self.commands.build_crawl_command(
            url=request.url,
            output_path=output_path,
            base_name=base_name,
            export_options=self._export_options(request),
            config_file=request.config_file
        )
        duration = await self._run(args)

        self.logger.info("Crawl completed", output_path=str(output_path), duration_seconds=duration)
        return CrawlOutput(output_path=output_path, base_name=base_name, duration_seconds=duration)

    async def process_existing_crawl(
        self,
        request: CrawlRequest,
        on_progress: ProgressCallback = _no_progress
    ) -> CrawlOutput:
        """Re-export a saved crawl file into a fresh run folder."""
        file_path = Path(request.file_path)
        self.logger.info("Processing saved crawl", file_path=str(file_path))

        on_progress("Checking files...")
        self.paths.validate_executable()
        if not file_path.is_file():
            raise CrawlFailedError(f"Crawl file not found: {file_path}")

        # saved crawls are named {domain}_{YYYYMMDD_HHMMSS}.seospider
        stem = file_path.name
        if stem.lower().endswith(SAVED_CRAWL_SUFFIX):
            stem = stem[:-len(SAVED_CRAWL_SUFFIX)]
        domain = split_base_name(stem)[0] or "unknown"

        on_progress("Preparing output folder...")
        output_path, base_name = self.paths.create_run_directory(domain)

        on_progress("Processing file...")
        args = self.commands.build_process_command(
            file_path=str(file_path),
            output_path=output_path,
            export_options=self._export_options(request)
        )
        duration = await self._run(args)

        self.logger.info("Saved crawl processed", output_path=str(output_path), duration_seconds=duration)
        return CrawlOutput(output_path=output_path, base_name=base_name, duration_seconds=duration)

    def _export_options(self, request: CrawlRequest) -> ExportOptions:
        if request.export_options is not None:
            return request.export_options
        return ExportOptions.model_validate(self.settings.default_export_options)

    async def _run(self, args: List[str]) -> float:
        """Run the executable and return its wall-clock duration in seconds."""
        start_time = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            self.logger.error("Failed to start Screaming Frog CLI", error=str(e))
            raise CrawlFailedError(f"Screaming Frog failed: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.settings.cli.timeout_seconds)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            self.logger.error("Screaming Frog CLI timed out", timeout_seconds=self.settings.cli.timeout_seconds)
            raise CrawlFailedError(
                f"Screaming Frog failed: timed out after {self.settings.cli.timeout_seconds} seconds"
            )
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            self.logger.warning("Screaming Frog CLI stopped, crawl cancelled", pid=process.pid)
            raise

        stderr_text = stderr.decode("utf-8", errors="replace").strip()[:STDERR_LIMIT] if stderr else ""
        if process.returncode != 0:
            self.logger.error(
                "Screaming Frog CLI exited with an error",
                returncode=process.returncode,
                stderr=stderr_text
            )
            raise CrawlFailedError(
                f"Screaming Frog failed: {stderr_text or f'exit code {process.returncode}'}",
                stderr=stderr_text
            )

        if stderr_text:
            self.logger.warning("Screaming Frog stderr", stderr=stderr_text)

        return round(time.monotonic() - start_time, 2)
