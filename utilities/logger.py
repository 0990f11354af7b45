"""
Structured logging using structlog.
Provides JSON or console output and a crawl-scoped logger for the pipeline.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

import structlog
from structlog.stdlib import LoggerFactory


def _build_processors(log_format: str, debug: bool) -> list:
    """Processor chain shared by the daemon, the API and one-off crawls."""
    chain = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if debug:
        chain.append(structlog.processors.CallsiteParameterAdder())

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    chain.append(renderer)
    return chain


def _build_handlers(log_file: Optional[Union[str, Path]]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    return handlers


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Union[str, Path]] = None,
    debug: bool = False
) -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "json" for JSON lines, "console" for a human readable renderer
        log_file: Also write every event to this file
        debug: Add call-site information to every event
    """
    level = logging.getLevelName(log_level.upper())

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=_build_handlers(log_file),
        force=True,
    )

    structlog.configure(
        processors=_build_processors(log_format, debug),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=log_level,
        format=log_format,
        log_file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Structured logger for a module, usually called with __name__."""
    return structlog.get_logger(name)


class CrawlLogger:
    """
    Logger for a single pipeline run with bound run context.
    """

    def __init__(self, name: str = "crawl_pipeline"):
        self.logger = structlog.get_logger(name)
        self.context = {}

    def bind_context(self, **kwargs) -> 'CrawlLogger':
        """Bind context variables (job id, target, base name) to every event."""
        self.context.update(kwargs)
        return self

    def log_crawl_start(self, target: str, mode: str) -> None:
        """Log crawl run start."""
        self.logger.info("Crawl run started", target=target, mode=mode, **self.context)

    def log_phase(self, phase: str) -> None:
        """Log a pipeline phase transition."""
        self.logger.debug("Crawl phase", phase=phase, **self.context)

    def log_crawl_complete(
        self,
        output_path: str,
        duration_seconds: float,
        files: List[str],
        warnings: int = 0
    ) -> None:
        """Log crawl run completion."""
        self.logger.info(
            "Crawl run completed",
            output_path=output_path,
            duration_seconds=duration_seconds,
            files=len(files),
            warnings=warnings,
            **self.context
        )

    def log_warning(self, message: str, error: Optional[str] = None) -> None:
        """Log a non-fatal pipeline problem."""
        self.logger.warning(message, error=error, **self.context)

    def log_error(self, error: str) -> None:
        """Log a crawl failure."""
        self.logger.error("Crawl run failed", error=error, **self.context)
