"""
Output path management for crawl runs.

Every run writes into ``{output_folder}/{domain}_{YYYYMMDD_HHMMSS}``; the
timestamp form sorts lexicographically, so the most recent earlier run of
a domain is the greatest matching folder name.
"""

import os
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import urlparse

import structlog

from comparison.models import PreviousCrawl
from utilities.config import AppSettings
from utilities.exceptions import CrawlFailedError

logger = structlog.get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
TIMESTAMP_PATTERN = r"\d{8}_\d{6}"
BASE_NAME_RE = re.compile(rf"^(.*)_({TIMESTAMP_PATTERN})$")


def extract_domain(url: str) -> str:
    """
    Short domain label of a URL: "https://www.ejemplo.co.es/ruta" -> "ejemplo".

    Returns "unknown" when the URL has no host.
    """
    try:
        hostname = urlparse(url or "").hostname
    except ValueError:
        hostname = None

    if not hostname:
        logger.warning("Could not extract domain from URL", url=url)
        return "unknown"

    if hostname.startswith("www."):
        hostname = hostname[len("www."):]
    return hostname.split(".")[0] or "unknown"


def split_base_name(base_name: str) -> Tuple[str, Optional[str]]:
    """
    Split "{domain}_{YYYYMMDD_HHMMSS}" on its trailing timestamp.

    The domain label may itself contain underscores ("my_site_20240101_100000"
    -> ("my_site", "20240101_100000")). A name without a trailing timestamp is
    returned whole with no timestamp.
    """
    match = BASE_NAME_RE.match(base_name or "")
    if not match:
        return base_name, None
    return match.group(1), match.group(2)


def format_timestamp(timestamp: Optional[str]) -> Optional[str]:
    """Render YYYYMMDD_HHMMSS as DD/MM/YYYY HH:MM:SS; shorter input is returned unchanged."""
    if not timestamp or len(timestamp) < 15:
        return timestamp
    return (
        f"{timestamp[6:8]}/{timestamp[4:6]}/{timestamp[0:4]} "
        f"{timestamp[9:11]}:{timestamp[11:13]}:{timestamp[13:15]}"
    )


class OutputPaths:
    """Run folder naming and discovery under the configured output folder."""

    def __init__(self, settings: AppSettings):
        self.settings = settings
        self.tz = settings.get_zoneinfo()
        self.logger = logger.bind(component="output_paths")

    extract_domain = staticmethod(extract_domain)
    split_base_name = staticmethod(split_base_name)
    format_timestamp = staticmethod(format_timestamp)

    def get_timestamp(self, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(self.tz)
        return now.strftime(TIMESTAMP_FORMAT)

    def generate_base_name(self, url: str, now: Optional[datetime] = None) -> str:
        """Folder and file base name, e.g. "ejemplo_20260117_143052"."""
        return f"{extract_domain(url)}_{self.get_timestamp(now)}"

    def create_output_directory(self, url: str, now: Optional[datetime] = None) -> Tuple[Path, str]:
        """
        Create the run folder for a crawl.

        Returns:
            Tuple of (output path, base name)
        """
        return self.create_run_directory(extract_domain(url), now)

    def create_run_directory(self, domain: str, now: Optional[datetime] = None) -> Tuple[Path, str]:
        base_name = f"{domain}_{self.get_timestamp(now)}"
        output_path = Path(self.settings.output_folder) / base_name
        output_path.mkdir(parents=True, exist_ok=True)

        self.logger.info("Created output directory", output_path=str(output_path))
        return output_path, base_name

    def ensure_directories(self) -> None:
        """Create the output, temp and config folders if missing."""
        for directory in (self.settings.output_folder, self.settings.temp_folder, self.settings.config_folder):
            Path(directory).mkdir(parents=True, exist_ok=True)

    def validate_executable(self) -> Path:
        """
        Raises:
            CrawlFailedError: If the crawler executable is missing or not executable
        """
        executable = Path(self.settings.screaming_frog_path)
        if not executable.is_file() or not os.access(executable, os.X_OK):
            raise CrawlFailedError(f"Screaming Frog CLI not found at: {executable}")
        return executable

    def list_files(self, directory: Path, extensions: Optional[Tuple[str, ...]] = None) -> List[str]:
        """File names in a directory, sorted, optionally filtered by extension."""
        try:
            names = sorted(entry.name for entry in Path(directory).iterdir() if entry.is_file())
        except OSError as e:
            self.logger.warning("Could not list directory", directory=str(directory), error=str(e))
            return []

        if extensions:
            lowered = tuple(ext.lower() for ext in extensions)
            names = [name for name in names if name.lower().endswith(lowered)]
        return names

    def find_previous_crawl(self, domain: str, exclude_folder: Optional[str] = None) -> Optional[PreviousCrawl]:
        """
        Most recent run folder of a domain other than ``exclude_folder``.

        Only folders named exactly ``{domain}_YYYYMMDD_HHMMSS`` are considered.
        """
        output_folder = Path(self.settings.output_folder)
        pattern = re.compile(rf"^{re.escape(domain)}_({TIMESTAMP_PATTERN})$")

        try:
            folders = [entry.name for entry in output_folder.iterdir() if entry.is_dir()]
        except OSError as e:
            self.logger.warning("Could not scan output folder", domain=domain, error=str(e))
            return None

        matching = sorted(
            (name for name in folders if pattern.match(name) and name != exclude_folder),
            reverse=True
        )
        if not matching:
            self.logger.info("No previous crawl found", domain=domain)
            return None

        folder_name = matching[0]
        self.logger.info("Previous crawl found", folder=folder_name)
        return PreviousCrawl(
            path=output_folder / folder_name,
            folder_name=folder_name,
            timestamp=pattern.match(folder_name).group(1)
        )
