"""
Configuration management using environment variables and a persisted overlay.

Defaults and environment variables form the base settings; a partial
``settings.json`` saved by the user is laid over them field by field.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

logger = structlog.get_logger(__name__)

USER_EDITABLE_KEYS = (
    "screaming_frog_path",
    "output_folder",
    "config_folder",
    "temp_folder",
)

DEFAULT_EXECUTABLE = "/usr/bin/screamingfrogseospider"


class CliOptions(BaseModel):
    """Options passed to the crawler executable on every run."""
    headless: bool = Field(default=True)
    save_crawl: bool = Field(default=True)
    export_format: str = Field(default="xlsx", description="Export format (xlsx/csv)")
    timeout_seconds: Optional[float] = Field(default=None, description="None waits forever")

    @field_validator("export_format")
    @classmethod
    def validate_export_format(cls, v):
        """Ensure export format is one the snapshot reader understands."""
        valid_formats = ["xlsx", "csv"]
        if v.lower() not in valid_formats:
            raise ValueError(f"export_format must be one of: {valid_formats}")
        return v.lower()


class CliOverrides(BaseModel):
    """Partial CliOptions as persisted by the user."""
    headless: Optional[bool] = None
    save_crawl: Optional[bool] = None
    export_format: Optional[str] = None
    timeout_seconds: Optional[float] = None


class AppSettings(BaseSettings):
    """
    Application settings.
    Uses pydantic BaseSettings for environment variable management.
    """

    # Paths
    screaming_frog_path: str = Field(default=DEFAULT_EXECUTABLE)
    output_folder: Path = Field(default=Path.home() / "SF_Output")
    config_folder: Path = Field(default=Path.home() / "SF_Configs")
    temp_folder: Path = Field(default=Path.home() / "SF_Temp")
    data_dir: Path = Field(default=Path.home() / ".sf_automation")

    # Scheduling
    timezone: str = Field(default="UTC", description="Timezone schedule anchors are expressed in")
    max_concurrent_crawls: int = Field(default=1)

    # Crawler
    cli: CliOptions = Field(default_factory=CliOptions)
    default_export_options: Dict[str, Any] = Field(
        default_factory=lambda: {"export_tabs": {"internal": {"all": True}, "external": {"all": True}}}
    )

    # Reporting
    report_formats: List[str] = Field(default=["json", "csv"])

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)
    debug: bool = Field(default=False)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        """Ensure timezone is a known IANA name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {v}")
        return v

    @field_validator("max_concurrent_crawls")
    @classmethod
    def validate_concurrency(cls, v):
        """Ensure concurrent crawls is reasonable."""
        if v < 1 or v > 10:
            raise ValueError("max_concurrent_crawls must be between 1 and 10")
        return v

    @field_validator("report_formats")
    @classmethod
    def validate_report_formats(cls, v):
        """Ensure report formats are supported."""
        valid_formats = {"json", "csv"}
        lowered = [item.lower() for item in v]
        unknown = set(lowered) - valid_formats
        if unknown:
            raise ValueError(f"report_formats must be within: {sorted(valid_formats)}")
        return lowered

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    @property
    def jobs_file(self) -> Path:
        """Path of the persisted scheduled job list."""
        return self.data_dir / "scheduled_jobs.json"

    @property
    def settings_file(self) -> Path:
        """Path of the persisted user settings overlay."""
        return self.data_dir / "settings.json"

    def get_zoneinfo(self) -> ZoneInfo:
        """Timezone used to interpret schedule anchors."""
        return ZoneInfo(self.timezone)

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None


class PersistedSettings(BaseModel):
    """Explicit schema of the user settings overlay; every field is optional."""
    screaming_frog_path: Optional[str] = None
    output_folder: Optional[Path] = None
    config_folder: Optional[Path] = None
    temp_folder: Optional[Path] = None
    timezone: Optional[str] = None
    max_concurrent_crawls: Optional[int] = None
    report_formats: Optional[List[str]] = None
    cli: Optional[CliOverrides] = None


def apply_overlay(base: AppSettings, overlay: PersistedSettings) -> AppSettings:
    """Lay a persisted overlay over the base settings and re-validate the result."""
    merged = base.model_dump()
    for key, value in overlay.model_dump(exclude_none=True, exclude={"cli"}).items():
        merged[key] = value
    if overlay.cli is not None:
        merged["cli"] = {**merged["cli"], **overlay.cli.model_dump(exclude_none=True)}
    return AppSettings.model_validate(merged)


def load_settings(settings_file: Optional[Path] = None, **overrides) -> AppSettings:
    """
    Resolve settings: defaults + environment, then the persisted overlay.

    Args:
        settings_file: Overlay location (defaults to ``data_dir/settings.json``)
        **overrides: Values that take precedence over environment and defaults

    Returns:
        Fully resolved AppSettings
    """
    base = AppSettings(**overrides)
    path = Path(settings_file) if settings_file else base.settings_file

    if not path.exists():
        return base

    try:
        overlay = PersistedSettings.model_validate_json(path.read_text(encoding="utf-8"))
        settings = apply_overlay(base, overlay)
    except (OSError, ValidationError, ValueError) as e:
        logger.warning("Ignoring unreadable settings file", path=str(path), error=str(e))
        return base

    logger.debug("Loaded persisted settings", path=str(path))
    return settings


def save_user_paths(settings: AppSettings, new_paths: Dict[str, Any],
                    settings_file: Optional[Path] = None) -> AppSettings:
    """
    Update only the user-editable path keys and persist them.

    Keys outside USER_EDITABLE_KEYS are ignored so internal options are never clobbered.
    """
    path = Path(settings_file) if settings_file else settings.settings_file

    existing: Dict[str, Any] = {}
    if path.exists():
        try:
            existing = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Overwriting unreadable settings file", path=str(path), error=str(e))

    updates = {key: new_paths[key] for key in USER_EDITABLE_KEYS if new_paths.get(key) is not None}
    existing.update({key: str(value) for key, value in updates.items()})

    overlay = PersistedSettings.model_validate(existing)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(overlay.model_dump_json(indent=2, exclude_none=True), encoding="utf-8")

    logger.info("Saved user paths", path=str(path), keys=sorted(updates))
    return apply_overlay(settings, PersistedSettings.model_validate(updates))
