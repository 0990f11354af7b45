"""
Trigger construction for scheduled crawl jobs.

This module provides:
- Anchor date/time parsing and schedule validation
- Derivation of APScheduler triggers from (date, time, frequency)
- TriggerRegistry, the live job id -> trigger table
"""

from datetime import datetime, tzinfo
from typing import Awaitable, Callable, Dict, List, Optional

import structlog
from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from scheduler.models import Frequency, ScheduledJob, ValidationResult
from utilities.exceptions import ScheduleValidationError, TriggerConstructionError

logger = structlog.get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMATS = ("%H:%M", "%H:%M:%S")


def parse_anchor(date: Optional[str], time: Optional[str], tz: tzinfo) -> datetime:
    """
    Parse an anchor date and time into an aware datetime.

    Args:
        date: Date as YYYY-MM-DD
        time: Time as HH:MM or HH:MM:SS
        tz: Timezone the anchor is expressed in

    Returns:
        Timezone-aware anchor datetime

    Raises:
        ScheduleValidationError: If either part is missing or malformed
    """
    if not date or not time:
        raise ScheduleValidationError("Date and time are required")

    text = f"{date.strip()} {time.strip()}"
    for time_format in TIME_FORMATS:
        try:
            naive = datetime.strptime(text, f"{DATE_FORMAT} {time_format}")
            break
        except ValueError:
            continue
    else:
        raise ScheduleValidationError(f"Invalid date/time format: '{text}'")

    return naive.replace(tzinfo=tz)


def validate_schedule(
    date: Optional[str],
    time: Optional[str],
    tz: tzinfo,
    now: Optional[datetime] = None
) -> ValidationResult:
    """Check that date+time is well-formed and strictly in the future. Never mutates state."""
    try:
        anchor = parse_anchor(date, time, tz)
    except ScheduleValidationError as e:
        return ValidationResult(valid=False, error=str(e))

    now = now or datetime.now(tz)
    if anchor <= now:
        return ValidationResult(valid=False, error="Date and time must be in the future")

    return ValidationResult(valid=True)


def build_trigger(
    date: str,
    time: str,
    frequency: Frequency,
    tz: tzinfo,
    now: Optional[datetime] = None
) -> BaseTrigger:
    """
    Derive the trigger pattern for a job anchor.

    once fires at the literal anchor instant; daily, weekly and monthly
    fire at the anchor's hour and minute (seconds dropped) on every day,
    on the anchor's weekday, or on the anchor's day of month. Months
    without that day are skipped.

    Raises:
        TriggerConstructionError: If the anchor is malformed or a one-shot anchor is not in the future
    """
    try:
        anchor = parse_anchor(date, time, tz)
    except ScheduleValidationError as e:
        raise TriggerConstructionError(str(e)) from e

    if frequency == Frequency.ONCE:
        now = now or datetime.now(tz)
        if anchor <= now:
            raise TriggerConstructionError(
                f"Run time {anchor.isoformat()} is not in the future"
            )
        return DateTrigger(run_date=anchor, timezone=tz)

    if frequency == Frequency.DAILY:
        return CronTrigger(hour=anchor.hour, minute=anchor.minute, second=0, timezone=tz)

    if frequency == Frequency.WEEKLY:
        return CronTrigger(
            day_of_week=anchor.weekday(),
            hour=anchor.hour,
            minute=anchor.minute,
            second=0,
            timezone=tz
        )

    if frequency == Frequency.MONTHLY:
        return CronTrigger(
            day=anchor.day,
            hour=anchor.hour,
            minute=anchor.minute,
            second=0,
            timezone=tz
        )

    raise TriggerConstructionError(f"Unsupported frequency: {frequency}")


class TriggerRegistry:
    """Live trigger table keyed by job id, backed by an APScheduler scheduler."""

    def __init__(
        self,
        scheduler: BaseScheduler,
        tz: tzinfo,
        callback: Callable[[str], Awaitable[None]]
    ):
        """
        Initialize trigger registry.

        Args:
            scheduler: APScheduler instance that runs the triggers
            tz: Timezone anchors are expressed in
            callback: Coroutine function invoked with the job id on fire
        """
        self.scheduler = scheduler
        self.tz = tz
        self.callback = callback
        self._triggers: Dict[str, Job] = {}
        self.logger = logger.bind(component="trigger_registry")

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._triggers

    def __len__(self) -> int:
        return len(self._triggers)

    def job_ids(self) -> List[str]:
        """Ids of jobs that currently have a live trigger."""
        return list(self._triggers)

    def arm(self, job: ScheduledJob, now: Optional[datetime] = None) -> Optional[datetime]:
        """
        Build and register the trigger for a job, replacing any existing one.

        Returns:
            Next fire time of the new trigger

        Raises:
            TriggerConstructionError: If the trigger cannot be built or registered
        """
        self.disarm(job.id)

        trigger = build_trigger(job.date, job.time, job.frequency, self.tz, now)
        try:
            aps_job = self.scheduler.add_job(
                func=self.callback,
                trigger=trigger,
                args=[job.id],
                id=job.id,
                name=job.name or job.id,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=None,
                replace_existing=True
            )
        except (ValueError, TypeError) as e:
            raise TriggerConstructionError(f"Could not register trigger: {e}") from e

        self._triggers[job.id] = aps_job
        next_run = self.next_run(job.id)

        self.logger.debug(
            "Armed trigger",
            job_id=job.id,
            frequency=job.frequency.value,
            next_run=next_run.isoformat() if next_run else None
        )
        return next_run

    def disarm(self, job_id: str) -> bool:
        """Remove the live trigger of a job. Returns False when none existed."""
        if self._triggers.pop(job_id, None) is None:
            return False

        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            # date triggers are dropped by the scheduler after their final run
            pass

        self.logger.debug("Disarmed trigger", job_id=job_id)
        return True

    def disarm_all(self) -> int:
        """Remove every live trigger. Returns how many were removed."""
        job_ids = self.job_ids()
        for job_id in job_ids:
            self.disarm(job_id)
        return len(job_ids)

    def next_run(self, job_id: str) -> Optional[datetime]:
        """Next fire time of a job's live trigger, or None without one."""
        aps_job = self._triggers.get(job_id)
        if aps_job is None:
            return None
        aps_job = self.scheduler.get_job(job_id) or aps_job

        next_run = getattr(aps_job, "next_run_time", None)
        if next_run is None:
            # pending jobs get next_run_time only once the scheduler starts
            next_run = aps_job.trigger.get_next_fire_time(None, datetime.now(self.tz))
        return next_run
