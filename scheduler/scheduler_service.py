"""
Scheduler service for recurring and one-shot crawl jobs.

This module provides:
- Job management (add, cancel, delete, rename, change frequency, list)
- One live APScheduler trigger per active job
- Trigger recovery for persisted active jobs on startup
- Publication of due jobs on a dispatch queue for the crawl pipeline
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Dict, List, Optional, Union

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from scheduler.events import EventBus, EventType
from scheduler.job_store import JobStore
from scheduler.models import (
    ErrorType, Frequency, JobDueEvent, JobRequest, JobStatus, JobView,
    OperationResult, ScheduledJob, ValidationResult
)
from scheduler.triggers import TriggerRegistry, validate_schedule
from utilities.config import AppSettings
from utilities.exceptions import (
    PersistenceError, ScheduleValidationError, TriggerConstructionError
)

logger = structlog.get_logger(__name__)


class SchedulerService:
    """Scheduler engine keeping live triggers consistent with the job store."""

    def __init__(
        self,
        settings: AppSettings,
        events: Optional[EventBus] = None,
        store: Optional[JobStore] = None
    ):
        """
        Initialize scheduler service.

        Args:
            settings: Application settings
            events: Notification channel (a private one is created when omitted)
            store: Job store (defaults to the settings' jobs file)
        """
        self.settings = settings
        self.tz = settings.get_zoneinfo()
        self.scheduler = AsyncIOScheduler(timezone=self.tz)
        self.store = store or JobStore(settings.jobs_file, self.tz)
        self.events = events or EventBus()
        self.registry = TriggerRegistry(self.scheduler, self.tz, self._on_trigger)
        self.due_jobs: "asyncio.Queue[JobDueEvent]" = asyncio.Queue()
        self._lock = asyncio.Lock()
        self.logger = logger.bind(component="scheduler_service")

        self._setup_scheduler_listeners()

    def _setup_scheduler_listeners(self) -> None:
        """Setup scheduler event listeners."""
        def job_executed_listener(event):
            self.logger.debug("Trigger callback finished", job_id=event.job_id)

        def job_error_listener(event):
            self.logger.error(
                "Trigger callback failed",
                job_id=event.job_id,
                error=str(event.exception)
            )

        def job_missed_listener(event):
            self.logger.warning(
                "Trigger fire time missed",
                job_id=event.job_id,
                scheduled_run_time=str(event.scheduled_run_time)
            )

        self.scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)
        self.scheduler.add_listener(job_missed_listener, EVENT_JOB_MISSED)

    async def start(self) -> int:
        """
        Load persisted jobs, start the scheduler and rebuild triggers.

        Must be awaited from within the running event loop.

        Returns:
            Number of triggers rebuilt
        """
        await self.store.load()

        if not self.scheduler.running:
            self.scheduler.start()

        rebuilt = self.recover_triggers()

        self.logger.info(
            "Scheduler service started",
            timezone=self.settings.timezone,
            jobs=len(self.store.list()),
            live_triggers=rebuilt
        )
        return rebuilt

    def recover_triggers(self) -> int:
        """
        Arm a trigger for every active job, in list order.

        A job whose trigger cannot be built keeps its persisted active status
        and simply has no trigger until its next explicit mutation.
        """
        rebuilt = 0
        for job in self.store.list():
            if job.status != JobStatus.ACTIVE:
                continue
            try:
                self.registry.arm(job)
                rebuilt += 1
            except TriggerConstructionError as e:
                self.logger.warning(
                    "Could not rebuild trigger for active job",
                    job_id=job.id,
                    frequency=job.frequency.value,
                    error=str(e)
                )
        return rebuilt

    def shutdown(self) -> None:
        """Cancel all live triggers without touching persisted jobs."""
        removed = self.registry.disarm_all()

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        self.logger.info("Scheduler service stopped", triggers_cancelled=removed)

    def validate(self, date: Optional[str], time: Optional[str]) -> ValidationResult:
        """Pre-flight check with the same verdict add() uses. Never mutates state."""
        return validate_schedule(date, time, self.tz)

    async def add(self, request: JobRequest) -> OperationResult:
        """Create an active job and arm its trigger."""
        job = request.to_job()
        warning = None

        async with self._lock:
            try:
                await self.store.add(job)
            except ScheduleValidationError as e:
                return OperationResult.failure(ErrorType.VALIDATION, str(e))
            except PersistenceError as e:
                warning = str(e)

            try:
                next_run = self.registry.arm(job)
            except TriggerConstructionError as e:
                warning = await self._persisting(self.store.set_status(job.id, JobStatus.ERROR)) or warning
                self.logger.warning("Job stored with error status", job_id=job.id, error=str(e))
                return OperationResult.failure(
                    ErrorType.TRIGGER_CONSTRUCTION, str(e), job=self._view(job), warning=warning
                )

        self.logger.info(
            "Scheduled job added",
            job_id=job.id,
            frequency=job.frequency.value,
            next_run=next_run.isoformat() if next_run else None
        )
        return OperationResult(success=True, warning=warning, job=self._view(job), next_run=next_run)

    async def cancel(self, job_id: str) -> OperationResult:
        """Tear down a job's trigger and mark it cancelled, keeping the record."""
        async with self._lock:
            job = self.store.get(job_id)
            if job is None:
                return self._not_found(job_id)

            self.registry.disarm(job_id)
            warning = await self._persisting(self.store.cancel(job_id))

        self.logger.info("Scheduled job cancelled", job_id=job_id)
        return OperationResult(success=True, warning=warning, job=self._view(job))

    async def delete(self, job_id: str) -> OperationResult:
        """Remove a job and free its trigger."""
        async with self._lock:
            if self.store.get(job_id) is None:
                return self._not_found(job_id)

            self.registry.disarm(job_id)
            warning = await self._persisting(self.store.delete(job_id))

        self.logger.info("Scheduled job deleted", job_id=job_id)
        return OperationResult(success=True, warning=warning)

    async def update_name(self, job_id: str, name: Optional[str]) -> OperationResult:
        async with self._lock:
            job = self.store.get(job_id)
            if job is None:
                return self._not_found(job_id)

            warning = await self._persisting(self.store.update_name(job_id, name))

        self.logger.info("Scheduled job renamed", job_id=job_id, name=job.name)
        return OperationResult(success=True, warning=warning, job=self._view(job))

    async def update_frequency(
        self,
        job_id: str,
        frequency: Union[Frequency, str]
    ) -> OperationResult:
        """
        Change a job's frequency and rebuild its trigger from the stored anchor.

        Active jobs (and jobs in error, which get another chance) are re-armed;
        cancelled jobs only record the new frequency.
        """
        try:
            frequency = Frequency(frequency)
        except ValueError:
            return OperationResult.failure(ErrorType.VALIDATION, f"Unknown frequency: {frequency}")

        async with self._lock:
            job = self.store.get(job_id)
            if job is None:
                return self._not_found(job_id)

            self.registry.disarm(job_id)
            warning = await self._persisting(self.store.update_frequency(job_id, frequency))

            next_run = None
            if job.status in (JobStatus.ACTIVE, JobStatus.ERROR):
                try:
                    next_run = self.registry.arm(job)
                except TriggerConstructionError as e:
                    if job.status != JobStatus.ERROR:
                        warning = await self._persisting(
                            self.store.set_status(job_id, JobStatus.ERROR)
                        ) or warning
                    self.logger.warning(
                        "Could not rebuild trigger with new frequency",
                        job_id=job_id,
                        frequency=frequency.value,
                        error=str(e)
                    )
                    return OperationResult.failure(
                        ErrorType.TRIGGER_CONSTRUCTION, str(e), job=self._view(job), warning=warning
                    )

                if job.status == JobStatus.ERROR:
                    warning = await self._persisting(
                        self.store.set_status(job_id, JobStatus.ACTIVE)
                    ) or warning

        self.logger.info(
            "Scheduled job frequency updated",
            job_id=job_id,
            frequency=frequency.value,
            next_run=next_run.isoformat() if next_run else None
        )
        return OperationResult(success=True, warning=warning, job=self._view(job), next_run=next_run)

    def list_jobs(self) -> List[JobView]:
        """All job records joined with their live trigger state."""
        return [self._view(job) for job in self.store.list()]

    def get_job(self, job_id: str) -> Optional[JobView]:
        job = self.store.get(job_id)
        return self._view(job) if job else None

    def get_scheduler_status(self) -> Dict:
        """Get current scheduler status."""
        jobs = self.store.list()
        return {
            "running": self.scheduler.running,
            "timezone": self.settings.timezone,
            "job_count": len(jobs),
            "active_jobs": sum(1 for job in jobs if job.status == JobStatus.ACTIVE),
            "live_triggers": len(self.registry),
            "pending_dispatch": self.due_jobs.qsize()
        }

    async def _on_trigger(self, job_id: str) -> None:
        """Publish a due job and retire one-shot jobs."""
        async with self._lock:
            job = self.store.get(job_id)
            if job is None or job.status != JobStatus.ACTIVE:
                self.logger.warning("Trigger fired for inactive job", job_id=job_id)
                self.registry.disarm(job_id)
                return

            event = JobDueEvent(
                job_id=job.id,
                crawl_config=dict(job.crawl_config),
                frequency=job.frequency,
                fired_at=datetime.now(self.tz)
            )
            self.due_jobs.put_nowait(event)
            self.events.emit(EventType.JOB_DUE, event=event)

            self.logger.info(
                "Scheduled job due",
                job_id=job_id,
                frequency=job.frequency.value,
                target=job.crawl_config.get("url") or job.crawl_config.get("file_path")
            )

            if job.frequency == Frequency.ONCE:
                self.registry.disarm(job_id)
                await self._persisting(self.store.delete(job_id))
                self.events.emit(EventType.JOB_REMOVED, job_id=job_id)
                self.logger.info("One-shot job removed after dispatch", job_id=job_id)

    async def _persisting(self, operation: Awaitable[ScheduledJob]) -> Optional[str]:
        """Await a store mutation, turning a failed write into a warning."""
        try:
            await operation
        except PersistenceError as e:
            return str(e)
        return None

    def _view(self, job: ScheduledJob) -> JobView:
        return JobView.from_job(
            job,
            next_run=self.registry.next_run(job.id),
            is_active=job.id in self.registry
        )

    def _not_found(self, job_id: str) -> OperationResult:
        self.logger.warning("Scheduled job not found", job_id=job_id)
        return OperationResult.failure(ErrorType.NOT_FOUND, f"Scheduled job '{job_id}' not found")
