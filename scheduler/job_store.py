"""
Durable storage for scheduled crawl jobs.

The whole job list is kept in memory and rewritten atomically to a JSON
file after every mutation. The in-memory list stays authoritative when a
write fails.
"""

import asyncio
import json
import os
import tempfile
from datetime import datetime, tzinfo
from pathlib import Path
from typing import List, Optional

import structlog
from pydantic import ValidationError

from scheduler.models import Frequency, JobStatus, ScheduledJob
from scheduler.triggers import validate_schedule
from utilities.exceptions import JobNotFoundError, PersistenceError, ScheduleValidationError

logger = structlog.get_logger(__name__)


class JobStore:
    """CRUD over the persisted list of ScheduledJob records."""

    def __init__(self, path: Path, tz: tzinfo):
        """
        Initialize job store.

        Args:
            path: JSON file holding the job list
            tz: Timezone used when validating new jobs
        """
        self.path = Path(path)
        self.tz = tz
        self._jobs: List[ScheduledJob] = []
        self.logger = logger.bind(component="job_store")

    async def load(self) -> List[ScheduledJob]:
        """
        Read persisted jobs. A missing or unparseable file yields an empty list.

        Returns:
            Loaded jobs in persisted order
        """
        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except FileNotFoundError:
            self.logger.info("No persisted jobs found", path=str(self.path))
            self._jobs = []
            return self.list()
        except OSError as e:
            self.logger.warning("Could not read persisted jobs", path=str(self.path), error=str(e))
            self._jobs = []
            return self.list()

        try:
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ValueError("job file does not contain a list")
        except ValueError as e:
            self.logger.warning("Persisted jobs are unparseable", path=str(self.path), error=str(e))
            self._jobs = []
            return self.list()

        jobs = []
        for index, record in enumerate(records):
            try:
                jobs.append(ScheduledJob.model_validate(record))
            except ValidationError as e:
                self.logger.warning("Skipping invalid job record", index=index, error=str(e))

        self._jobs = jobs
        self.logger.info("Loaded scheduled jobs", total=len(jobs), path=str(self.path))
        return self.list()

    def list(self) -> List[ScheduledJob]:
        """All job records in list order."""
        return list(self._jobs)

    def get(self, job_id: str) -> Optional[ScheduledJob]:
        for job in self._jobs:
            if job.id == job_id:
                return job
        return None

    def require(self, job_id: str) -> ScheduledJob:
        job = self.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def add(self, job: ScheduledJob, now: Optional[datetime] = None) -> ScheduledJob:
        """
        Validate and append a job with status active, then persist.

        Raises:
            ScheduleValidationError: If the anchor is malformed or not in the future
            PersistenceError: If the job was kept in memory but could not be written
        """
        validation = validate_schedule(job.date, job.time, self.tz, now)
        if not validation.valid:
            raise ScheduleValidationError(validation.error)

        job.status = JobStatus.ACTIVE
        self._jobs.append(job)
        await self._persist()
        return job

    async def cancel(self, job_id: str) -> ScheduledJob:
        """Mark a job cancelled, keeping the record."""
        return await self.set_status(job_id, JobStatus.CANCELLED)

    async def set_status(self, job_id: str, status: JobStatus) -> ScheduledJob:
        job = self.require(job_id)
        job.status = status
        await self._persist()
        return job

    async def delete(self, job_id: str) -> ScheduledJob:
        """Remove a job record entirely."""
        job = self.require(job_id)
        self._jobs = [item for item in self._jobs if item.id != job_id]
        await self._persist()
        return job

    async def update_name(self, job_id: str, name: Optional[str]) -> ScheduledJob:
        job = self.require(job_id)
        job.name = name or None
        await self._persist()
        return job

    async def update_frequency(self, job_id: str, frequency: Frequency) -> ScheduledJob:
        """Record a new frequency. Trigger rebuilding is the scheduler's responsibility."""
        job = self.require(job_id)
        job.frequency = frequency
        await self._persist()
        return job

    async def _persist(self) -> None:
        """Rewrite the full job list atomically."""
        payload = json.dumps(
            [job.model_dump(mode="json") for job in self._jobs],
            indent=2,
            ensure_ascii=False
        )
        try:
            await asyncio.to_thread(self._write_atomic, payload)
        except OSError as e:
            self.logger.error("Failed to persist scheduled jobs", path=str(self.path), error=str(e))
            raise PersistenceError(
                f"Changes are kept in memory but could not be saved to {self.path}: {e}"
            ) from e

    def _write_atomic(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".jobs-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
