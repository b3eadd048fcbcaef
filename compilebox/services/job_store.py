"""
In-memory job records.

The engine only touches a job through ``mark_running`` and ``complete``;
reads come from the result API.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from structlog import get_logger

from compilebox.models.schemas import JobStatus
from compilebox.sandbox.workspace import is_valid_job_id

logger = get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    return uuid.uuid4().hex


@dataclass
class CompileJob:
    """One submitted source unit and its outcome."""

    code: str
    job_id: str = field(default_factory=new_job_id)
    status: JobStatus = JobStatus.PENDING
    success: bool | None = None
    output: str | None = None
    callback_url: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None

    @property
    def finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def start(self) -> None:
        self.status = JobStatus.RUNNING

    def complete(self, success: bool, output: str) -> None:
        self.success = success
        self.output = output
        self.status = JobStatus.COMPLETED if success else JobStatus.FAILED
        self.finished_at = _utcnow()


class JobStore:
    """Job records keyed by id, guarded by a single lock."""

    def __init__(self) -> None:
        self._jobs: dict[str, CompileJob] = {}
        self._lock = asyncio.Lock()

    async def create(
        self,
        code: str,
        job_id: str | None = None,
        callback_url: str | None = None,
    ) -> CompileJob:
        if job_id is not None and not is_valid_job_id(job_id):
            raise ValueError(f"Invalid job id: {job_id!r}")
        job = CompileJob(code=code, job_id=job_id or new_job_id(), callback_url=callback_url)
        async with self._lock:
            if job.job_id in self._jobs:
                raise ValueError(f"Job {job.job_id} already exists")
            self._jobs[job.job_id] = job
        logger.debug("Job created", job_id=job.job_id)
        return job

    async def get(self, job_id: str) -> CompileJob | None:
        async with self._lock:
            return self._jobs.get(job_id)

    async def mark_running(self, job_id: str) -> CompileJob:
        async with self._lock:
            job = self._require(job_id)
            job.start()
            return job

    async def complete(self, job_id: str, success: bool, output: str) -> CompileJob:
        async with self._lock:
            job = self._require(job_id)
            job.complete(success, output)
        logger.info("Job completed", job_id=job_id, success=success)
        return job

    async def discard(self, job_id: str) -> None:
        """Forget a job that was never queued."""
        async with self._lock:
            self._jobs.pop(job_id, None)

    async def prune(self, max_age_s: float) -> int:
        """Drop finished jobs older than *max_age_s*; return how many were dropped."""
        cutoff = _utcnow() - timedelta(seconds=max_age_s)
        async with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if job.finished and job.finished_at is not None and job.finished_at < cutoff
            ]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            logger.debug("Pruned finished jobs", count=len(expired))
        return len(expired)

    def _require(self, job_id: str) -> CompileJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise KeyError(job_id)
        return job
