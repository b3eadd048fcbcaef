"""
Compile service wiring and lifecycle management.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from structlog import get_logger

from compilebox.config import Settings, get_settings
from compilebox.sandbox.entry import EntryUnitResolver
from compilebox.sandbox.pool import SandboxPool
from compilebox.sandbox.process import ProcessRunner
from compilebox.sandbox.runtime import ContainerRuntime, DockerRuntime
from compilebox.sandbox.security import CodeValidator
from compilebox.sandbox.worker import WorkerExecutor
from compilebox.sandbox.workspace import WorkspaceManager
from compilebox.services.dispatcher import JobDispatcher
from compilebox.services.job_store import CompileJob, JobStore
from compilebox.services.notifier import ResultNotifier

logger = get_logger()

_PRUNE_INTERVAL_S = 60.0

# Global service instance
_service: "CompileService | None" = None


class CompileService:
    """
    Owns the engine components for one deployment.

    Usage::

        service = CompileService(get_settings())
        await service.start()
        job = await service.submit(code)
        ...
        await service.stop()
    """

    def __init__(
        self,
        settings: Settings,
        runtime: ContainerRuntime | None = None,
        runner: ProcessRunner | None = None,
        notifier: ResultNotifier | None = None,
    ) -> None:
        config = settings.sandbox
        self.settings = settings
        self.runtime = runtime or DockerRuntime(config)
        self.jobs = JobStore()
        self.workspace = WorkspaceManager(config.workspace_root)
        self.pool = SandboxPool(
            self.runtime,
            count=config.worker_count,
            max_usage=config.max_container_usage,
            prefix=config.container_prefix,
        )
        self.notifier = notifier or ResultNotifier(
            default_url=settings.callback.url,
            timeout=settings.callback.timeout,
        )
        self.worker = WorkerExecutor(
            pool=self.pool,
            runner=runner or ProcessRunner(max_output_chars=config.max_output_chars),
            workspace=self.workspace,
            jobs=self.jobs,
            notifier=self.notifier,
            validator=CodeValidator(config.forbidden_keywords),
            resolver=EntryUnitResolver(),
            compile_timeout_ms=config.compile_timeout_ms,
            run_timeout_ms=config.run_timeout_ms,
            max_retries=config.max_retries,
            container_workdir=config.container_workdir,
        )
        self.dispatcher = JobDispatcher(
            self.worker,
            slot_count=self.pool.size,
            max_queue_size=config.max_queue_size,
        )
        self._janitor: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self.runtime.connect()
        self.workspace.ensure_root()
        await self.pool.initialize()
        await self.dispatcher.start()
        self._janitor = asyncio.create_task(self._prune_loop())
        logger.info("Compile service started", slots=self.pool.size)

    async def stop(self) -> None:
        await self.dispatcher.stop()
        if self._janitor is not None:
            self._janitor.cancel()
            self._janitor = None
        await self.pool.teardown()
        await self.notifier.close()
        await self.runtime.close()
        logger.info("Compile service stopped")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def submit(self, code: str, callback_url: str | None = None) -> CompileJob:
        """Record a job and queue it; returns immediately."""
        job = await self.jobs.create(code, callback_url=callback_url)
        try:
            await self.dispatcher.submit(job)
        except asyncio.QueueFull:
            await self.jobs.discard(job.job_id)
            logger.warning("Job queue is full", job_id=job.job_id)
            raise
        logger.info("Job accepted", job_id=job.job_id)
        return job

    async def get_job(self, job_id: str) -> CompileJob | None:
        return await self.jobs.get(job_id)

    async def _prune_loop(self) -> None:
        retention = self.settings.job.retention_seconds
        while True:
            await asyncio.sleep(_PRUNE_INTERVAL_S)
            await self.jobs.prune(retention)


async def get_compile_service() -> CompileService:
    """Get the service instance for dependency injection."""
    if _service is None:
        raise RuntimeError("Compile service not initialized. Use compile_lifespan.")
    return _service


@asynccontextmanager
async def compile_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage compile service lifecycle."""
    global _service

    logger.info("Initializing compile service...")
    _service = CompileService(get_settings())
    await _service.start()

    yield

    logger.info("Shutting down compile service...")
    await _service.stop()
    _service = None
