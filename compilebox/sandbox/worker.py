"""
Worker executor: runs one job on one slot, end to end.

Pipeline (short-circuits on the first terminal outcome):
  1. Recycle the slot container if it reached its usage limit
  2. Security pre-check            -> "Security Error: ..."  (not retried)
  3. Resolve the entry class       -> "Compile Error: ..."   (not retried)
  4. Write ``<Class>.java`` into the job's workspace
  5. ``javac`` inside the slot container (compile timeout)
  6. ``java`` inside the slot container (run timeout)
  7. Record the result and notify
  8. Remove the workspace, whatever happened above

Infrastructure failures recreate the slot container and re-run the whole
pipeline, up to ``max_retries`` extra attempts.  A job always ends up
finalized once ``execute`` returns.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from structlog import get_logger

from compilebox.sandbox.entry import EntryUnitResolver
from compilebox.sandbox.errors import InfrastructureError, ResolutionError, SecurityViolation
from compilebox.sandbox.models import ExecutionResult, ExecutionStatus
from compilebox.sandbox.pool import SandboxPool
from compilebox.sandbox.process import ProcessRunner
from compilebox.sandbox.security import CodeValidator
from compilebox.sandbox.workspace import WorkspaceManager

if TYPE_CHECKING:
    from compilebox.services.job_store import CompileJob, JobStore
    from compilebox.services.notifier import ResultNotifier

logger = get_logger()

SYSTEM_ERROR_MESSAGE = "System Error: execution failed after retry"

# docker exec / timeout(1) report these when the tool itself could not run.
INFRASTRUCTURE_EXIT_CODES = frozenset({125, 126, 127})

# Extra time the in-container kill waits beyond the host-side deadline.
_CONTAINER_KILL_GRACE_MS = 1000


@dataclass(frozen=True)
class Toolchain:
    """Compiler and launcher invocations for the submitted language."""

    source_suffix: str = ".java"

    def source_file(self, unit: str) -> str:
        return f"{unit}{self.source_suffix}"

    def compile_argv(self, unit: str) -> list[str]:
        return ["javac", "-encoding", "UTF-8", self.source_file(unit)]

    def run_argv(self, unit: str) -> list[str]:
        return ["java", "-Dfile.encoding=UTF-8", unit]


class WorkerExecutor:
    """
    Drives jobs through the compile/run pipeline on pool slots.

    One instance is shared by all slots; it holds no per-job state, and
    the caller guarantees one in-flight job per slot.
    """

    def __init__(
        self,
        pool: SandboxPool,
        runner: ProcessRunner,
        workspace: WorkspaceManager,
        jobs: "JobStore",
        notifier: "ResultNotifier | None" = None,
        validator: CodeValidator | None = None,
        resolver: EntryUnitResolver | None = None,
        toolchain: Toolchain | None = None,
        *,
        compile_timeout_ms: int = 10000,
        run_timeout_ms: int = 5000,
        max_retries: int = 1,
        container_workdir: str = "/app",
    ) -> None:
        self.pool = pool
        self.runner = runner
        self.workspace = workspace
        self.jobs = jobs
        self.notifier = notifier
        self.validator = validator or CodeValidator()
        self.resolver = resolver or EntryUnitResolver()
        self.toolchain = toolchain or Toolchain()
        self.compile_timeout_ms = compile_timeout_ms
        self.run_timeout_ms = run_timeout_ms
        self.max_retries = max_retries
        self.container_workdir = container_workdir.rstrip("/")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(self, job: "CompileJob", slot_index: int) -> None:
        """Run *job* on *slot_index* and finalize it exactly once."""
        await self.jobs.mark_running(job.job_id)

        try:
            success, output = await self._attempt(job, slot_index)
            await self._finalize(job, success, output)
        finally:
            await asyncio.to_thread(self.workspace.remove, job.job_id)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _attempt(self, job: "CompileJob", slot_index: int) -> tuple[bool, str]:
        """Run the pipeline, retrying infrastructure failures; return the outcome."""
        log = logger.bind(job_id=job.job_id, slot=slot_index)

        for attempt in range(self.max_retries + 1):
            try:
                if self.pool.needs_recycle(slot_index):
                    log.info("Container usage limit exceeded, recreating")
                    await self.pool.reset(slot_index)

                return await self._run_pipeline(job, slot_index)

            except SecurityViolation as exc:
                return False, f"Security Error: {exc}"

            except ResolutionError as exc:
                return False, f"Compile Error: {exc}"

            except Exception as exc:
                if attempt >= self.max_retries:
                    log.error(
                        "Max retries exceeded",
                        attempts=attempt + 1,
                        error=str(exc),
                        exc_info=True,
                    )
                    break

                log.warning(
                    "Infrastructure failure, recreating container",
                    attempt=attempt + 1,
                    error=str(exc),
                )
                await self._recycle(slot_index)

            finally:
                self.pool.record_use(slot_index)

        return False, SYSTEM_ERROR_MESSAGE

    async def _run_pipeline(self, job: "CompileJob", slot_index: int) -> tuple[bool, str]:
        log = logger.bind(job_id=job.job_id, slot=slot_index)
        log.info("Executing job")

        self.validator.validate(job.code)
        unit = self.resolver.resolve(job.code)

        try:
            await asyncio.to_thread(
                self.workspace.prepare, job.job_id, self.toolchain.source_file(unit), job.code
            )
        except OSError as exc:
            raise InfrastructureError(f"File creation failed: {exc}") from exc

        container = self.pool.container_name(slot_index)
        if not await self.pool.runtime.is_running(container):
            raise InfrastructureError(f"Container {container} is not running")

        workdir = f"{self.container_workdir}/{job.job_id}"

        compiled = await self._exec(
            container, workdir, self.toolchain.compile_argv(unit), self.compile_timeout_ms
        )
        if not compiled.success:
            log.info("Compilation failed", exit_code=compiled.exit_code)
            return False, compiled.output

        ran = await self._exec(
            container, workdir, self.toolchain.run_argv(unit), self.run_timeout_ms
        )
        log.info("Execution finished", exit_code=ran.exit_code, status=ran.status.value)
        return ran.success, ran.output

    async def _exec(
        self,
        container: str,
        workdir: str,
        argv: Sequence[str],
        timeout_ms: int,
    ) -> ExecutionResult:
        command = self.pool.runtime.exec_command(
            container,
            workdir,
            argv,
            kill_after_ms=timeout_ms + _CONTAINER_KILL_GRACE_MS,
        )
        result = await self.runner.run(command, timeout_ms)

        if result.status == ExecutionStatus.SYSTEM_ERROR:
            raise InfrastructureError(result.output)
        if result.exit_code in INFRASTRUCTURE_EXIT_CODES:
            raise InfrastructureError(
                f"{argv[0]} could not be invoked in {container} (exit {result.exit_code})"
            )
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _finalize(self, job: "CompileJob", success: bool, output: str) -> None:
        finished = await self.jobs.complete(job.job_id, success, output)
        if self.notifier is not None:
            await self.notifier.notify(finished)

    async def _recycle(self, slot_index: int) -> None:
        """Reset a slot before a retry; a failed reset surfaces on the next attempt."""
        try:
            await self.pool.reset(slot_index)
        except Exception as exc:
            logger.error("Container recreation failed", slot=slot_index, error=str(exc))
