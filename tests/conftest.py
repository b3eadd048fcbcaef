"""Shared fakes for engine tests."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import threading

import pytest

from compilebox.sandbox.errors import InfrastructureError
from compilebox.sandbox.models import ExecutionResult, ExecutionStatus
from compilebox.sandbox.pool import SandboxPool
from compilebox.sandbox.runtime import ContainerRuntime
from compilebox.sandbox.worker import WorkerExecutor
from compilebox.sandbox.workspace import WorkspaceManager
from compilebox.services.job_store import JobStore

HELLO = 'public class Hi{public static void main(String[] a){System.out.println("hi");}}'


def ok(output: str = "") -> ExecutionResult:
    return ExecutionResult(True, output, 0, ExecutionStatus.SUCCESS)


def failed(output: str, exit_code: int = 1) -> ExecutionResult:
    return ExecutionResult(False, output, exit_code, ExecutionStatus.ERROR)


def timed_out(timeout_ms: int = 5000) -> ExecutionResult:
    return ExecutionResult(
        False, f"TIMEOUT: execution exceeded {timeout_ms} ms", -1, ExecutionStatus.TIMEOUT
    )


def system_error(message: str = "boom") -> ExecutionResult:
    return ExecutionResult(False, f"System Error: {message}", -1, ExecutionStatus.SYSTEM_ERROR)


class FakeRuntime(ContainerRuntime):
    """In-memory container runtime that records every call."""

    def __init__(self, existing: Sequence[str] = ()) -> None:
        self.running: set[str] = set(existing)
        self.created: list[str] = []
        self.removed: list[str] = []
        self.fail_create: set[str] = set()
        self.fail_remove: set[str] = set()

    async def create(self, name: str) -> None:
        if name in self.fail_create:
            raise InfrastructureError(f"Container {name} could not be started")
        self.created.append(name)
        self.running.add(name)

    async def remove(self, name: str) -> None:
        if name in self.fail_remove:
            raise InfrastructureError(f"Container {name} could not be removed")
        self.removed.append(name)
        self.running.discard(name)

    async def remove_by_prefix(self, prefix: str) -> list[str]:
        names = sorted(n for n in self.running if n.startswith(prefix))
        for name in names:
            await self.remove(name)
        return names

    async def is_running(self, name: str) -> bool:
        return name in self.running

    def exec_command(self, name, workdir, argv, kill_after_ms=None) -> str:
        return " ".join(["exec", name, workdir, *argv])


class FakeRunner:
    """Process runner double: answers javac/java commands from scripted results."""

    def __init__(self) -> None:
        self.commands: list[tuple[str, int]] = []
        self.compile_results: list[ExecutionResult] = []
        self.run_results: list[ExecutionResult] = []
        self.on_compile: Callable[[str], None] | None = None

    async def run(self, command: str, timeout_ms: int) -> ExecutionResult:
        self.commands.append((command, timeout_ms))
        if " javac " in command:
            if self.on_compile is not None:
                self.on_compile(command)
            return self.compile_results.pop(0) if self.compile_results else ok()
        return self.run_results.pop(0) if self.run_results else ok()

    @property
    def compile_calls(self) -> list[str]:
        return [c for c, _ in self.commands if " javac " in c]

    @property
    def run_calls(self) -> list[str]:
        return [c for c, _ in self.commands if " java " in c]


class SpyWorkspace(WorkspaceManager):
    def __init__(self, root) -> None:
        super().__init__(root)
        self.removals: list[str] = []
        self.threads: set[int] = set()

    def prepare(self, job_id, file_name, source):
        self.threads.add(threading.get_ident())
        return super().prepare(job_id, file_name, source)

    def remove(self, job_id: str) -> None:
        self.threads.add(threading.get_ident())
        self.removals.append(job_id)
        super().remove(job_id)


class RecordingNotifier:
    def __init__(self) -> None:
        self.notified = []

    async def notify(self, job) -> bool:
        self.notified.append((job.job_id, job.success, job.output))
        return True


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def workspace(tmp_path) -> SpyWorkspace:
    return SpyWorkspace(tmp_path / "jobs")


@pytest.fixture
def jobs() -> JobStore:
    return JobStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def pool(runtime) -> SandboxPool:
    pool = SandboxPool(runtime, count=2, max_usage=3)
    await pool.initialize()
    return pool


@pytest.fixture
def worker(pool, runner, workspace, jobs, notifier) -> WorkerExecutor:
    return WorkerExecutor(
        pool=pool,
        runner=runner,
        workspace=workspace,
        jobs=jobs,
        notifier=notifier,
        compile_timeout_ms=10000,
        run_timeout_ms=5000,
    )
