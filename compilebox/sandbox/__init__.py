"""Container-pool sandbox for compiling and running submitted Java code."""

from compilebox.sandbox.entry import EntryUnitResolver
from compilebox.sandbox.errors import (
    InfrastructureError,
    PoolInitializationError,
    ResolutionError,
    ResolutionReason,
    SandboxError,
    SecurityViolation,
)
from compilebox.sandbox.models import ExecutionResult, ExecutionStatus, Slot
from compilebox.sandbox.pool import SandboxPool
from compilebox.sandbox.process import ProcessRunner
from compilebox.sandbox.runtime import ContainerRuntime, DockerRuntime
from compilebox.sandbox.security import CodeValidator
from compilebox.sandbox.worker import WorkerExecutor
from compilebox.sandbox.workspace import WorkspaceManager

__all__ = [
    "CodeValidator",
    "ContainerRuntime",
    "DockerRuntime",
    "EntryUnitResolver",
    "ExecutionResult",
    "ExecutionStatus",
    "InfrastructureError",
    "PoolInitializationError",
    "ProcessRunner",
    "ResolutionError",
    "ResolutionReason",
    "SandboxError",
    "SandboxPool",
    "SecurityViolation",
    "Slot",
    "WorkerExecutor",
    "WorkspaceManager",
]
