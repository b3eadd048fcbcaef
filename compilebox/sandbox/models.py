"""Data models for the sandbox execution engine."""

from dataclasses import dataclass
from enum import Enum


class ExecutionStatus(str, Enum):
    """How a command invocation ended."""

    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"
    SYSTEM_ERROR = "system_error"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one command run by the process runner."""

    success: bool
    output: str
    exit_code: int
    status: ExecutionStatus = ExecutionStatus.SUCCESS

    @property
    def timed_out(self) -> bool:
        return self.status == ExecutionStatus.TIMEOUT


@dataclass
class Slot:
    """One persistent container owned by the pool."""

    index: int
    container_name: str
    max_usage: int
    usage_count: int = 0
    epoch: int = 0

    @property
    def exhausted(self) -> bool:
        return self.usage_count >= self.max_usage
