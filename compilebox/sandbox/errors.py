"""
Error taxonomy for the execution engine.

``SecurityViolation`` and ``ResolutionError`` are attributable to the
submitted source and are never retried.  Everything else that escapes the
pipeline is treated as an infrastructure failure.
"""

from enum import Enum


class SandboxError(Exception):
    """Base class for engine errors."""


class SecurityViolation(SandboxError):
    """Source contains a forbidden construct."""

    def __init__(self, keyword: str) -> None:
        self.keyword = keyword
        super().__init__(f"Forbidden keyword detected: {keyword}")


class ResolutionReason(str, Enum):
    NO_ENTRY_POINT = "no_entry_point"
    AMBIGUOUS_ENTRY_POINT = "ambiguous_entry_point"
    NO_OWNING_UNIT = "no_owning_unit"


_RESOLUTION_MESSAGES = {
    ResolutionReason.NO_ENTRY_POINT: "No main method found to execute.",
    ResolutionReason.AMBIGUOUS_ENTRY_POINT: "Only one main method is allowed (ambiguous entry point).",
    ResolutionReason.NO_OWNING_UNIT: "No class declaration found that contains the main method.",
}


class ResolutionError(SandboxError):
    """Entry point is missing, ambiguous, or has no owning class."""

    def __init__(self, reason: ResolutionReason) -> None:
        self.reason = reason
        super().__init__(_RESOLUTION_MESSAGES[reason])


class InfrastructureError(SandboxError):
    """Container, process launch, or orchestration failure."""


class PoolInitializationError(InfrastructureError):
    """A slot could not be started while building the pool."""
