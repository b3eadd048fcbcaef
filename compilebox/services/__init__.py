"""Service layer: job records, result callbacks, dispatch and wiring."""

from .compile_service import CompileService, compile_lifespan, get_compile_service
from .dispatcher import JobDispatcher
from .job_store import CompileJob, JobStore
from .notifier import ResultNotifier

__all__ = [
    "CompileJob",
    "CompileService",
    "JobDispatcher",
    "JobStore",
    "ResultNotifier",
    "compile_lifespan",
    "get_compile_service",
]
