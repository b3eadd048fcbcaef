"""
Per-job working directories under the shared workspace root.

The root is bind-mounted into every slot container, so a file written to
``<root>/<job_id>/`` is visible to the compiler at
``<container_workdir>/<job_id>/``.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from structlog import get_logger

logger = get_logger()

_JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def is_valid_job_id(job_id: str) -> bool:
    return bool(_JOB_ID_PATTERN.match(job_id))


class WorkspaceManager:
    """Creates and removes job directories."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, job_id: str) -> Path:
        if not is_valid_job_id(job_id):
            raise ValueError(f"Invalid job id: {job_id!r}")
        return self.root / job_id

    def prepare(self, job_id: str, file_name: str, source: str) -> Path:
        """Write *source* to ``<root>/<job_id>/<file_name>`` and return the file path."""
        directory = self.path_for(job_id)
        directory.mkdir(parents=True, exist_ok=True)
        # The container user differs from ours and must write class files here.
        directory.chmod(0o777)

        path = directory / file_name
        path.write_text(source, encoding="utf-8")
        logger.debug("Workspace prepared", job_id=job_id, file=file_name)
        return path

    def remove(self, job_id: str) -> None:
        """Delete the job directory; a missing directory is not an error."""
        directory = self.path_for(job_id)
        if not directory.exists():
            return
        try:
            shutil.rmtree(directory)
        except OSError as exc:
            logger.error("Workspace cleanup failed", job_id=job_id, error=str(exc))
            return
        logger.debug("Workspace removed", job_id=job_id)
