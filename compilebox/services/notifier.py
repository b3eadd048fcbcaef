"""
Result callback delivery.

Fire-and-forget from the engine's point of view: one POST per finished
job, errors are logged and dropped.
"""

from __future__ import annotations

import httpx
from structlog import get_logger

from compilebox.services.job_store import CompileJob

logger = get_logger()


class ResultNotifier:
    """POSTs ``{jobId, success, output}`` to the job's callback URL."""

    def __init__(
        self,
        default_url: str | None = None,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.default_url = default_url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def notify(self, job: CompileJob) -> bool:
        """Deliver the result once; return whether the callback was accepted."""
        url = job.callback_url or self.default_url
        if not url:
            return False

        payload = {"jobId": job.job_id, "success": job.success, "output": job.output}
        try:
            response = await self._client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Result callback failed", job_id=job.job_id, url=url, error=str(exc))
            return False
        except Exception as exc:
            logger.error("Result callback crashed", job_id=job.job_id, url=url, error=str(exc))
            return False

        logger.info("Result callback delivered", job_id=job.job_id, status=response.status_code)
        return True

    async def close(self) -> None:
        await self._client.aclose()
