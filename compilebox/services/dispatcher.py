"""
Binds queued jobs to pool slots.

One consumer task per slot: each task owns its slot index exclusively and
runs jobs one after another, so no two jobs ever share a slot.
"""

from __future__ import annotations

import asyncio

from structlog import get_logger

from compilebox.sandbox.worker import WorkerExecutor
from compilebox.services.job_store import CompileJob

logger = get_logger()


class JobDispatcher:
    """FIFO job queue drained by one worker task per slot."""

    def __init__(self, worker: WorkerExecutor, slot_count: int, max_queue_size: int = 0) -> None:
        self.worker = worker
        self.slot_count = slot_count
        self._queue: asyncio.Queue[CompileJob] = asyncio.Queue(maxsize=max_queue_size)
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        if self._tasks:
            logger.warning("Dispatcher already running")
            return
        self._tasks = [
            asyncio.create_task(self._consume(index), name=f"slot-worker-{index}")
            for index in range(self.slot_count)
        ]
        logger.info("Dispatcher started", slots=self.slot_count)

    async def submit(self, job: CompileJob) -> None:
        """Queue *job*; raises ``asyncio.QueueFull`` when the queue is bounded and full."""
        self._queue.put_nowait(job)
        logger.debug("Job queued", job_id=job.job_id, pending=self._queue.qsize())

    async def join(self) -> None:
        """Wait until every queued job has been executed."""
        await self._queue.join()

    async def stop(self, timeout: float = 10.0) -> None:
        """Cancel the slot workers; a job in flight is abandoned."""
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.wait(self._tasks, timeout=timeout)
        self._tasks = []
        logger.info("Dispatcher stopped")

    async def _consume(self, slot_index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.worker.execute(job, slot_index)
            except Exception as exc:
                logger.error(
                    "Job execution crashed",
                    job_id=job.job_id,
                    slot=slot_index,
                    error=str(exc),
                    exc_info=True,
                )
            finally:
                self._queue.task_done()
