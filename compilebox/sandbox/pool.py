"""
Fixed-size pool of long-lived sandbox containers ("slots").

Slot *i* is always backed by the container ``<prefix><i>``, so resetting a
slot only needs its index.  Containers idle between jobs and receive one
``exec`` per compile and run, which amortizes container start-up across
many jobs.  A slot is recycled after ``max_usage`` jobs.

The pool does no locking: callers guarantee that at most one job uses a
given slot at a time.
"""

from __future__ import annotations

from structlog import get_logger

from compilebox.sandbox.errors import InfrastructureError, PoolInitializationError
from compilebox.sandbox.models import Slot
from compilebox.sandbox.runtime import ContainerRuntime

logger = get_logger()


class SandboxPool:
    """Owns the slot table and every slot's backing container."""

    def __init__(
        self,
        runtime: ContainerRuntime,
        count: int,
        max_usage: int,
        prefix: str = "compile-executor-",
    ) -> None:
        if count < 1:
            raise ValueError("Pool needs at least one slot")
        self.runtime = runtime
        self.prefix = prefix
        self.max_usage = max_usage
        self._slots: list[Slot] = [
            Slot(index=i, container_name=f"{prefix}{i}", max_usage=max_usage)
            for i in range(count)
        ]

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._slots)

    @property
    def slots(self) -> tuple[Slot, ...]:
        return tuple(self._slots)

    def slot(self, index: int) -> Slot:
        if not 0 <= index < len(self._slots):
            raise IndexError(f"Slot index {index} out of range [0, {len(self._slots)})")
        return self._slots[index]

    def container_name(self, index: int) -> str:
        return self.slot(index).container_name

    def needs_recycle(self, index: int) -> bool:
        return self.slot(index).exhausted

    def record_use(self, index: int) -> int:
        slot = self.slot(index)
        slot.usage_count += 1
        return slot.usage_count

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Remove leftover slot containers and start every slot fresh."""
        logger.info(
            "Initializing container pool",
            count=len(self._slots),
            max_usage=self.max_usage,
        )
        try:
            stale = await self.runtime.remove_by_prefix(self.prefix)
            if stale:
                logger.info("Removed stale containers", containers=stale)
            for slot in self._slots:
                await self.reset(slot.index)
        except InfrastructureError as exc:
            logger.error("Container pool initialization failed", error=str(exc))
            raise PoolInitializationError(str(exc)) from exc

    async def reset(self, index: int) -> Slot:
        """Replace the slot's container with a fresh one and zero its counter."""
        slot = self.slot(index)
        await self.runtime.remove(slot.container_name)
        await self.runtime.create(slot.container_name)
        slot.usage_count = 0
        slot.epoch += 1
        logger.info("Container created/reset", container=slot.container_name, epoch=slot.epoch)
        return slot

    async def teardown(self) -> None:
        """Remove every slot container; failures are logged, not raised."""
        for slot in self._slots:
            try:
                await self.runtime.remove(slot.container_name)
            except Exception as exc:
                logger.warning(
                    "Container cleanup failed",
                    container=slot.container_name,
                    error=str(exc),
                )
        logger.info("All containers cleaned up")

    def summary(self) -> list[dict[str, int | str]]:
        return [
            {
                "index": s.index,
                "container": s.container_name,
                "usage": s.usage_count,
                "max_usage": s.max_usage,
                "epoch": s.epoch,
            }
            for s in self._slots
        ]
