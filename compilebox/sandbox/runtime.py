"""
Container runtime strategy.

The pool and the worker only talk to ``ContainerRuntime``; everything that
knows Docker's API or CLI syntax lives in ``DockerRuntime``.  Lifecycle
calls go through the Docker SDK (synchronous, so they are wrapped with
``asyncio.to_thread``); exec calls are rendered as ``docker exec`` command
lines for the process runner, which owns timeouts and output capping.
"""

from __future__ import annotations

import asyncio
import math
import shlex
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

import docker
from docker.errors import DockerException, NotFound
from structlog import get_logger

from compilebox.sandbox.errors import InfrastructureError

if TYPE_CHECKING:
    from compilebox.config import SandboxConfig

logger = get_logger()

IDLE_COMMAND = ["tail", "-f", "/dev/null"]


class ContainerRuntime(ABC):
    """Narrow surface the engine needs from a container runtime."""

    async def connect(self) -> None:
        """Open the connection to the runtime, if it needs one."""

    async def close(self) -> None:
        """Release runtime resources."""

    @abstractmethod
    async def create(self, name: str) -> None:
        """Start a detached, isolated, idle container called *name*."""

    @abstractmethod
    async def remove(self, name: str) -> None:
        """Force-remove *name*; absent containers are not an error."""

    @abstractmethod
    async def remove_by_prefix(self, prefix: str) -> list[str]:
        """Force-remove every container whose name starts with *prefix*."""

    @abstractmethod
    async def is_running(self, name: str) -> bool:
        """Whether *name* exists and is running."""

    @abstractmethod
    def exec_command(
        self,
        name: str,
        workdir: str,
        argv: Sequence[str],
        kill_after_ms: int | None = None,
    ) -> str:
        """Shell command line that runs *argv* inside *name* at *workdir*."""


class DockerRuntime(ContainerRuntime):
    """
    Docker implementation of ``ContainerRuntime``.

    Every slot container is started with no network, all capabilities
    dropped, ``no-new-privileges``, and pid/memory/cpu ceilings.  The
    workspace root is bind-mounted at ``container_workdir``.
    """

    def __init__(self, config: "SandboxConfig", docker_binary: str = "docker") -> None:
        self._config = config
        self._docker_binary = docker_binary
        self._client: docker.DockerClient | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect to the Docker daemon."""
        try:
            self._client = await asyncio.to_thread(
                docker.from_env, timeout=self._config.docker_timeout
            )
            await asyncio.to_thread(self._client.ping)
            logger.info("Docker daemon connected")
        except DockerException as exc:
            logger.error("Cannot connect to Docker", error=str(exc))
            raise InfrastructureError(
                "Docker is not available. Install and start Docker to enable code execution."
            ) from exc

    async def close(self) -> None:
        """Release Docker client resources."""
        if self._client:
            await asyncio.to_thread(self._client.close)
            self._client = None

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            raise InfrastructureError("Docker runtime not connected. Call connect() first.")
        return self._client

    # ------------------------------------------------------------------
    # ContainerRuntime
    # ------------------------------------------------------------------

    async def create(self, name: str) -> None:
        config = self._config
        try:
            await asyncio.to_thread(
                self.client.containers.run,
                image=config.image_name,
                command=IDLE_COMMAND,
                name=name,
                detach=True,
                # Network isolation
                network_mode="none",
                # Resource limits
                pids_limit=config.pids_limit,
                mem_limit=config.memory_limit,
                nano_cpus=int(config.cpus * 1_000_000_000),
                # Security hardening
                cap_drop=["ALL"],
                security_opt=["no-new-privileges"],
                volumes={
                    str(Path(config.mount_source).resolve()): {
                        "bind": config.container_workdir,
                        "mode": "rw",
                    }
                },
            )
        except DockerException as exc:
            raise InfrastructureError(f"Container {name} could not be started: {exc}") from exc

    async def remove(self, name: str) -> None:
        def _remove() -> None:
            try:
                self.client.containers.get(name).remove(force=True)
            except NotFound:
                pass

        try:
            await asyncio.to_thread(_remove)
        except DockerException as exc:
            raise InfrastructureError(f"Container {name} could not be removed: {exc}") from exc

    async def remove_by_prefix(self, prefix: str) -> list[str]:
        def _list() -> list[str]:
            containers = self.client.containers.list(all=True, filters={"name": prefix})
            # The name filter is a substring match; keep true prefix matches only.
            return [c.name for c in containers if c.name.startswith(prefix)]

        try:
            names = await asyncio.to_thread(_list)
        except DockerException as exc:
            raise InfrastructureError(f"Cannot list containers: {exc}") from exc

        for name in names:
            await self.remove(name)
        return names

    async def is_running(self, name: str) -> bool:
        def _status() -> str | None:
            try:
                container = self.client.containers.get(name)
            except NotFound:
                return None
            return container.status

        try:
            return await asyncio.to_thread(_status) == "running"
        except DockerException as exc:
            logger.warning("Container status check failed", container=name, error=str(exc))
            return False

    def exec_command(
        self,
        name: str,
        workdir: str,
        argv: Sequence[str],
        kill_after_ms: int | None = None,
    ) -> str:
        parts = [self._docker_binary, "exec", "-w", workdir, name]
        if kill_after_ms is not None:
            # In-container deadline so the program dies with the exec client.
            seconds = max(1, math.ceil(kill_after_ms / 1000))
            parts += ["timeout", "-s", "KILL", str(seconds)]
        parts += list(argv)
        return shlex.join(parts)
