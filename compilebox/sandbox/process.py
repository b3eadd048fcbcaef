"""
Shell command runner with a wall-clock timeout and an output cap.

Every external command the engine issues (compiler, program, container
exec) goes through ``ProcessRunner.run``.  The runner:
  1. Launches the command through the platform shell
  2. Merges stderr into stdout and reads the stream incrementally
  3. Stops reading and kills the process once the output cap is exceeded
  4. Kills the process when the timeout fires
  5. Never returns while a launched process is still alive
"""

from __future__ import annotations

import asyncio
import codecs
import locale
import os
import signal
import sys
from dataclasses import dataclass

from structlog import get_logger

from compilebox.sandbox.models import ExecutionResult, ExecutionStatus

logger = get_logger()

DEFAULT_MAX_OUTPUT_CHARS = 10000
TRUNCATION_MARKER = "\n... (output limit exceeded, execution stopped) ..."
TIMEOUT_EXIT_CODE = -1

_READ_CHUNK = 1024
_REAP_TIMEOUT = 5.0


@dataclass(frozen=True)
class ShellStrategy:
    """How a command line is handed to the host shell."""

    prefix: tuple[str, ...]
    encoding: str
    process_group: bool

    def argv(self, command: str) -> list[str]:
        return [*self.prefix, command]


def detect_shell() -> ShellStrategy:
    """Pick the shell invocation for the current platform."""
    if sys.platform.startswith("win"):
        return ShellStrategy(
            prefix=("cmd.exe", "/c"),
            encoding=locale.getpreferredencoding(False),
            process_group=False,
        )
    # A new session lets us kill the shell together with its children.
    return ShellStrategy(prefix=("sh", "-c"), encoding="utf-8", process_group=True)


HOST_SHELL = detect_shell()


class ProcessRunner:
    """
    Runs shell commands with bounded time and bounded output.

    Usage::

        runner = ProcessRunner(max_output_chars=10000)
        result = await runner.run("javac Main.java", timeout_ms=10000)
        if result.timed_out:
            ...
    """

    def __init__(
        self,
        max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
        shell: ShellStrategy | None = None,
    ) -> None:
        self.max_output_chars = max_output_chars
        self._shell = shell or HOST_SHELL

    async def run(self, command: str, timeout_ms: int) -> ExecutionResult:
        """Run *command* and return its merged output and exit code."""
        process: asyncio.subprocess.Process | None = None
        try:
            process = await asyncio.create_subprocess_exec(
                *self._shell.argv(command),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=self._shell.process_group,
            )

            try:
                async with asyncio.timeout(timeout_ms / 1000):
                    output = await self._collect(process)
                    exit_code = await process.wait()
            except asyncio.TimeoutError:
                logger.warning("Command timed out", timeout_ms=timeout_ms, pid=process.pid)
                return ExecutionResult(
                    success=False,
                    output=f"TIMEOUT: execution exceeded {timeout_ms} ms",
                    exit_code=TIMEOUT_EXIT_CODE,
                    status=ExecutionStatus.TIMEOUT,
                )

            return ExecutionResult(
                success=exit_code == 0,
                output=output,
                exit_code=exit_code,
                status=ExecutionStatus.SUCCESS if exit_code == 0 else ExecutionStatus.ERROR,
            )

        except Exception as exc:
            logger.error("Command execution error", error=str(exc))
            return ExecutionResult(
                success=False,
                output=f"System Error: {exc}",
                exit_code=TIMEOUT_EXIT_CODE,
                status=ExecutionStatus.SYSTEM_ERROR,
            )
        finally:
            if process is not None:
                await self._destroy(process)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _collect(self, process: asyncio.subprocess.Process) -> str:
        """Read merged output until EOF or until the cap is exceeded."""
        assert process.stdout is not None
        decoder = codecs.getincrementaldecoder(self._shell.encoding)(errors="replace")
        parts: list[str] = []
        total = 0

        while True:
            data = await process.stdout.read(_READ_CHUNK)
            text = decoder.decode(data, final=not data)
            parts.append(text)
            total += len(text)

            if total > self.max_output_chars:
                self._kill(process)
                logger.info("Output cap exceeded", pid=process.pid, limit=self.max_output_chars)
                return "".join(parts)[: self.max_output_chars] + TRUNCATION_MARKER

            if not data:
                return "".join(parts)

    def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            if self._shell.process_group:
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass

    async def _destroy(self, process: asyncio.subprocess.Process) -> None:
        """Kill and reap *process* if it is still alive."""
        if process.returncode is not None:
            return
        self._kill(process)
        try:
            await asyncio.wait_for(process.wait(), timeout=_REAP_TIMEOUT)
        except asyncio.TimeoutError:
            logger.error("Process did not exit after kill", pid=process.pid)
