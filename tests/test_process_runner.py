"""Process runner against real POSIX shell commands."""

import os
import sys
import time
from pathlib import Path

import pytest

from compilebox.sandbox.models import ExecutionStatus
from compilebox.sandbox.process import TRUNCATION_MARKER, ProcessRunner, ShellStrategy

pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX shell required")


def _alive(pid: int) -> bool:
    stat = Path(f"/proc/{pid}/stat")
    try:
        state = stat.read_text().rsplit(")", 1)[1].split()[0]
    except (FileNotFoundError, ProcessLookupError):
        return False
    return state != "Z"


async def test_successful_command():
    result = await ProcessRunner().run("echo hello", timeout_ms=5000)

    assert result.success is True
    assert result.exit_code == 0
    assert result.status == ExecutionStatus.SUCCESS
    assert result.output == "hello\n"


async def test_nonzero_exit_code_is_passed_through():
    result = await ProcessRunner().run("echo oops; exit 3", timeout_ms=5000)

    assert result.success is False
    assert result.exit_code == 3
    assert result.status == ExecutionStatus.ERROR
    assert result.timed_out is False
    assert "oops" in result.output


async def test_stderr_is_merged_into_output():
    result = await ProcessRunner().run("echo out; echo err 1>&2", timeout_ms=5000)

    assert "out" in result.output
    assert "err" in result.output


async def test_timeout_kills_process_and_reports_sentinel_code():
    start = time.monotonic()
    result = await ProcessRunner().run("sleep 30", timeout_ms=300)
    elapsed = time.monotonic() - start

    assert result.success is False
    assert result.exit_code == -1
    assert result.timed_out is True
    assert result.output.startswith("TIMEOUT")
    assert elapsed < 3


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="uses /proc")
async def test_timeout_kills_child_processes(tmp_path):
    pid_file = tmp_path / "child.pid"

    await ProcessRunner().run(f"sleep 30 & echo $! > {pid_file}; wait", timeout_ms=300)

    child = int(pid_file.read_text())
    deadline = time.monotonic() + 2
    while _alive(child) and time.monotonic() < deadline:
        time.sleep(0.05)
    assert not _alive(child)


async def test_output_cap_truncates_and_terminates(tmp_path):
    pid_file = tmp_path / "yes.pid"
    runner = ProcessRunner(max_output_chars=100)

    start = time.monotonic()
    result = await runner.run(f"echo $$ > {pid_file}; exec yes", timeout_ms=5000)

    assert time.monotonic() - start < 3
    assert result.output.endswith(TRUNCATION_MARKER)
    assert len(result.output) == 100 + len(TRUNCATION_MARKER)
    assert result.success is False
    with pytest.raises(ProcessLookupError):
        os.kill(int(pid_file.read_text()), 0)


async def test_output_at_cap_is_not_truncated():
    runner = ProcessRunner(max_output_chars=6)

    result = await runner.run("printf abcdef", timeout_ms=5000)

    assert result.output == "abcdef"
    assert result.success is True


async def test_launch_failure_is_a_system_error():
    runner = ProcessRunner(
        shell=ShellStrategy(prefix=("/nonexistent/shell",), encoding="utf-8", process_group=True)
    )

    result = await runner.run("echo hi", timeout_ms=1000)

    assert result.success is False
    assert result.exit_code == -1
    assert result.status == ExecutionStatus.SYSTEM_ERROR
    assert result.output.startswith("System Error:")


async def test_invalid_utf8_is_replaced():
    result = await ProcessRunner().run("printf '\\377ok'", timeout_ms=5000)

    assert result.output == "�ok"
