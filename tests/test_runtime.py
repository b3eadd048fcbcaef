from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from docker.errors import APIError, NotFound

from compilebox.config import SandboxConfig
from compilebox.sandbox.errors import InfrastructureError
from compilebox.sandbox.runtime import IDLE_COMMAND, DockerRuntime


@pytest.fixture
def config(tmp_path) -> SandboxConfig:
    return SandboxConfig(workspace_root=tmp_path, memory_limit="256m", cpus=0.5, pids_limit=50)


@pytest.fixture
def docker_runtime(config) -> DockerRuntime:
    runtime = DockerRuntime(config)
    runtime._client = MagicMock()
    return runtime


async def test_create_starts_isolated_idle_container(docker_runtime, config, tmp_path):
    await docker_runtime.create("compile-executor-0")

    kwargs = docker_runtime.client.containers.run.call_args.kwargs
    assert kwargs["name"] == "compile-executor-0"
    assert kwargs["image"] == config.image_name
    assert kwargs["command"] == IDLE_COMMAND
    assert kwargs["detach"] is True
    assert kwargs["network_mode"] == "none"
    assert kwargs["cap_drop"] == ["ALL"]
    assert kwargs["pids_limit"] == 50
    assert kwargs["mem_limit"] == "256m"
    assert kwargs["nano_cpus"] == 500_000_000
    assert kwargs["volumes"] == {str(tmp_path.resolve()): {"bind": "/app", "mode": "rw"}}


async def test_create_mounts_host_path_when_configured(tmp_path):
    config = SandboxConfig(workspace_root=tmp_path / "inner", host_workspace_root=tmp_path / "host")
    runtime = DockerRuntime(config)
    runtime._client = MagicMock()

    await runtime.create("c")

    volumes = runtime.client.containers.run.call_args.kwargs["volumes"]
    assert list(volumes) == [str((tmp_path / "host").resolve())]


async def test_create_failure_is_infrastructure_error(docker_runtime):
    docker_runtime.client.containers.run.side_effect = APIError("image missing")

    with pytest.raises(InfrastructureError):
        await docker_runtime.create("c")


async def test_remove_ignores_missing_container(docker_runtime):
    docker_runtime.client.containers.get.side_effect = NotFound("gone")

    await docker_runtime.remove("c")


async def test_remove_forces_removal(docker_runtime):
    container = MagicMock()
    docker_runtime.client.containers.get.return_value = container

    await docker_runtime.remove("c")

    container.remove.assert_called_once_with(force=True)


async def test_remove_by_prefix_keeps_substring_matches(docker_runtime):
    docker_runtime.client.containers.list.return_value = [
        SimpleNamespace(name="compile-executor-0"),
        SimpleNamespace(name="old-compile-executor-1"),
    ]

    removed = await docker_runtime.remove_by_prefix("compile-executor-")

    assert removed == ["compile-executor-0"]


async def test_is_running(docker_runtime):
    docker_runtime.client.containers.get.return_value = SimpleNamespace(status="running")
    assert await docker_runtime.is_running("c") is True

    docker_runtime.client.containers.get.return_value = SimpleNamespace(status="exited")
    assert await docker_runtime.is_running("c") is False

    docker_runtime.client.containers.get.side_effect = NotFound("gone")
    assert await docker_runtime.is_running("c") is False


def test_exec_command_wraps_in_container_deadline(config):
    command = DockerRuntime(config).exec_command(
        "compile-executor-1", "/app/abc", ["java", "-Dfile.encoding=UTF-8", "Hi"], kill_after_ms=6000
    )

    assert command == (
        "docker exec -w /app/abc compile-executor-1 "
        "timeout -s KILL 6 java -Dfile.encoding=UTF-8 Hi"
    )


def test_exec_command_without_deadline(config):
    command = DockerRuntime(config).exec_command("c", "/app/x", ["javac", "My Main.java"])

    assert command == "docker exec -w /app/x c javac 'My Main.java'"


def test_client_requires_connect(config):
    with pytest.raises(InfrastructureError):
        DockerRuntime(config).client
