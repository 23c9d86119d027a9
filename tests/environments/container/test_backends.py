"""Tests for the CLI backends with the runtime commands stubbed out."""

import asyncio
import shutil
from collections.abc import Callable
from pathlib import Path

import pytest

from winboat.core.exceptions import ContainerCommandError, RuntimeRefusedStartError
from winboat.environments.container.backend import (
    CliContainerBackend,
    CommandResult,
    DockerBackend,
    PodmanBackend,
    create_backend,
    parse_compose_version,
    parse_port_output,
)
from winboat.types.container import ComposeDirection, ContainerAction, ContainerRuntime, ContainerStatus

Responder = Callable[[tuple[str, ...]], CommandResult]


def _ok(stdout: str = "", stderr: str = "") -> CommandResult:
    return CommandResult(command="", returncode=0, stdout=stdout, stderr=stderr)


def _fail(stderr: str = "", returncode: int = 1) -> CommandResult:
    return CommandResult(command="", returncode=returncode, stdout="", stderr=stderr)


def _stub_run(backend, responder: Responder) -> list[tuple[str, ...]]:
    commands: list[tuple[str, ...]] = []

    async def fake_run(*args: str, timeout: float | None = None) -> CommandResult:
        commands.append(args)
        result = responder(args)
        result.command = " ".join(args)
        return result

    backend._run = fake_run
    return commands


@pytest.mark.parametrize(
    ("backend_cls", "raw", "expected"),
    [
        (DockerBackend, "running", ContainerStatus.RUNNING),
        (DockerBackend, "paused", ContainerStatus.PAUSED),
        (DockerBackend, "restarting", ContainerStatus.UNKNOWN),
        (DockerBackend, "dead", ContainerStatus.UNKNOWN),
        (PodmanBackend, "configured", ContainerStatus.CREATED),
        (PodmanBackend, "stopped", ContainerStatus.EXITED),
        (PodmanBackend, "something-new", ContainerStatus.UNKNOWN),
    ],
)
async def test_status_is_mapped(tmp_path: Path, backend_cls, raw: str, expected: ContainerStatus):
    backend = backend_cls(tmp_path)
    commands = _stub_run(backend, lambda args: _ok(f"{raw}\n"))

    assert await backend.get_status() == expected
    assert commands[0][:2] == (backend.executable, "inspect")


async def test_status_is_unknown_when_inspect_fails(tmp_path: Path):
    backend = DockerBackend(tmp_path)
    _stub_run(backend, lambda args: _fail("No such object: WinBoat"))

    assert await backend.get_status() == ContainerStatus.UNKNOWN


async def test_compose_up_runs_detached(tmp_path: Path):
    backend = DockerBackend(tmp_path)
    commands = _stub_run(backend, lambda args: _ok(stderr="Container WinBoat Started"))

    await backend.apply(ComposeDirection.UP)
    await backend.apply(ComposeDirection.DOWN)

    assert commands == [
        ("docker", "compose", "-f", str(tmp_path / "docker-compose.yml"), "up", "-d"),
        ("docker", "compose", "-f", str(tmp_path / "docker-compose.yml"), "down"),
    ]


async def test_address_in_use_is_reported_as_refused_start(tmp_path: Path):
    backend = DockerBackend(tmp_path)
    _stub_run(backend, lambda args: _fail("Bind for 0.0.0.0:8006 failed: port is already allocated"))

    with pytest.raises(RuntimeRefusedStartError) as exc_info:
        await backend.apply(ComposeDirection.UP)

    assert exc_info.value.returncode == 1
    assert "already allocated" in exc_info.value.stderr


async def test_other_failures_are_command_errors(tmp_path: Path):
    backend = PodmanBackend(tmp_path)
    _stub_run(backend, lambda args: _fail("no such container"))

    with pytest.raises(ContainerCommandError) as exc_info:
        await backend.control_container(ContainerAction.PAUSE)

    assert not isinstance(exc_info.value, RuntimeRefusedStartError)
    assert exc_info.value.command == "podman container pause WinBoat"


async def test_exists_matches_exact_name(tmp_path: Path):
    backend = DockerBackend(tmp_path)
    _stub_run(backend, lambda args: _ok("WinBoat\n"))
    assert await backend.exists()

    _stub_run(backend, lambda args: _ok(""))
    assert not await backend.exists()


async def test_remove_logs_instead_of_raising(tmp_path: Path):
    backend = DockerBackend(tmp_path)
    commands = _stub_run(backend, lambda args: _fail("in use"))

    await backend.remove()
    await backend.remove_volume("winboat_data")

    assert commands == [("docker", "rm", "WinBoat"), ("docker", "volume", "rm", "winboat_data")]


async def test_active_port_bindings(tmp_path: Path):
    backend = PodmanBackend(tmp_path)
    output = "3389/tcp -> 127.0.0.1:41234\n3389/udp -> 127.0.0.1:41234\n8006/tcp -> 127.0.0.1:40001\n"
    _stub_run(backend, lambda args: _ok(output))

    bindings = await backend.get_active_port_bindings()

    assert [binding.entry for binding in bindings] == [
        "127.0.0.1:41234:3389/tcp",
        "127.0.0.1:41234:3389/udp",
        "127.0.0.1:40001:8006/tcp",
    ]


def test_parse_port_output_skips_garbage():
    bindings = parse_port_output("garbage\n7148/tcp -> 0.0.0.0:7148\n7149/sctp -> 0.0.0.0:8149\n")
    assert [binding.entry for binding in bindings] == ["0.0.0.0:7148:7148/tcp"]


@pytest.mark.parametrize(
    ("output", "major"),
    [
        ("Docker Compose version v2.35.1", 2),
        ("podman-compose version 1.0.6", 1),
        ("Docker Compose version 1.29.2, build 5becea4c", 1),
    ],
)
def test_parse_compose_version(output: str, major: int):
    assert parse_compose_version(output).major == major


def test_parse_compose_version_without_version():
    assert parse_compose_version("compose: command not found") is None


async def test_docker_capabilities(tmp_path: Path):
    backend = DockerBackend(tmp_path)

    def responder(args: tuple[str, ...]) -> CommandResult:
        if args == ("docker", "compose", "version"):
            return _ok("Docker Compose version v1.29.2")
        if args == ("id", "-Gn"):
            return _ok("user wheel docker")
        return _ok("Docker version 27.0.3")

    _stub_run(backend, responder)

    capabilities = await backend.probe_capabilities()

    assert capabilities.installed
    assert not capabilities.compose_installed
    assert capabilities.running
    assert capabilities.user_authorized


async def test_podman_capabilities_accept_compose_v1(tmp_path: Path):
    backend = PodmanBackend(tmp_path)

    def responder(args: tuple[str, ...]) -> CommandResult:
        if args == ("podman", "compose", "version"):
            return _ok("podman-compose version 1.0.6")
        if args == ("podman", "info"):
            return _fail("cannot connect")
        return _ok("podman version 5.2.0")

    _stub_run(backend, responder)

    capabilities = await backend.probe_capabilities()

    assert capabilities.compose_installed
    assert not capabilities.running
    assert not capabilities.user_authorized


async def test_write_specification_overwrites_without_backup(tmp_path: Path):
    backend = DockerBackend(tmp_path)
    spec = backend.default_compose()

    await backend.write_specification(spec)
    await backend.write_specification(spec.with_ports(["0.0.0.0:9006:8006/tcp"]))

    assert (await backend.read_specification()).windows.ports == ["0.0.0.0:9006:8006/tcp"]
    assert not (tmp_path / "backup").exists()


def test_base_backend_cannot_be_instantiated(tmp_path: Path):
    with pytest.raises(TypeError):
        CliContainerBackend(tmp_path)


@pytest.fixture
def spawned(monkeypatch: pytest.MonkeyPatch) -> list[asyncio.subprocess.Process]:
    if shutil.which("sleep") is None:
        pytest.skip("sleep executable not available")
    processes: list[asyncio.subprocess.Process] = []
    real_exec = asyncio.create_subprocess_exec

    async def recording_exec(*args, **kwargs):
        process = await real_exec(*args, **kwargs)
        processes.append(process)
        return process

    monkeypatch.setattr(asyncio, "create_subprocess_exec", recording_exec)
    return processes


async def test_timed_out_command_is_killed(tmp_path: Path, spawned):
    backend = DockerBackend(tmp_path)

    with pytest.raises(ContainerCommandError, match="timed out"):
        await backend._run("sleep", "30", timeout=0.1)

    assert spawned[0].returncode is not None


async def test_cancelled_command_is_killed(tmp_path: Path, spawned):
    backend = DockerBackend(tmp_path)
    task = asyncio.create_task(backend._run("sleep", "30"))
    while not spawned:
        await asyncio.sleep(0.01)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert spawned[0].returncode is not None


def test_create_backend(tmp_path: Path):
    assert isinstance(create_backend("podman", tmp_path), PodmanBackend)
    backend = create_backend(ContainerRuntime.DOCKER, tmp_path)
    assert backend.compose_file == tmp_path / "docker-compose.yml"

    with pytest.raises(ValueError, match="Unsupported container runtime"):
        create_backend("lxc", tmp_path)
