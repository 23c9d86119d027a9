"""Pytest configuration for all tests."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

import pytest

from winboat.core.config_store import ConfigStore
from winboat.environments.container.compose_store import ComposeStore
from winboat.environments.container.defaults import get_default_compose
from winboat.environments.container.ports import PortNegotiator
from winboat.settings import WinBoatSettings
from winboat.types.compose import ComposeSpec
from winboat.types.container import (
    ComposeDirection,
    ContainerAction,
    ContainerRuntime,
    ContainerStatus,
    RuntimeCapabilities,
)
from winboat.types.ports import PortBinding


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "docker: marks tests that require Docker")


class FakeBackend:
    """In-memory ContainerBackend that records every call."""

    runtime = ContainerRuntime.DOCKER
    container_name = "WinBoat"

    def __init__(self, data_dir: Path) -> None:
        self.store = ComposeStore(data_dir / "docker-compose.yml", data_dir / "backup")
        self.status = ContainerStatus.EXITED
        self.live_bindings: list[PortBinding] = []
        self.calls: list[tuple[str, object]] = []
        self.container_exists = False
        self.fail_on: dict[str, Exception] = {}

    @property
    def compose_file(self) -> Path:
        return self.store.path

    def default_compose(self) -> ComposeSpec:
        return get_default_compose(self.runtime)

    def _record(self, name: str, arg: object = None) -> None:
        self.calls.append((name, arg))
        if name in self.fail_on:
            raise self.fail_on[name]

    async def probe_capabilities(self) -> RuntimeCapabilities:
        return RuntimeCapabilities(runtime=self.runtime, installed=True, compose_installed=True, running=True)

    async def read_specification(self) -> ComposeSpec:
        self._record("read_specification")
        return self.store.read()

    async def write_specification(self, spec: ComposeSpec) -> None:
        self._record("write_specification", spec)
        self.store.write(spec)

    async def backup_and_write_specification(self, spec: ComposeSpec) -> Path | None:
        self._record("backup_and_write_specification", spec)
        return self.store.replace(spec)

    async def apply(self, direction: ComposeDirection) -> None:
        self._record("apply", direction)

    async def control_container(self, action: ContainerAction) -> None:
        self._record("control_container", action)

    async def get_status(self) -> ContainerStatus:
        return self.status

    async def exists(self) -> bool:
        return self.container_exists

    async def remove(self) -> None:
        self._record("remove")

    async def remove_volume(self, name: str) -> None:
        self._record("remove_volume", name)

    async def get_active_port_bindings(self) -> list[PortBinding]:
        self._record("get_active_port_bindings")
        return list(self.live_bindings)

    def called(self, name: str) -> list[object]:
        return [arg for call, arg in self.calls if call == name]


def make_probe(taken: Iterable[int]) -> Callable[[int], object]:
    """Port probe reporting every port in ``taken`` as in use."""
    taken = set(taken)

    async def probe(port: int) -> bool:
        return port not in taken

    return probe


@pytest.fixture
def settings(tmp_path: Path) -> WinBoatSettings:
    """Settings rooted in a temporary directory with no waiting."""
    return WinBoatSettings(
        data_dir=tmp_path / "winboat",
        guest_server_dir=None,
        status_interval=0.01,
        health_interval=0.01,
        metrics_interval=0.01,
        rdp_status_interval=0.01,
        qmp_interval=0.01,
        preinstall_settle_delay=0,
        preinstall_interval=0,
        install_health_interval=0.01,
        update_settle_delay=0,
        http_timeout=1.0,
    )


@pytest.fixture
def backend(settings: WinBoatSettings) -> FakeBackend:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return FakeBackend(settings.data_dir)


@pytest.fixture
def config_store(settings: WinBoatSettings) -> ConfigStore:
    return ConfigStore(settings.config_file)


@pytest.fixture
def probe_factory() -> Callable[[Iterable[int]], Callable[[int], object]]:
    return make_probe


@pytest.fixture
def free_negotiator() -> PortNegotiator:
    """Negotiator that sees every port as free."""
    return PortNegotiator(probe=make_probe([]))
