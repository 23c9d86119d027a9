import asyncio
from pathlib import Path
from typing import Any

import httpx
import pytest

from winboat.core.exceptions import ContainerCommandError
from winboat.environments.container.ports import PortNegotiator
from winboat.environments.lifecycle import WinBoat
from winboat.types.container import ComposeDirection, ContainerAction, ContainerStatus
from winboat.types.ports import PortBinding

METRICS = {
    "cpu": {"usage": 12.5, "frequency": 3200},
    "ram": {"used": 2048, "total": 8192, "percentage": 25},
    "disk": {"used": 30, "total": 128, "percentage": 23.4},
}


class GuestServer:
    """Mock guest server answering the endpoints the pollers use."""

    def __init__(self) -> None:
        self.healthy = True
        self.rdp_connected = True
        self.version = "1.0.0"
        self.updates: list[bytes] = []
        self.ports: list[int] = []
        self.failing: set[str] = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.ports.append(request.url.port)
        path = request.url.path
        if path in self.failing:
            return httpx.Response(500, text="internal error")
        if path == "/health":
            return httpx.Response(200 if self.healthy else 503)
        if path == "/metrics":
            return httpx.Response(200, json=METRICS)
        if path == "/rdp/status":
            return httpx.Response(200, json={"rdpConnected": self.rdp_connected})
        if path == "/apps":
            return httpx.Response(200, json=[{"Name": "Word", "Path": "C:\\winword.exe", "Source": "system"}])
        if path == "/version":
            return httpx.Response(200, json={"version": self.version})
        if path == "/update" and request.method == "POST":
            self.updates.append(request.read())
            return httpx.Response(200, json={"filename": "winboat_guest_server.zip"})
        return httpx.Response(404)


class FakeQmp:
    def __init__(self) -> None:
        self.closed = False
        self.commands: list[str] = []

    async def execute_command(self, command: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        self.commands.append(command)
        if command == "query-commands":
            return {"return": [{"name": "qmp_capabilities"}, {"name": "query-status"}]}
        return {"return": {}}

    async def is_alive(self) -> bool:
        return not self.closed

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def guest() -> GuestServer:
    return GuestServer()


@pytest.fixture
def winboat(backend, config_store, settings, free_negotiator, guest):
    backend.store.write(backend.default_compose())
    return WinBoat(backend, config_store, settings, negotiator=free_negotiator, transport=httpx.MockTransport(guest))


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


async def test_running_container_starts_pollers_and_reads_live_ports(winboat: WinBoat, backend, guest):
    backend.status = ContainerStatus.RUNNING
    backend.live_bindings = [PortBinding.parse("0.0.0.0:9148:7148"), PortBinding.parse("0.0.0.0:3390:3389")]

    try:
        assert await winboat.refresh_status() == ContainerStatus.RUNNING
        assert set(winboat.api_pollers) == {"health", "metrics", "rdp-status"}
        assert winboat.get_host_port(7148) == 9148
        assert winboat.get_host_port(8006) == 8006

        await _wait_until(lambda: winboat.is_online and winboat.metrics.cpu.usage == 12.5)
        assert 9148 in guest.ports
        assert not winboat.rdp_connected
    finally:
        await winboat.close()


async def test_rdp_status_is_polled_when_monitoring_enabled(winboat: WinBoat, backend, config_store):
    config_store.set("rdpMonitoringEnabled", True)
    backend.status = ContainerStatus.RUNNING

    try:
        await winboat.refresh_status()
        await _wait_until(lambda: winboat.rdp_connected)
    finally:
        await winboat.close()


async def test_failing_guest_endpoints_reset_rdp_and_metrics(winboat: WinBoat, backend, config_store, guest):
    config_store.set("rdpMonitoringEnabled", True)
    backend.status = ContainerStatus.RUNNING

    try:
        await winboat.refresh_status()
        await _wait_until(lambda: winboat.rdp_connected and winboat.metrics.cpu.usage == 12.5)

        guest.failing = {"/rdp/status", "/metrics"}
        await _wait_until(lambda: not winboat.rdp_connected and winboat.metrics.cpu.usage == 0)

        assert winboat.is_online
        assert set(winboat.api_pollers) == {"health", "metrics", "rdp-status"}
    finally:
        await winboat.close()


async def test_leaving_running_resets_guest_state(winboat: WinBoat, backend):
    backend.status = ContainerStatus.RUNNING
    backend.live_bindings = [PortBinding.parse("0.0.0.0:9148:7148")]
    try:
        await winboat.refresh_status()
        await _wait_until(lambda: winboat.is_online)

        backend.status = ContainerStatus.EXITED
        assert await winboat.refresh_status() == ContainerStatus.EXITED

        assert winboat.api_pollers == {}
        assert not winboat.is_online
        assert not winboat.rdp_connected
        assert winboat.metrics.cpu.usage == 0
        assert winboat.port_table.stale
        assert winboat.get_host_port(7148) == 7148
    finally:
        await winboat.close()


async def test_port_table_refresh_is_ignored_outside_running(winboat: WinBoat, backend):
    backend.status = ContainerStatus.PAUSED
    await winboat.refresh_status()

    assert not await winboat.refresh_port_table()
    assert backend.called("get_active_port_bindings") == []
    assert winboat.port_table is None


async def test_port_table_falls_back_to_compose_file_without_probing(winboat: WinBoat, backend, probe_factory):
    winboat.negotiator = PortNegotiator(probe=probe_factory([3389, 8006, 7148, 8149]))
    winboat.container_status = ContainerStatus.RUNNING

    assert await winboat.refresh_port_table()

    assert winboat.port_table.as_dict() == {8006: 8006, 7148: 7148, 7149: 8149, 3389: 3389}


async def test_port_table_falls_back_when_port_query_fails(winboat: WinBoat, backend):
    backend.fail_on["get_active_port_bindings"] = ContainerCommandError("no such container", command="docker port")
    winboat.container_status = ContainerStatus.RUNNING

    assert await winboat.refresh_port_table()
    assert winboat.port_table.get_host_port(3389) == 3389


async def test_start_replaces_specification_when_ports_move(backend, config_store, settings, guest, probe_factory):
    backend.store.write(backend.default_compose())
    negotiator = PortNegotiator(probe=probe_factory([3389]))
    winboat = WinBoat(backend, config_store, settings, negotiator=negotiator, transport=httpx.MockTransport(guest))

    await winboat.start_container()

    assert [call for call, _ in backend.calls if call != "read_specification"] == [
        "apply",
        "backup_and_write_specification",
        "apply",
        "control_container",
    ]
    assert backend.called("apply") == [ComposeDirection.DOWN, ComposeDirection.UP]
    assert backend.called("control_container") == [ContainerAction.START]
    assert "0.0.0.0:3390:3389/udp" in backend.store.read().windows.ports
    assert len(list(settings.backup_dir.iterdir())) == 1
    assert not winboat.container_action_loading


async def test_start_keeps_specification_when_ports_are_free(winboat: WinBoat, backend):
    await winboat.start_container()

    assert backend.called("backup_and_write_specification") == []
    assert backend.called("control_container") == [ContainerAction.START]


async def test_container_actions(winboat: WinBoat, backend):
    winboat.is_online = True

    await winboat.pause_container()
    assert not winboat.is_online
    await winboat.unpause_container()
    await winboat.stop_container()

    assert backend.called("control_container") == [ContainerAction.PAUSE, ContainerAction.UNPAUSE, ContainerAction.STOP]


async def test_failed_action_clears_loading_flag(winboat: WinBoat, backend):
    backend.fail_on["control_container"] = ContainerCommandError("boom", command="docker container stop WinBoat")

    with pytest.raises(ContainerCommandError):
        await winboat.stop_container()
    assert not winboat.container_action_loading


async def test_credentials_come_from_the_specification(winboat: WinBoat):
    credentials = await winboat.get_credentials()

    assert credentials.username == "MyWindowsUser"
    assert credentials.password == "MyWindowsPassword"


async def test_app_list_includes_guest_and_custom_apps(winboat: WinBoat, settings):
    winboat.app_manager.add_custom_app("Paint", "mspaint.exe")
    winboat.app_manager.increment_usage("Word")

    try:
        apps = await winboat.get_apps()
    finally:
        await winboat.close()

    assert apps[0].name == "Word"
    assert apps[0].usage == 1
    assert apps[-1].name == "Paint"
    assert winboat.app_manager.usage_file == settings.usage_file


async def test_guest_server_update(winboat: WinBoat, guest, tmp_path: Path):
    bundle = tmp_path / "winboat_guest_server.zip"
    bundle.write_bytes(b"PK\x03\x04")
    guest.version = "0.9.0"

    assert await winboat.check_version_and_update_guest_server(bundle, "1.0.0")
    assert len(guest.updates) == 1
    assert b'name="updateFile"' in guest.updates[0]
    assert not winboat.is_updating_guest_server

    guest.version = "1.0.0"
    assert not await winboat.check_version_and_update_guest_server(bundle, "1.0.0")
    assert len(guest.updates) == 1
    await winboat.close()


async def test_qmp_keeper_connects_when_experimental(winboat: WinBoat, backend, config_store):
    config_store.set("experimentalFeatures", True)
    connections: list[tuple[str, int]] = []
    qmp = FakeQmp()

    async def connector(host: str, port: int) -> FakeQmp:
        connections.append((host, port))
        return qmp

    winboat.qmp_connector = connector
    backend.status = ContainerStatus.RUNNING
    try:
        await winboat.refresh_status()
        await _wait_until(lambda: winboat.qmp is not None)
        assert connections == [("127.0.0.1", 8149)]
        assert qmp.commands == ["qmp_capabilities", "query-commands"]

        config_store.set("experimentalFeatures", False)
        await _wait_until(lambda: "qmp" not in winboat.api_pollers)
        assert winboat.qmp is None
        assert qmp.closed
    finally:
        await winboat.close()


async def test_reset_removes_container_volume_and_data(winboat: WinBoat, backend, settings):
    await winboat.reset()

    assert backend.called("control_container") == [ContainerAction.STOP]
    assert backend.called("remove") == [None]
    assert backend.called("remove_volume") == ["winboat_data"]
    assert not settings.data_dir.exists()


async def test_reset_removes_storage_folder(winboat: WinBoat, backend, settings, tmp_path: Path):
    storage = tmp_path / "storage"
    storage.mkdir()
    spec = backend.store.read()
    volumes = [f"{storage}:/storage" if v.endswith(":/storage") else v for v in spec.windows.volumes]
    backend.store.write(spec.with_service(spec.windows.with_volumes(volumes)))
    backend.fail_on["control_container"] = ContainerCommandError("not running", command="docker container stop")

    await winboat.reset()

    assert not storage.exists()
    assert backend.called("remove_volume") == []
