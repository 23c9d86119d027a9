import asyncio
from pathlib import Path

import httpx
import pytest

from winboat.core.exceptions import GuestApiError
from winboat.environments.guest_client import GuestApiClient, GuestClientProtocol, guest_url


def _client(handler) -> GuestApiClient:
    return GuestApiClient(guest_url(7148), transport=httpx.MockTransport(handler))


async def test_health_is_false_on_errors():
    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with _client(refused) as client:
        assert not await client.health()
    async with _client(lambda request: httpx.Response(503)) as client:
        assert not await client.health()
    async with _client(lambda request: httpx.Response(200)) as client:
        assert await client.health()


async def test_metrics_and_rdp_status_are_decoded():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/metrics":
            return httpx.Response(200, json={"cpu": {"usage": 50, "frequency": 2400}, "ram": {"percentage": 10}})
        return httpx.Response(200, json={"rdpConnected": True})

    async with _client(handler) as client:
        metrics = await client.metrics()
        assert metrics.cpu.usage == 50
        assert metrics.ram.percentage == 10
        assert metrics.disk.total == 0
        assert await client.rdp_status()


async def test_apps_are_decoded():
    apps = [{"Name": "Notepad", "Path": "C:\\Windows\\notepad.exe", "Icon": "base64"}]

    async with _client(lambda request: httpx.Response(200, json=apps)) as client:
        result = await client.apps()

    assert result[0].name == "Notepad"
    assert result[0].source == "system"


@pytest.mark.parametrize(
    "response",
    [httpx.Response(500, text="boom"), httpx.Response(200, text="not json"), httpx.Response(200, json={"x": 1})],
)
async def test_unexpected_responses_raise(response: httpx.Response):
    async with _client(lambda request: response) as client:
        with pytest.raises(GuestApiError):
            await client.version()


async def test_update_uploads_bundle(tmp_path: Path):
    bundle = tmp_path / "winboat_guest_server.zip"
    bundle.write_bytes(b"PK")
    received: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200, json={"ok": True})

    async with _client(handler) as client:
        assert await client.update(bundle) == {"ok": True}

    assert received[0].method == "POST"
    assert received[0].url.path == "/update"
    assert b'name="updateFile"; filename="winboat_guest_server.zip"' in received[0].content


async def test_update_reads_bundle_off_the_event_loop(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    bundle = tmp_path / "winboat_guest_server.zip"
    bundle.write_bytes(b"PK-guest-server")
    offloaded: list[object] = []
    real_to_thread = asyncio.to_thread

    async def recording_to_thread(func, /, *args, **kwargs):
        offloaded.append(func)
        return await real_to_thread(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)
    received: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200, json={})

    async with _client(handler) as client:
        await client.update(bundle)

    assert offloaded == [bundle.read_bytes]
    assert b"PK-guest-server" in received[0].content


async def test_rejected_update_raises(tmp_path: Path):
    bundle = tmp_path / "bundle.zip"
    bundle.write_bytes(b"PK")

    async with _client(lambda request: httpx.Response(400, text="bad archive")) as client:
        with pytest.raises(GuestApiError, match="400"):
            await client.update(bundle)


def test_client_satisfies_protocol():
    assert isinstance(GuestApiClient(guest_url(7148)), GuestClientProtocol)
    assert guest_url(9000, "10.0.0.2") == "http://10.0.0.2:9000"
