"""HTTP client for the guest server REST API."""

from __future__ import annotations

import asyncio
from pathlib import Path
from types import TracebackType
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from winboat.core.exceptions import GuestApiError
from winboat.core.utils import logger
from winboat.types.guest import GuestApp, GuestServerVersion, Metrics, RdpStatus

LOCALHOST = "127.0.0.1"

_apps_adapter = TypeAdapter(list[GuestApp])


def guest_url(port: int, host: str = LOCALHOST) -> str:
    """Base URL of a guest service published on ``port``."""
    return f"http://{host}:{port}"


class GuestApiClient:
    """HTTP client for interacting with the guest server.

    Args:
        base_url: Base URL of the guest server (e.g., "http://127.0.0.1:7148").
        timeout: Request timeout in seconds.
        transport: Optional httpx transport, used by tests to mock the guest.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> GuestApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, endpoint: str) -> Any:
        """GET ``endpoint`` and decode the JSON body.

        Raises:
            GuestApiError: On a transport error, a non-200 status or an invalid body.
        """
        try:
            response = await self._client.get(endpoint)
        except httpx.HTTPError as e:
            raise GuestApiError(f"Unable to reach guest server at {self.base_url}{endpoint}: {e}") from e
        if response.status_code != httpx.codes.OK:
            raise GuestApiError(f"Guest server returned {response.status_code} for {endpoint}: {response.text}")
        try:
            return response.json()
        except ValueError as e:
            raise GuestApiError(f"Guest server returned invalid JSON for {endpoint}") from e

    async def health(self) -> bool:
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError:
            return False
        return response.status_code == httpx.codes.OK

    async def metrics(self) -> Metrics:
        data = await self._get_json("/metrics")
        try:
            return Metrics.model_validate(data)
        except ValidationError as e:
            raise GuestApiError(f"Invalid metrics payload: {e}") from e

    async def rdp_status(self) -> bool:
        data = await self._get_json("/rdp/status")
        try:
            return RdpStatus.model_validate(data).rdp_connected
        except ValidationError as e:
            raise GuestApiError(f"Invalid RDP status payload: {e}") from e

    async def apps(self) -> list[GuestApp]:
        data = await self._get_json("/apps")
        try:
            return _apps_adapter.validate_python(data)
        except ValidationError as e:
            raise GuestApiError(f"Invalid app list payload: {e}") from e

    async def version(self) -> GuestServerVersion:
        data = await self._get_json("/version")
        try:
            return GuestServerVersion.model_validate(data)
        except ValidationError as e:
            raise GuestApiError(f"Invalid version payload: {e}") from e

    async def update(self, bundle: Path) -> dict[str, Any]:
        """Upload ``bundle`` as the ``updateFile`` multipart field of ``POST /update``.

        Raises:
            GuestApiError: If the upload fails or the guest rejects it.
        """
        payload = await asyncio.to_thread(bundle.read_bytes)
        files = {"updateFile": (bundle.name, payload, "application/zip")}
        try:
            response = await self._client.post("/update", files=files)
        except httpx.HTTPError as e:
            raise GuestApiError(f"Failed to send update payload to guest server: {e}") from e

        if response.status_code != httpx.codes.OK:
            raise GuestApiError(f"Guest server rejected update ({response.status_code}): {response.text}")
        try:
            params = response.json()
        except ValueError:
            params = {}
        logger.info(f"Update params: {params}")
        return params


__all__ = [
    "LOCALHOST",
    "GuestApiClient",
    "guest_url",
]
