"""Base protocol for guest server clients."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from winboat.types.guest import GuestApp, GuestServerVersion, Metrics


@runtime_checkable
class GuestClientProtocol(Protocol):
    """Protocol defining the interface for guest server clients.

    The guest server runs inside Windows and is reached through the host port
    mapped to guest port 7148.
    """

    async def health(self) -> bool:
        """Return True when ``GET /health`` answers 200. Never raises."""
        ...

    async def metrics(self) -> Metrics:
        """Resource usage of the guest."""
        ...

    async def rdp_status(self) -> bool:
        """Whether an RDP session is connected."""
        ...

    async def apps(self) -> list[GuestApp]:
        """Applications discovered in the guest."""
        ...

    async def version(self) -> GuestServerVersion:
        """Version of the running guest server."""
        ...

    async def update(self, bundle: Path) -> dict[str, Any]:
        """Upload a guest server bundle.

        Args:
            bundle: Zip archive of the new guest server.

        Returns:
            The update parameters echoed by the guest.
        """
        ...

    async def aclose(self) -> None:
        """Release the underlying connection pool."""
        ...


__all__ = ["GuestClientProtocol"]
