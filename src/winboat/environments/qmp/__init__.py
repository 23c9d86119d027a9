"""Contract for the QEMU Machine Protocol (QMP) connection.

The wire protocol lives outside this package. The orchestrator only needs a
connector that opens a session and the handful of calls below.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from winboat.core.exceptions import QmpError
from winboat.core.utils import logger


class QmpClient(Protocol):
    """An open QMP session."""

    async def execute_command(self, command: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send ``command`` and return the decoded reply."""
        ...

    async def is_alive(self) -> bool:
        """Whether the underlying socket is still connected."""
        ...

    async def close(self) -> None: ...


QmpConnector = Callable[[str, int], Awaitable[QmpClient]]
"""Open a QMP session to ``(host, port)``."""


async def negotiate_capabilities(client: QmpClient) -> list[str]:
    """Leave capabilities-negotiation mode and list the available commands.

    Returns:
        Names of the commands the guest's QEMU supports.

    Raises:
        QmpError: If either reply is malformed.
    """
    capabilities = await client.execute_command("qmp_capabilities")
    if "return" not in capabilities:
        raise QmpError(f"Unexpected reply to qmp_capabilities: {capabilities}")

    commands = await client.execute_command("query-commands")
    entries = commands.get("return")
    if not isinstance(entries, list) or not all(isinstance(entry, dict) and "name" in entry for entry in entries):
        raise QmpError(f"Unexpected reply to query-commands: {commands}")

    names = [entry["name"] for entry in entries]
    logger.debug(f"QMP supports {len(names)} commands")
    return names


__all__ = [
    "QmpClient",
    "QmpConnector",
    "negotiate_capabilities",
]
