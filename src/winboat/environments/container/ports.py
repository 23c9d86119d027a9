"""Host port negotiation for the guest container.

Before a specification is written or started, every host port it asks for is
checked against the local machine. Taken ports are replaced with the first
free port in a bounded window, and bindings that land too close to one
another are spread apart so that services which each scan forward from nearby
ports do not collide with each other.
"""

from __future__ import annotations

import asyncio
import errno
import socket
from collections.abc import Awaitable, Callable, Iterable

from pydantic import BaseModel, ConfigDict, Field

from winboat.core.exceptions import PortExhaustedError, PortNegotiationError
from winboat.core.utils import logger
from winboat.types.compose import ComposeSpec
from winboat.types.ports import PORT_MAX, PortBinding, port_distance

from .defaults import DEFAULT_HOST_QMP_PORT, GUEST_API_PORT, GUEST_NOVNC_PORT, GUEST_QMP_PORT, GUEST_RDP_PORT

DEFAULT_SEARCH_RANGE = 100
DEFAULT_SPACING = 1000

PortProbe = Callable[[int], Awaitable[bool]]


def _try_bind(port: int, host: str) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            s.listen(1)
        except OSError as e:
            if e.errno != errno.EADDRINUSE:
                logger.debug(f"Port {port} cannot be bound: {e}")
            return False
    return True


async def is_port_open(port: int, host: str = "0.0.0.0") -> bool:
    """Check whether a TCP port can be bound on this machine.

    The socket is released immediately, so the answer is only a hint: another
    process may take the port before the runtime binds it.

    Args:
        port: Port to check.
        host: Address to bind.

    Returns:
        True if the port is free, False otherwise.
    """
    return await asyncio.to_thread(_try_bind, port, host)


async def find_open_port_in_range(min_port: int, max_port: int, probe: PortProbe = is_port_open) -> int | None:
    """Return the first free port in ``min_port..max_port`` (inclusive), or None."""
    for port in range(min_port, min(max_port, PORT_MAX) + 1):
        if await probe(port):
            return port
    return None


class NegotiatedPortTable:
    """Resolved guest port to host port mapping.

    Built either by negotiation (static analysis of a specification) or from
    the runtime's live bindings. The table is marked stale once the container
    leaves the running state and must not be used to address the guest until
    it is rebuilt.
    """

    def __init__(self, bindings: Iterable[PortBinding]) -> None:
        self._bindings = list(bindings)
        self._ports: dict[int, int] = {}
        for binding in self._bindings:
            if isinstance(binding.container_port, int) and isinstance(binding.host_port, int):
                self._ports.setdefault(binding.container_port, binding.host_port)
        self.stale = False

    @property
    def bindings(self) -> list[PortBinding]:
        return list(self._bindings)

    def get_host_port(self, guest_port: int) -> int:
        """Host port mapped to ``guest_port``, or ``guest_port`` itself when unmapped."""
        return self._ports.get(guest_port, guest_port)

    def has_port_mapping(self, guest_port: int) -> bool:
        return guest_port in self._ports

    @property
    def compose_format(self) -> list[str]:
        """Entries in canonical compose form, in specification order."""
        return [binding.entry for binding in self._bindings]

    def mark_stale(self) -> None:
        self.stale = True

    def as_dict(self) -> dict[int, int]:
        return dict(self._ports)

    def __repr__(self) -> str:
        return f"NegotiatedPortTable({self._ports!r}, stale={self.stale})"


class PortNegotiator:
    """Resolve the host side of a list of port bindings.

    Args:
        search_range: Width of the window scanned past a taken port, and the
            minimum distance kept between two accepted host ports.
        spacing: Shift applied to a binding that falls within ``search_range``
            of an already accepted one.
        probe: Async callable returning True when a port is free.
    """

    def __init__(
        self,
        search_range: int = DEFAULT_SEARCH_RANGE,
        spacing: int = DEFAULT_SPACING,
        probe: PortProbe = is_port_open,
    ) -> None:
        if search_range < 1 or spacing < 1:
            raise ValueError("search_range and spacing must be positive")
        self.search_range = search_range
        self.spacing = spacing
        self.probe = probe

    async def negotiate(self, bindings: Iterable[PortBinding], find_open_ports: bool = True) -> NegotiatedPortTable:
        """Negotiate host ports for ``bindings``.

        Bindings with a runtime-assigned host port or a port range are passed
        through untouched. The remote-desktop TCP and UDP entries resolve to one
        shared host port and are emitted as a ``/tcp`` and ``/udp`` pair at the
        position of the first one.

        Args:
            bindings: Bindings in specification order.
            find_open_ports: Probe the host ports and replace taken ones. Pass
                False when the container already owns its ports.

        Returns:
            The negotiated table.

        Raises:
            PortNegotiationError: If the remote-desktop TCP and UDP host ports differ.
            PortExhaustedError: If no free port exists in a search window.
        """
        bindings = list(bindings)
        check_rdp_symmetry(bindings)

        accepted: list[int] = []
        resolved: list[PortBinding] = []
        rdp_done = False

        for binding in bindings:
            if not isinstance(binding.host_port, int) or not isinstance(binding.container_port, int):
                resolved.append(binding)
                continue

            is_rdp = binding.container_port == GUEST_RDP_PORT
            if is_rdp and rdp_done:
                continue

            host_port = await self._resolve(binding.host_port, accepted, find_open_ports)
            accepted.append(host_port)
            if host_port != binding.host_port:
                logger.info(f"Guest port {binding.container_port}: host port {binding.host_port} -> {host_port}")

            resolved_binding = binding.with_host_port(host_port)
            if is_rdp:
                rdp_done = True
                resolved.append(resolved_binding.with_protocol("tcp"))
                resolved.append(resolved_binding.with_protocol("udp"))
            else:
                resolved.append(resolved_binding)

        table = NegotiatedPortTable(resolved)
        logger.debug(f"Negotiated ports: {table.as_dict()}")
        return table

    async def _resolve(self, desired: int, accepted: list[int], find_open_ports: bool) -> int:
        candidate = desired
        while True:
            if candidate > PORT_MAX:
                raise PortExhaustedError(desired, self.search_range)

            if find_open_ports and not await self.probe(candidate):
                found = await find_open_port_in_range(candidate + 1, candidate + self.search_range, self.probe)
                if found is None:
                    logger.error(f"No open port found in range {candidate}:{candidate + self.search_range}")
                    raise PortExhaustedError(candidate, self.search_range)
                logger.info(f"Port {candidate} is in use, remapping to {found}")
                candidate = found

            if any(port_distance(candidate, port) <= self.search_range for port in accepted):
                candidate += self.spacing
                continue

            return candidate


def check_rdp_symmetry(bindings: Iterable[PortBinding]) -> None:
    """Reject bindings whose remote-desktop TCP and UDP host ports differ.

    Raises:
        PortNegotiationError: On a mismatch.
    """
    host_ports = {
        binding.protocol: binding.host_port for binding in bindings if binding.container_port == GUEST_RDP_PORT
    }
    if "tcp" in host_ports and "udp" in host_ports and host_ports["tcp"] != host_ports["udp"]:
        raise PortNegotiationError(
            f"Remote desktop TCP and UDP host ports differ ({host_ports['tcp']} != {host_ports['udp']})"
        )


def port_table_from_bindings(bindings: Iterable[PortBinding]) -> NegotiatedPortTable:
    """Build a table from the runtime's live bindings, without negotiation."""
    return NegotiatedPortTable(bindings)


class PortConfiguration(BaseModel):
    """Host ports of the well-known guest services."""

    model_config = ConfigDict(frozen=True)

    rdp_port: int = Field(default=GUEST_RDP_PORT, description="Remote desktop host port")
    vnc_web_port: int = Field(default=GUEST_NOVNC_PORT, description="Web console host port")
    guest_api_port: int = Field(default=GUEST_API_PORT, description="Guest server API host port")
    qmp_port: int = Field(default=DEFAULT_HOST_QMP_PORT, description="QMP host port")


def port_configuration_from_spec(spec: ComposeSpec) -> PortConfiguration:
    """Look up the host ports of the well-known guest services in ``spec``.

    Services that are missing, or whose host port is runtime-assigned, keep
    their default.

    Raises:
        PortBindingError: If a port entry is malformed.
        PortNegotiationError: If the remote-desktop TCP and UDP host ports differ.
    """
    bindings = spec.windows.port_bindings()
    check_rdp_symmetry(bindings)
    table = NegotiatedPortTable(bindings)

    def lookup(guest_port: int, default: int) -> int:
        return table.get_host_port(guest_port) if table.has_port_mapping(guest_port) else default

    defaults = PortConfiguration()
    return PortConfiguration(
        rdp_port=lookup(GUEST_RDP_PORT, defaults.rdp_port),
        vnc_web_port=lookup(GUEST_NOVNC_PORT, defaults.vnc_web_port),
        guest_api_port=lookup(GUEST_API_PORT, defaults.guest_api_port),
        qmp_port=lookup(GUEST_QMP_PORT, defaults.qmp_port),
    )


__all__ = [
    "DEFAULT_SEARCH_RANGE",
    "DEFAULT_SPACING",
    "NegotiatedPortTable",
    "PortConfiguration",
    "PortNegotiator",
    "PortProbe",
    "check_rdp_symmetry",
    "find_open_port_in_range",
    "is_port_open",
    "port_configuration_from_spec",
    "port_table_from_bindings",
]
