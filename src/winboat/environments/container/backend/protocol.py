"""Container backend protocol definition.

Defines the interface for container operations that can be implemented
by different container runtimes (Docker, Podman).
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from winboat.types.compose import ComposeSpec
from winboat.types.container import (
    ComposeDirection,
    ContainerAction,
    ContainerRuntime,
    ContainerStatus,
    RuntimeCapabilities,
)
from winboat.types.ports import PortBinding


class ContainerBackend(Protocol):
    """Protocol for container backend implementations.

    Every call shells out to the runtime CLI. Failures raise
    ``ContainerCommandError`` except where a method says otherwise.
    """

    runtime: ContainerRuntime
    container_name: str
    compose_file: Path

    def default_compose(self) -> ComposeSpec:
        """Fresh default specification for this runtime."""
        ...

    async def probe_capabilities(self) -> RuntimeCapabilities:
        """Probe the runtime on this machine.

        Each check runs independently; a failing check reports False and
        never raises.
        """
        ...

    async def read_specification(self) -> ComposeSpec:
        """Load the compose file from disk.

        Raises:
            FileNotFoundError: If the compose file does not exist.
            SpecificationError: If the file cannot be parsed.
        """
        ...

    async def write_specification(self, spec: ComposeSpec) -> None:
        """Atomically replace the compose file with ``spec``."""
        ...

    async def backup_and_write_specification(self, spec: ComposeSpec) -> Path | None:
        """Back up the current compose file, then write ``spec`` in its place.

        Returns:
            Path of the backup, or None if there was no previous file.
        """
        ...

    async def apply(self, direction: ComposeDirection) -> None:
        """Run ``compose up -d`` or ``compose down`` against the compose file.

        Raises:
            ContainerCommandError: If the compose command fails.
            RuntimeRefusedStartError: If the runtime cannot bind a host port.
        """
        ...

    async def control_container(self, action: ContainerAction) -> None:
        """Start, stop, pause or unpause the guest container.

        Raises:
            ContainerCommandError: If the runtime command fails.
            RuntimeRefusedStartError: If the runtime cannot bind a host port.
        """
        ...

    async def get_status(self) -> ContainerStatus:
        """Normalized container status; ``UNKNOWN`` on any error."""
        ...

    async def exists(self) -> bool:
        """Check if the container exists (running or stopped). False on error."""
        ...

    async def remove(self) -> None:
        """Remove the container. Failures are logged, not raised."""
        ...

    async def remove_volume(self, name: str) -> None:
        """Remove a named volume. Failures are logged, not raised."""
        ...

    async def get_active_port_bindings(self) -> list[PortBinding]:
        """Port bindings as reported by the runtime for the live container.

        Raises:
            ContainerCommandError: If the runtime command fails.
        """
        ...


__all__ = ["ContainerBackend"]
