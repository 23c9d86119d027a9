"""Container backend abstraction for the WinBoat guest.

This package provides a Protocol for container backends, a shared CLI base
and the Docker and Podman implementations, plus the closed registry used to
create one from a configured runtime.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from winboat.types.container import ContainerRuntime

from .base import CliContainerBackend, CommandResult, parse_compose_version, parse_port_output
from .docker import DockerBackend
from .podman import PodmanBackend
from .protocol import ContainerBackend

CONTAINER_BACKENDS: Mapping[ContainerRuntime, type[CliContainerBackend]] = {
    ContainerRuntime.DOCKER: DockerBackend,
    ContainerRuntime.PODMAN: PodmanBackend,
}


def create_backend(runtime: ContainerRuntime | str, data_dir: Path, **kwargs: Any) -> ContainerBackend:
    """Create the backend for ``runtime``.

    Args:
        runtime: Runtime name or enum member.
        data_dir: Directory holding the compose file.
        **kwargs: Forwarded to the backend constructor.

    Raises:
        ValueError: If the runtime is not supported.
    """
    try:
        backend_cls = CONTAINER_BACKENDS[ContainerRuntime(runtime)]
    except (KeyError, ValueError):
        supported = ", ".join(CONTAINER_BACKENDS)
        raise ValueError(f"Unsupported container runtime '{runtime}' (supported: {supported})") from None
    return backend_cls(data_dir, **kwargs)


__all__ = [
    "CONTAINER_BACKENDS",
    "CliContainerBackend",
    "CommandResult",
    "ContainerBackend",
    "DockerBackend",
    "PodmanBackend",
    "create_backend",
    "parse_compose_version",
    "parse_port_output",
]
