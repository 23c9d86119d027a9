"""Podman backend implementation.

Podman runs rootless, so authorization is a successful ``podman info`` rather
than membership of a group. Any compose provider reachable through
``podman compose`` is accepted.
"""

from __future__ import annotations

import asyncio

from winboat.core.utils import logger
from winboat.types.container import ContainerRuntime, ContainerStatus, RuntimeCapabilities

from .base import CliContainerBackend

PODMAN_STATUS_MAP: dict[str, ContainerStatus] = {
    "created": ContainerStatus.CREATED,
    "configured": ContainerStatus.CREATED,
    "initialized": ContainerStatus.CREATED,
    "running": ContainerStatus.RUNNING,
    "paused": ContainerStatus.PAUSED,
    "exited": ContainerStatus.EXITED,
    "stopped": ContainerStatus.EXITED,
    "unknown": ContainerStatus.UNKNOWN,
}


class PodmanBackend(CliContainerBackend):
    """Podman implementation of ContainerBackend."""

    runtime = ContainerRuntime.PODMAN
    executable = "podman"
    compose_file_name = "podman-compose.yml"
    status_map = PODMAN_STATUS_MAP
    min_compose_major_version = 1

    async def _installed(self) -> bool:
        result = await self._probe(self.executable, "--version")
        return result is not None and bool(result.stdout.strip())

    async def _service_reachable(self) -> bool:
        return await self._probe(self.executable, "info") is not None

    async def probe_capabilities(self) -> RuntimeCapabilities:
        installed, compose_installed, reachable = await asyncio.gather(
            self._installed(), self._compose_supported(), self._service_reachable()
        )
        capabilities = RuntimeCapabilities(
            runtime=self.runtime,
            installed=installed,
            compose_installed=compose_installed,
            running=reachable,
            user_authorized=reachable,
        )
        logger.debug(f"Podman capabilities: {capabilities.model_dump()}")
        return capabilities


__all__ = ["PODMAN_STATUS_MAP", "PodmanBackend"]
