"""Docker backend implementation.

Uses the docker CLI (with the compose v2 plugin) to manage the guest container.
"""

from __future__ import annotations

import asyncio

from winboat.core.utils import logger
from winboat.types.container import ContainerRuntime, ContainerStatus, RuntimeCapabilities

from .base import CliContainerBackend

DOCKER_GROUP = "docker"

DOCKER_STATUS_MAP: dict[str, ContainerStatus] = {
    "created": ContainerStatus.CREATED,
    "restarting": ContainerStatus.UNKNOWN,
    "running": ContainerStatus.RUNNING,
    "paused": ContainerStatus.PAUSED,
    "exited": ContainerStatus.EXITED,
    "dead": ContainerStatus.UNKNOWN,
}


class DockerBackend(CliContainerBackend):
    """Docker implementation of ContainerBackend."""

    runtime = ContainerRuntime.DOCKER
    executable = "docker"
    compose_file_name = "docker-compose.yml"
    status_map = DOCKER_STATUS_MAP

    async def _installed(self) -> bool:
        result = await self._probe(self.executable, "--version")
        return result is not None and bool(result.stdout.strip())

    async def _running(self) -> bool:
        return await self._probe(self.executable, "ps") is not None

    async def _user_in_docker_group(self) -> bool:
        result = await self._probe("id", "-Gn")
        return result is not None and DOCKER_GROUP in result.stdout.split()

    async def probe_capabilities(self) -> RuntimeCapabilities:
        installed, compose_installed, running, user_authorized = await asyncio.gather(
            self._installed(), self._compose_supported(), self._running(), self._user_in_docker_group()
        )
        capabilities = RuntimeCapabilities(
            runtime=self.runtime,
            installed=installed,
            compose_installed=compose_installed,
            running=running,
            user_authorized=user_authorized,
        )
        logger.debug(f"Docker capabilities: {capabilities.model_dump()}")
        return capabilities


__all__ = ["DOCKER_STATUS_MAP", "DockerBackend"]
