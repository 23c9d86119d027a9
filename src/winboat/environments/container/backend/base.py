"""Shared implementation for CLI-driven container backends.

Docker and Podman accept the same command shapes for everything the engine
needs (``compose``, ``container <action>``, ``inspect``, ``port``, ``rm``);
they differ in executable name, status vocabulary and capability checks.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
import shlex
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

import semver

from winboat.core.exceptions import ContainerCommandError, PortBindingError, RuntimeRefusedStartError
from winboat.core.utils import logger
from winboat.environments.container.compose_store import ComposeStore
from winboat.environments.container.defaults import CONTAINER_NAME, get_default_compose
from winboat.types.compose import ComposeSpec
from winboat.types.container import (
    ComposeDirection,
    ContainerAction,
    ContainerRuntime,
    ContainerStatus,
    RuntimeCapabilities,
)
from winboat.types.ports import PortBinding

ADDRESS_IN_USE_MARKERS = ("address already in use", "port is already allocated")
MIN_COMPOSE_MAJOR_VERSION = 2
DEFAULT_COMMAND_TIMEOUT = 120.0

_VERSION_PATTERN = re.compile(r"(\d+\.\d+\.\d+)")


@dataclass
class CommandResult:
    """Result of a single runtime command."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Return True if command exited with code 0."""
        return self.returncode == 0


def parse_compose_version(output: str) -> semver.Version | None:
    """Extract the first ``x.y.z`` version from compose version output.

    Example:
        >>> parse_compose_version("Docker Compose version v2.35.1").major
        2
    """
    match = _VERSION_PATTERN.search(output)
    if not match:
        return None
    return semver.Version.parse(match.group(1))


def parse_port_output(output: str) -> list[PortBinding]:
    """Parse ``<runtime> port <name>`` output into bindings.

    Lines have the form ``3389/tcp -> 0.0.0.0:3390``; unparseable lines are
    skipped.
    """
    bindings: list[PortBinding] = []
    for line in output.strip().splitlines():
        if "->" not in line:
            continue
        container_part, host_part = (part.strip() for part in line.split("->", 1))
        try:
            bindings.append(PortBinding.parse(f"{host_part}:{container_part}"))
        except PortBindingError as e:
            logger.warning(f"Skipping unparseable port line '{line}': {e}")
    return bindings


class CliContainerBackend(ABC):
    """Base class for backends driving a runtime CLI.

    Subclasses set ``runtime``, ``executable``, ``compose_file_name`` and
    ``status_map`` and implement ``probe_capabilities``.

    Args:
        data_dir: Directory holding the compose file and its backups.
        container_name: Name of the guest container.
        command_timeout: Timeout in seconds for each runtime command.
    """

    runtime: ClassVar[ContainerRuntime]
    executable: ClassVar[str]
    compose_file_name: ClassVar[str]
    status_map: ClassVar[Mapping[str, ContainerStatus]]
    min_compose_major_version: ClassVar[int] = MIN_COMPOSE_MAJOR_VERSION

    def __init__(
        self,
        data_dir: Path,
        container_name: str = CONTAINER_NAME,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        self.data_dir = data_dir
        self.container_name = container_name
        self.command_timeout = command_timeout
        self.store = ComposeStore(data_dir / self.compose_file_name, data_dir / "backup")

    @property
    def compose_file(self) -> Path:
        return self.store.path

    def default_compose(self) -> ComposeSpec:
        return get_default_compose(self.runtime)

    async def _run(self, *args: str, timeout: float | None = None) -> CommandResult:
        """Run a command and capture its output.

        Raises:
            ContainerCommandError: If the executable is missing or the command times out.
        """
        command = shlex.join(args)
        logger.debug(f"Running: {command}")
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ContainerCommandError(f"Failed to run '{command}': {e}", command=command) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout or self.command_timeout)
        except TimeoutError as e:
            raise ContainerCommandError(f"Command '{command}' timed out", command=command) from e
        finally:
            # Timed out or cancelled
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        return CommandResult(
            command=command,
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    async def _run_checked(self, *args: str, description: str) -> CommandResult:
        result = await self._run(*args)
        if not result.success:
            logger.error(f"Failed to {description}: '{result.command}' exited with {result.returncode}")
            error_cls = (
                RuntimeRefusedStartError
                if any(marker in result.stderr.lower() for marker in ADDRESS_IN_USE_MARKERS)
                else ContainerCommandError
            )
            raise error_cls(
                f"Failed to {description}",
                command=result.command,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result

    async def _probe(self, *args: str) -> CommandResult | None:
        """Run a capability check; None when it cannot run or fails."""
        try:
            result = await self._run(*args, timeout=30.0)
        except ContainerCommandError as e:
            logger.debug(f"Capability check failed: {e}")
            return None
        if not result.success:
            logger.debug(f"Capability check '{result.command}' exited with {result.returncode}")
            return None
        return result

    async def _compose_supported(self) -> bool:
        result = await self._probe(self.executable, "compose", "version")
        if result is None or not result.stdout.strip():
            return False
        version = parse_compose_version(result.stdout)
        if version is None:
            logger.debug(f"No compose version found in '{result.stdout.strip()}'")
            return False
        return version.major >= self.min_compose_major_version

    @abstractmethod
    async def probe_capabilities(self) -> RuntimeCapabilities:
        """Check the runtime is installed, reachable and usable by this user."""

    async def read_specification(self) -> ComposeSpec:
        return await asyncio.to_thread(self.store.read)

    async def write_specification(self, spec: ComposeSpec) -> None:
        await asyncio.to_thread(self.store.write, spec)

    async def backup_and_write_specification(self, spec: ComposeSpec) -> Path | None:
        return await asyncio.to_thread(self.store.replace, spec)

    async def apply(self, direction: ComposeDirection) -> None:
        args = [self.executable, "compose", "-f", str(self.compose_file), str(direction)]
        if direction == ComposeDirection.UP:
            args.append("-d")
        result = await self._run_checked(*args, description=f"run compose {direction}")
        if result.stderr.strip():
            # compose reports progress on stderr even when it succeeds
            logger.warning(result.stderr.strip())

    async def control_container(self, action: ContainerAction) -> None:
        result = await self._run_checked(
            self.executable, "container", str(action), self.container_name, description=f"{action} container"
        )
        logger.info(f"Container action '{action}' response: '{result.stdout.strip()}'")

    async def get_status(self) -> ContainerStatus:
        try:
            result = await self._run(self.executable, "inspect", "--format", "{{.State.Status}}", self.container_name)
        except ContainerCommandError as e:
            logger.error(f"Failed to get container status: {e}")
            return ContainerStatus.UNKNOWN
        if not result.success:
            logger.debug(f"Status query exited with {result.returncode}: {result.stderr.strip()}")
            return ContainerStatus.UNKNOWN
        return self.status_map.get(result.stdout.strip().lower(), ContainerStatus.UNKNOWN)

    async def exists(self) -> bool:
        try:
            result = await self._run(
                self.executable, "ps", "-a", "--filter", f"name=^{self.container_name}$", "--format", "{{.Names}}"
            )
        except ContainerCommandError as e:
            logger.error(f"Failed to check if container exists, is {self.executable} installed? {e}")
            return False
        return result.success and self.container_name in result.stdout.split()

    async def remove(self) -> None:
        try:
            await self._run_checked(self.executable, "rm", self.container_name, description="remove container")
        except ContainerCommandError as e:
            logger.error(f"Failed to remove container '{self.container_name}': {e}")

    async def remove_volume(self, name: str) -> None:
        try:
            await self._run_checked(self.executable, "volume", "rm", name, description=f"remove volume {name}")
        except ContainerCommandError as e:
            logger.error(f"Failed to remove volume '{name}': {e}")

    async def get_active_port_bindings(self) -> list[PortBinding]:
        result = await self._run_checked(self.executable, "port", self.container_name, description="query ports")
        bindings = parse_port_output(result.stdout)
        logger.debug(f"Active port bindings: {[binding.entry for binding in bindings]}")
        return bindings


__all__ = [
    "ADDRESS_IN_USE_MARKERS",
    "CliContainerBackend",
    "CommandResult",
    "MIN_COMPOSE_MAJOR_VERSION",
    "parse_compose_version",
    "parse_port_output",
]
