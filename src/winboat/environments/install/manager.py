"""Installation state machine for the Windows guest.

An installation walks through a fixed sequence of stages: write the
specification, stage the guest server bundle, bring the container up, follow
the unattended setup through the web console, then wait for the guest server
to report healthy. Any failure ends the run in ``INSTALL_ERROR``; there is no
automatic retry.
"""

from __future__ import annotations

import asyncio
import re
import shutil
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path

import httpx

from winboat.core.config_store import ConfigStore
from winboat.core.exceptions import InstallError
from winboat.core.utils import file_logging_context, logger
from winboat.environments.container.backend import ContainerBackend, create_backend
from winboat.environments.container.defaults import GUEST_API_PORT, GUEST_NOVNC_PORT
from winboat.environments.container.ports import NegotiatedPortTable, PortNegotiator, port_table_from_bindings
from winboat.environments.guest_client import guest_url
from winboat.settings import WinBoatSettings
from winboat.types.container import ComposeDirection
from winboat.types.install import InstallConfiguration, InstallState

from .specification import configure_specification

INSTALL_LOG_NAME = "install.log"
HEALTH_HEARTBEAT_ATTEMPTS = 12

_PREINSTALL_MESSAGE = re.compile(r">([^<]+)<")


class InstallEvent(StrEnum):
    """Events published by ``InstallManager``."""

    STATE_CHANGED = "state_changed"
    PREINSTALL_MESSAGE = "preinstall_message"
    ERROR = "error"


Listener = Callable[[object], None]


def extract_preinstall_message(body: str) -> str:
    """Text of the first element in the console's status page, or the raw body."""
    match = _PREINSTALL_MESSAGE.search(body)
    return match.group(1) if match else body


class InstallManager:
    """Drive one installation run.

    Args:
        conf: User choices for this installation.
        backend: Container backend to install with.
        settings: Engine settings (data directory, intervals, port negotiation).
        negotiator: Port negotiator; built from ``settings`` when omitted.
        transport: Optional httpx transport, used by tests to mock the guest.
    """

    def __init__(
        self,
        conf: InstallConfiguration,
        backend: ContainerBackend,
        settings: WinBoatSettings,
        negotiator: PortNegotiator | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.conf = conf
        self.backend = backend
        self.settings = settings
        self.negotiator = negotiator or PortNegotiator(settings.port_search_range, settings.port_spacing)
        self.transport = transport

        self.state = InstallState.IDLE
        self.preinstall_message = ""
        self.port_table: NegotiatedPortTable | None = None
        self.error: BaseException | None = None
        self._listeners: dict[InstallEvent, list[Listener]] = {event: [] for event in InstallEvent}

    def subscribe(self, event: InstallEvent, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``event``.

        Returns:
            A callable that removes the listener.
        """
        self._listeners[event].append(listener)
        return lambda: self._listeners[event].remove(listener)

    def _emit(self, event: InstallEvent, payload: object) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(payload)
            except Exception:
                logger.exception(f"Install listener for '{event}' failed")

    def change_state(self, new_state: InstallState) -> None:
        self.state = new_state
        logger.info(f'New state: "{new_state}"')
        self._emit(InstallEvent.STATE_CHANGED, new_state)

    def set_preinstall_message(self, message: str) -> None:
        if message == self.preinstall_message:
            return
        self.preinstall_message = message
        logger.info(f'Preinstall: "{message}"')
        self._emit(InstallEvent.PREINSTALL_MESSAGE, message)

    def _host_port(self, guest_port: int) -> int:
        return self.port_table.get_host_port(guest_port) if self.port_table else guest_port

    async def create_specification(self) -> None:
        self.change_state(InstallState.CREATING_SPECIFICATION)

        self.settings.data_dir.mkdir(parents=True, exist_ok=True)
        if not self.conf.install_folder.exists():
            self.conf.install_folder.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created installation directory: {self.conf.install_folder}")

        spec = self.backend.default_compose()
        self.port_table = await self.negotiator.negotiate(spec.windows.port_bindings())
        spec = configure_specification(spec.with_ports(self.port_table.compose_format), self.conf)
        await self.backend.backup_and_write_specification(spec)

    async def create_auxiliary_assets(self) -> None:
        """Copy the guest server bundle into the OEM directory.

        Raises:
            InstallError: If the bundle directory is not configured or missing.
        """
        self.change_state(InstallState.CREATING_AUXILIARY_ASSETS)

        source = self.settings.guest_server_dir
        if source is None or not source.is_dir():
            raise InstallError(f"Guest server directory not found at: {source}")

        oem_dir = self.settings.oem_dir
        logger.info(f"Copying guest server from {source} to {oem_dir}")
        await asyncio.to_thread(shutil.copytree, source, oem_dir, dirs_exist_ok=True)
        logger.info("OEM assets created successfully")

    async def start_container(self) -> None:
        self.change_state(InstallState.STARTING_CONTAINER)
        await self.backend.apply(ComposeDirection.UP)
        logger.info("Container started successfully")

        # Runtime-assigned host ports are only known once the container runs
        if self.port_table and any(binding.host_port is None for binding in self.port_table.bindings):
            self.port_table = port_table_from_bindings(await self.backend.get_active_port_bindings())
            logger.info(f"Runtime assigned ports: {self.port_table.as_dict()}")

    async def monitor_preinstall(self) -> None:
        """Follow the console's status page until it disappears.

        Raises:
            InstallError: On any response error other than the final 404.
        """
        await asyncio.sleep(self.settings.preinstall_settle_delay)
        self.change_state(InstallState.MONITORING_PREINSTALL)

        url = f"{guest_url(self._host_port(GUEST_NOVNC_PORT))}/msg.html"
        async with httpx.AsyncClient(timeout=self.settings.http_timeout, transport=self.transport) as client:
            while True:
                try:
                    response = await client.get(url)
                except httpx.HTTPError as e:
                    raise InstallError(f"Error monitoring container preinstall: {e}") from e

                if response.status_code == httpx.codes.NOT_FOUND:
                    logger.info("Received 404, preinstall completed")
                    return

                self.set_preinstall_message(extract_preinstall_message(response.text))
                await asyncio.sleep(self.settings.preinstall_interval)

    async def monitor_guest_health(self) -> None:
        """Poll the guest server until it reports healthy.

        Transport errors are expected while Windows installs and are only logged.
        """
        self.change_state(InstallState.INSTALLING_GUEST)
        logger.info("Waiting for the guest server to wrap up installation...")

        interval = self.settings.install_health_interval
        url = f"{guest_url(self._host_port(GUEST_API_PORT))}/health"
        loop = asyncio.get_running_loop()
        attempts = 0

        async with httpx.AsyncClient(timeout=interval, transport=self.transport) as client:
            while True:
                start = loop.time()
                try:
                    response = await client.get(url)
                    if response.status_code == httpx.codes.OK:
                        logger.info("Guest server is up and healthy!")
                        return
                    logger.debug(f"API request status: {response.status_code}")
                except httpx.TimeoutException:
                    pass
                except httpx.HTTPError as e:
                    logger.debug(f"Health check failed: {e}")

                attempts += 1
                if attempts % HEALTH_HEARTBEAT_ATTEMPTS == 0:
                    minutes = attempts * interval / 60
                    logger.info(f"API not responding yet, still waiting after {minutes:.1f} minutes...")
                await asyncio.sleep(max(0.0, interval - (loop.time() - start)))

    async def install(self) -> InstallState:
        """Run every stage in order.

        Returns:
            ``COMPLETED`` on success, ``INSTALL_ERROR`` otherwise; the failure
            is kept in ``error`` and published as an ``ERROR`` event.
        """
        with file_logging_context(self.settings.data_dir / INSTALL_LOG_NAME):
            logger.info("Starting installation...")
            try:
                await self.create_specification()
                await self.create_auxiliary_assets()
                await self.start_container()
                await self.monitor_preinstall()
                await self.monitor_guest_health()
            except Exception as e:
                self.error = e
                logger.error(f"Errors encountered, could not complete the installation steps: {e}")
                self.change_state(InstallState.INSTALL_ERROR)
                self._emit(InstallEvent.ERROR, e)
                return self.state

            self.change_state(InstallState.COMPLETED)
            logger.info("Installation completed successfully.")
            return self.state


async def is_installed(config_store: ConfigStore, data_dir: Path) -> bool:
    """Check whether a guest container exists for the configured runtime."""
    backend = create_backend(config_store.config.container_runtime, data_dir)
    return await backend.exists()


__all__ = [
    "HEALTH_HEARTBEAT_ATTEMPTS",
    "INSTALL_LOG_NAME",
    "InstallEvent",
    "InstallManager",
    "extract_preinstall_message",
    "is_installed",
]
