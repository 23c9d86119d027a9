"""Lifecycle orchestration of the running guest.

``WinBoat`` watches the container status once per second. When the container
enters the running state it rebuilds the port table from the runtime's live
bindings and starts the pollers that talk to the guest server; when it leaves
the running state they are stopped and every guest-derived flag is reset.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from types import TracebackType

import httpx

from winboat.core.config_store import ConfigStore
from winboat.core.exceptions import ContainerCommandError, GuestApiError, SpecificationError, WinBoatError
from winboat.core.utils import logger
from winboat.environments.apps import AppManager
from winboat.environments.container.backend import ContainerBackend
from winboat.environments.container.defaults import GUEST_API_PORT, GUEST_QMP_PORT, STORAGE_MOUNT
from winboat.environments.container.ports import NegotiatedPortTable, PortNegotiator, port_table_from_bindings
from winboat.environments.guest_client import LOCALHOST, GuestApiClient, guest_url
from winboat.environments.install.specification import mount_target
from winboat.environments.qmp import QmpClient, QmpConnector, negotiate_capabilities
from winboat.settings import WinBoatSettings
from winboat.types.compose import ComposeSpec
from winboat.types.container import ComposeDirection, ContainerAction, ContainerStatus
from winboat.types.guest import GuestApp, GuestCredentials, Metrics

from .poller import Poller


class WinBoat:
    """Observe and control the guest container.

    Args:
        backend: Container backend for the configured runtime.
        config_store: Persisted application configuration.
        settings: Engine settings (intervals, data directory, port negotiation).
        negotiator: Port negotiator; built from ``settings`` when omitted.
        qmp_connector: Opens QMP sessions; the QMP keeper is disabled without one.
        transport: Optional httpx transport, used by tests to mock the guest.
    """

    def __init__(
        self,
        backend: ContainerBackend,
        config_store: ConfigStore,
        settings: WinBoatSettings,
        negotiator: PortNegotiator | None = None,
        qmp_connector: QmpConnector | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.backend = backend
        self.config_store = config_store
        self.settings = settings
        self.negotiator = negotiator or PortNegotiator(settings.port_search_range, settings.port_spacing)
        self.qmp_connector = qmp_connector
        self.transport = transport

        self.container_status = ContainerStatus.EXITED
        self.is_online = False
        self.rdp_connected = False
        self.is_updating_guest_server = False
        self.container_action_loading = False
        self.metrics = Metrics()
        self.port_table: NegotiatedPortTable | None = None
        self.qmp: QmpClient | None = None
        self.app_manager = AppManager(config_store, settings.usage_file)

        self._guest: GuestApiClient | None = None
        self._status_poller = Poller("container-status", self.refresh_status, settings.status_interval)
        self._api_pollers: dict[str, Poller] = {}

    async def __aenter__(self) -> WinBoat:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def start(self) -> None:
        """Start watching the container status."""
        self._status_poller.start()

    async def close(self) -> None:
        """Stop every poller and release connections."""
        await self._status_poller.stop()
        await self._destroy_api_pollers()
        if self._guest is not None:
            await self._guest.aclose()
            self._guest = None

    @property
    def api_pollers(self) -> dict[str, Poller]:
        return dict(self._api_pollers)

    # Status and port table

    async def refresh_status(self) -> ContainerStatus:
        """Query the runtime once and react to a status change."""
        status = await self.backend.get_status()
        if status == self.container_status:
            return status

        previous, self.container_status = self.container_status, status
        logger.info(f"WinBoat container state changed from {previous} to {status}")
        if status == ContainerStatus.RUNNING:
            await self._create_api_pollers()
        else:
            await self._destroy_api_pollers()
        return status

    async def refresh_port_table(self) -> bool:
        """Rebuild the port table from the runtime's live bindings.

        Only honored while the container is running; outside that state the
        runtime's answer is not authoritative and the request is ignored.

        Returns:
            True if the table was rebuilt.
        """
        if self.container_status != ContainerStatus.RUNNING:
            logger.debug(f"Ignoring port table refresh while container is {self.container_status}")
            return False

        try:
            bindings = await self.backend.get_active_port_bindings()
        except ContainerCommandError as e:
            logger.warning(f"Could not read live port bindings, using the compose file: {e}")
            bindings = []

        if bindings:
            self.port_table = port_table_from_bindings(bindings)
        else:
            # The container owns its ports already, so no probing
            spec = await self.backend.read_specification()
            self.port_table = await self.negotiator.negotiate(spec.windows.port_bindings(), find_open_ports=False)
        logger.info(f"Port table: {self.port_table.as_dict()}")
        return True

    def get_host_port(self, guest_port: int) -> int:
        """Host port for ``guest_port``, or ``guest_port`` itself without a usable table."""
        if self.port_table is None or self.port_table.stale:
            return guest_port
        return self.port_table.get_host_port(guest_port)

    # Guest API pollers

    async def _guest_client(self) -> GuestApiClient:
        base_url = guest_url(self.get_host_port(GUEST_API_PORT))
        if self._guest is None or self._guest.base_url != base_url:
            if self._guest is not None:
                await self._guest.aclose()
            self._guest = GuestApiClient(base_url, timeout=self.settings.http_timeout, transport=self.transport)
        return self._guest

    async def _create_api_pollers(self) -> None:
        logger.info("Creating WinBoat API pollers...")
        await self._destroy_api_pollers(reset_state=False)
        try:
            await self.refresh_port_table()
        except (OSError, WinBoatError) as e:
            logger.error(f"Could not build the port table, using guest ports: {e}")
            self.port_table = None

        self._api_pollers = {
            "health": Poller("health", self._health_tick, self.settings.health_interval),
            "metrics": Poller("metrics", self._metrics_tick, self.settings.metrics_interval),
            "rdp-status": Poller("rdp-status", self._rdp_status_tick, self.settings.rdp_status_interval),
        }
        if self.config_store.config.experimental_features and self.qmp_connector is not None:
            self._api_pollers["qmp"] = Poller("qmp", self._qmp_tick, self.settings.qmp_interval)

        for poller in self._api_pollers.values():
            poller.start()

    async def _destroy_api_pollers(self, reset_state: bool = True) -> None:
        if self._api_pollers:
            logger.info("Destroying WinBoat API pollers...")
        pollers, self._api_pollers = self._api_pollers, {}
        for poller in pollers.values():
            await poller.stop()

        if not reset_state:
            return
        if self.port_table is not None:
            self.port_table.mark_stale()
        self.is_online = False
        self.rdp_connected = False
        self.metrics = Metrics()
        await self._drop_qmp()

    async def _drop_qmp(self) -> None:
        qmp, self.qmp = self.qmp, None
        if qmp is None:
            return
        try:
            await qmp.close()
            logger.info("QMP connection closed because the container is no longer running")
        except Exception as e:
            logger.error(f"Failed to close QMP connection: {e}")

    async def _health_tick(self) -> None:
        client = await self._guest_client()
        online = await client.health()
        if online != self.is_online:
            self.is_online = online
            logger.info(f"WinBoat guest API went {'online' if online else 'offline'}")

    async def _metrics_tick(self) -> None:
        if not self.is_online or self.is_updating_guest_server:
            return
        client = await self._guest_client()
        try:
            self.metrics = await client.metrics()
        except GuestApiError as e:
            if self.metrics != Metrics():
                logger.warning(f"Guest metrics unavailable: {e}")
            self.metrics = Metrics()

    async def _rdp_status_tick(self) -> None:
        if not self.is_online or self.is_updating_guest_server:
            return
        if not self.config_store.config.rdp_monitoring_enabled:
            self.rdp_connected = False
            return

        client = await self._guest_client()
        try:
            connected = await client.rdp_status()
        except GuestApiError as e:
            if self.rdp_connected:
                logger.warning(f"RDP status unavailable, assuming disconnected: {e}")
            self.rdp_connected = False
            return
        if connected != self.rdp_connected:
            self.rdp_connected = connected
            logger.info(f"RDP connection status changed to {'connected' if connected else 'disconnected'}")

    async def _qmp_tick(self) -> None:
        if not self.config_store.config.experimental_features:
            logger.info("Stopping QMP keeper because experimental features were turned off")
            poller = self._api_pollers.pop("qmp", None)
            await self._drop_qmp()
            if poller is not None:
                await poller.stop()
            return

        if self.qmp is not None and await self.qmp.is_alive():
            return

        if self.qmp_connector is None:
            return
        qmp = await self.qmp_connector(LOCALHOST, self.get_host_port(GUEST_QMP_PORT))
        try:
            await negotiate_capabilities(qmp)
        except Exception:
            await qmp.close()
            raise
        self.qmp = qmp
        logger.info("Created new QMP connection")

    # Container actions

    async def _container_action(self, action: ContainerAction) -> None:
        logger.info(f"Container action '{action}' on WinBoat container...")
        self.container_action_loading = True
        try:
            await self.backend.control_container(action)
        finally:
            self.container_action_loading = False
        logger.info(f"Container action '{action}' completed")

    async def start_container(self) -> None:
        """Start the container, renegotiating host ports first.

        When negotiation moves any host port, the specification is replaced
        (with a backup) before starting.

        Raises:
            PortNegotiationError: If the ports cannot be negotiated.
            ContainerCommandError: If a runtime command fails.
            RuntimeRefusedStartError: If the runtime cannot bind a host port.
        """
        spec = await self.backend.read_specification()
        current = [binding.entry for binding in spec.windows.port_bindings()]
        table = await self.negotiator.negotiate(spec.windows.port_bindings())

        if not all(entry in current for entry in table.compose_format):
            logger.info(f"Host ports changed, replacing specification: {current} -> {table.compose_format}")
            await self.replace_specification(spec.with_ports(table.compose_format))

        await self._container_action(ContainerAction.START)

    async def stop_container(self) -> None:
        await self._container_action(ContainerAction.STOP)

    async def pause_container(self) -> None:
        await self._container_action(ContainerAction.PAUSE)
        # The health poller would take a timeout to notice
        self.is_online = False

    async def unpause_container(self) -> None:
        await self._container_action(ContainerAction.UNPAUSE)

    async def replace_specification(self, spec: ComposeSpec, restart: bool = True) -> None:
        """Replace the on-disk specification, backing up the current one.

        Args:
            spec: The new specification.
            restart: Bring the deployment down before and up after the write.
        """
        logger.info("Replacing compose specification")
        self.container_action_loading = True
        try:
            if restart:
                await self.backend.apply(ComposeDirection.DOWN)
            await self.backend.backup_and_write_specification(spec)
            if restart:
                await self.backend.apply(ComposeDirection.UP)
        finally:
            self.container_action_loading = False
        logger.info("Replace compose specification completed")

    async def reset(self) -> None:
        """Remove the container, the guest disk and the data directory."""
        logger.info("Resetting WinBoat...")
        try:
            spec: ComposeSpec | None = await self.backend.read_specification()
        except (FileNotFoundError, SpecificationError) as e:
            logger.warning(f"Could not read compose file, guest storage will not be removed: {e}")
            spec = None

        await self.close()
        try:
            await self.stop_container()
        except ContainerCommandError as e:
            logger.warning(f"Could not stop container: {e}")
        await self.backend.remove()
        logger.info("Removed container")

        if spec is not None:
            await self._remove_storage(spec)

        await asyncio.to_thread(shutil.rmtree, self.settings.data_dir, ignore_errors=True)
        logger.info(f"Removed {self.settings.data_dir}")

    async def _remove_storage(self, spec: ComposeSpec) -> None:
        storage = next((vol for vol in spec.windows.volumes if mount_target(vol) == STORAGE_MOUNT), None)
        if storage is None:
            logger.warning("No storage volume in compose file, skipping removal")
            return

        source = storage.split(":")[0]
        if source in spec.volumes:
            await self.backend.remove_volume(f"{spec.name}_{source}")
            logger.info("Removed storage volume")
            return

        storage_dir = Path(source)
        if storage_dir.exists():
            await asyncio.to_thread(shutil.rmtree, storage_dir, ignore_errors=True)
            logger.info(f"Removed storage folder at {storage_dir}")
        else:
            logger.warning("Storage folder does not exist, skipping removal")

    async def get_credentials(self) -> GuestCredentials:
        """Guest account from the on-disk specification."""
        spec = await self.backend.read_specification()
        environment = spec.windows.environment
        return GuestCredentials(username=environment.get("USERNAME", ""), password=environment.get("PASSWORD", ""))

    # Guest server

    async def get_apps(self, refresh: bool = False) -> list[GuestApp]:
        """Guest apps merged with the built-in and custom entries, with usage counts."""
        client = await self._guest_client()
        return await self.app_manager.get_apps(client, refresh=refresh)

    async def check_version_and_update_guest_server(self, bundle: Path, current_version: str) -> bool:
        """Upload ``bundle`` when the guest runs a different guest server version.

        Waits for the guest server to come back healthy after the upload.

        Args:
            bundle: Zip archive of the guest server shipped with this build.
            current_version: Version of that archive.

        Returns:
            True if an update was sent, False if the guest was already current.

        Raises:
            GuestApiError: If the version query or the upload fails.
        """
        client = await self._guest_client()
        guest_version = (await client.version()).version
        if guest_version == current_version:
            return False

        logger.info(f"Updating guest server from {guest_version} to {current_version}")
        self.is_updating_guest_server = True
        try:
            await client.update(bundle)
            logger.info("Successfully sent update payload to guest server")

            await asyncio.sleep(self.settings.update_settle_delay)
            while not await client.health():
                await asyncio.sleep(self.settings.health_interval)
            logger.info("Update completed, guest server is online")
        finally:
            self.is_updating_guest_server = False
        return True


__all__ = [
    "WinBoat",
]
