"""Settings for the WinBoat engine.

Environment variables override defaults using the WINBOAT_ prefix.

Example environment variables:
    WINBOAT_DATA_DIR=/srv/winboat
    WINBOAT_PORT_SEARCH_RANGE=200
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WinBoatSettings(BaseSettings):
    """Runtime settings for the engine."""

    model_config = SettingsConfigDict(env_prefix="WINBOAT_")

    data_dir: Path = Field(default_factory=lambda: Path.home() / ".winboat")
    """Directory holding the compose file, config, logs, backups and OEM assets."""

    guest_server_dir: Path | None = None
    """Guest server bundle staged into the OEM directory at install time."""

    port_search_range: int = Field(default=100, ge=1)
    """Width of the window scanned past a taken host port."""

    port_spacing: int = Field(default=1000, ge=1)
    """Shift applied to a binding that lands too close to an accepted one."""

    http_timeout: float = 5.0
    """Timeout in seconds for guest API requests."""

    status_interval: float = 1.0
    """Period of the container status loop."""

    health_interval: float = 1.0
    """Period of the guest health poller."""

    metrics_interval: float = 1.0
    """Period of the guest metrics poller."""

    rdp_status_interval: float = 1.0
    """Period of the RDP session status poller."""

    qmp_interval: float = 2.0
    """Period of the QMP connection keeper."""

    preinstall_settle_delay: float = 3.0
    """Sleep before the first preinstall poll so the console web server is up."""

    preinstall_interval: float = 0.5
    """Period of the preinstall progress poll."""

    install_health_interval: float = 5.0
    """Period of the post-boot health poll during installation."""

    update_settle_delay: float = 3.0
    """Wait after a guest server update before polling its health."""

    @property
    def oem_dir(self) -> Path:
        return self.data_dir / "oem"

    @property
    def backup_dir(self) -> Path:
        return self.data_dir / "backup"

    @property
    def config_file(self) -> Path:
        return self.data_dir / "winboat.config.json"

    @property
    def usage_file(self) -> Path:
        return self.data_dir / "appUsage.json"


@lru_cache
def get_settings() -> WinBoatSettings:
    """Get engine settings (cached)."""
    return WinBoatSettings()


__all__ = [
    "WinBoatSettings",
    "get_settings",
]
