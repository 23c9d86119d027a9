"""Installation-related type definitions."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .container import ContainerRuntime


class InstallState(StrEnum):
    """Stages of the installation state machine, in order."""

    IDLE = "Preparing"
    CREATING_SPECIFICATION = "Creating Compose File"
    CREATING_AUXILIARY_ASSETS = "Creating OEM Assets"
    STARTING_CONTAINER = "Starting Container"
    MONITORING_PREINSTALL = "Monitoring Preinstall"
    INSTALLING_GUEST = "Installing Windows"
    COMPLETED = "Completed"
    INSTALL_ERROR = "Install Error"


class InstallConfiguration(BaseModel):
    """User choices collected before an installation.

    Attributes:
        windows_version: Guest edition key (e.g. "11", "10l").
        windows_language: Guest display language.
        cpu_cores: Virtual CPU cores.
        ram_gb: Guest memory in GB.
        disk_space_gb: Guest disk size in GB.
        username: Guest account name.
        password: Guest account password.
        install_folder: Host folder holding the guest disk (mounted at /storage).
        custom_iso_path: Optional custom boot image (mounted at /boot.iso).
        share_home_folder: Whether the host home folder is mounted at /shared.
        runtime: Container runtime to install with.
    """

    model_config = ConfigDict(frozen=True)

    windows_version: str = Field(default="11", description="Guest edition key")
    windows_language: str = Field(default="English", description="Guest display language")
    cpu_cores: int = Field(default=4, ge=1, description="Virtual CPU cores")
    ram_gb: int = Field(default=4, ge=1, description="Guest memory in GB")
    disk_space_gb: int = Field(default=64, ge=1, description="Guest disk size in GB")
    username: str = Field(default="MyWindowsUser", description="Guest account name")
    password: str = Field(default="MyWindowsPassword", description="Guest account password")
    install_folder: Path = Field(description="Host folder holding the guest disk")
    custom_iso_path: Path | None = Field(default=None, description="Optional custom boot image")
    share_home_folder: bool = Field(default=True, description="Mount the host home folder at /shared")
    runtime: ContainerRuntime = Field(default=ContainerRuntime.DOCKER, description="Container runtime")


WINDOWS_VERSIONS: dict[str, str] = {
    "11": "Windows 11 Pro",
    "11l": "Windows 11 LTSC 2024",
    "11e": "Windows 11 Enterprise",
    "10": "Windows 10 Pro",
    "10l": "Windows 10 LTSC 2021",
    "10e": "Windows 10 Enterprise",
    "custom": "Custom Windows",
}


__all__ = [
    "WINDOWS_VERSIONS",
    "InstallConfiguration",
    "InstallState",
]
