"""Type definitions for WinBoat."""

from .compose import WINDOWS_SERVICE, ComposeService, ComposeSpec
from .config import AppConfig
from .container import ComposeDirection, ContainerAction, ContainerRuntime, ContainerStatus, RuntimeCapabilities
from .guest import GuestApp, GuestCredentials, GuestServerVersion, Metrics, RdpStatus
from .install import WINDOWS_VERSIONS, InstallConfiguration, InstallState
from .ports import PortBinding, PortRange

__all__ = [
    "WINDOWS_SERVICE",
    "WINDOWS_VERSIONS",
    "AppConfig",
    "ComposeDirection",
    "ComposeService",
    "ComposeSpec",
    "ContainerAction",
    "ContainerRuntime",
    "ContainerStatus",
    "GuestApp",
    "GuestCredentials",
    "GuestServerVersion",
    "InstallConfiguration",
    "InstallState",
    "Metrics",
    "PortBinding",
    "PortRange",
    "RdpStatus",
    "RuntimeCapabilities",
]
