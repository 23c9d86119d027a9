"""Installation of the Windows guest."""

from .manager import InstallEvent, InstallManager, extract_preinstall_message, is_installed
from .specification import configure_specification

__all__ = [
    "InstallEvent",
    "InstallManager",
    "configure_specification",
    "extract_preinstall_message",
    "is_installed",
]
