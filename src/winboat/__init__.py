"""WinBoat - run a Windows guest in a container and reach its services from the host"""

from winboat.core.utils import logger
from winboat.environments.lifecycle import WinBoat

__all__ = ["WinBoat", "logger"]
