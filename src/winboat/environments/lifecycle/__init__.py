"""Lifecycle orchestration of the guest container."""

from .orchestrator import WinBoat
from .poller import Poller, PollerState

__all__ = [
    "Poller",
    "PollerState",
    "WinBoat",
]
