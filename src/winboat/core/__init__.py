"""Core modules for WinBoat."""

from .utils.logging import file_logging_context, setup_winboat_logging

__all__ = [
    "file_logging_context",
    "setup_winboat_logging",
]
