"""Exception hierarchy for WinBoat.

Every error raised by the engine derives from ``WinBoatError`` so callers at
the top of the chain (CLI, UI layer) can catch one type and show the message.
"""

from __future__ import annotations


class WinBoatError(RuntimeError):
    """Base class for errors with user-facing text."""


class PortBindingError(WinBoatError, ValueError):
    """Raised when a port-binding entry cannot be parsed."""


class PortNegotiationError(WinBoatError):
    """Raised when the requested port bindings cannot be resolved."""


class PortExhaustedError(PortNegotiationError):
    """Raised when no free host port exists in the search window."""

    def __init__(self, port: int, search_range: int) -> None:
        self.port = port
        self.search_range = search_range
        super().__init__(
            f"No open port found in range {port}:{port + search_range}. "
            "Free a port in that range or change the port search range."
        )


class ContainerCommandError(WinBoatError):
    """Raised when a container runtime command fails.

    Attributes:
        command: The full command line that failed.
        returncode: Exit code of the command (None if it could not be run).
        stderr: Standard error captured from the command.
    """

    def __init__(self, message: str, *, command: str, returncode: int | None = None, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        details = stderr.strip()
        super().__init__(f"{message}\n{details}" if details else message)


class RuntimeRefusedStartError(ContainerCommandError):
    """Raised when the runtime itself fails to bind a host port at start time."""


class SpecificationError(WinBoatError):
    """Raised when the on-disk specification cannot be read or validated."""


class GuestApiError(WinBoatError):
    """Raised when the guest server returns an unexpected response."""


class QmpError(WinBoatError):
    """Raised when the QMP handshake returns an unexpected reply."""


class InstallError(WinBoatError):
    """Raised when an installation step fails."""


__all__ = [
    "ContainerCommandError",
    "GuestApiError",
    "InstallError",
    "PortBindingError",
    "PortExhaustedError",
    "PortNegotiationError",
    "QmpError",
    "RuntimeRefusedStartError",
    "SpecificationError",
    "WinBoatError",
]
