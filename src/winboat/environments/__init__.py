"""WinBoat environment management: container, installation and lifecycle."""

__all__ = [
    # Subpackages
    "container",
    "guest_client",
    "install",
    "lifecycle",
    "qmp",
]
