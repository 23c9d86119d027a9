"""Container-related type definitions."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ContainerRuntime(StrEnum):
    """Supported container runtimes."""

    DOCKER = "docker"
    PODMAN = "podman"


class ContainerStatus(StrEnum):
    """Normalized status of the guest container.

    Every runtime's native vocabulary maps onto this closed set; anything
    unrecognized becomes ``UNKNOWN``.
    """

    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    EXITED = "exited"
    UNKNOWN = "unknown"


class ComposeDirection(StrEnum):
    """Direction of a compose apply."""

    UP = "up"
    DOWN = "down"


class ContainerAction(StrEnum):
    """Single-container lifecycle actions."""

    START = "start"
    STOP = "stop"
    PAUSE = "pause"
    UNPAUSE = "unpause"


class RuntimeCapabilities(BaseModel):
    """Result of probing a container runtime on this machine.

    Attributes:
        runtime: Runtime that was probed.
        installed: Runtime binary is present.
        compose_installed: Compose plugin is present at a supported major version.
        running: Runtime service is reachable.
        user_authorized: Caller may use the runtime (e.g. member of the ``docker`` group).
    """

    model_config = ConfigDict(frozen=True)

    runtime: ContainerRuntime = Field(description="Runtime that was probed")
    installed: bool = Field(default=False, description="Runtime binary is present")
    compose_installed: bool = Field(default=False, description="Compose plugin present and compatible")
    running: bool = Field(default=False, description="Runtime service is reachable")
    user_authorized: bool = Field(default=False, description="Caller is authorized to use the runtime")

    @property
    def satisfied(self) -> bool:
        """True when every prerequisite is met."""
        return self.installed and self.compose_installed and self.running and self.user_authorized


__all__ = [
    "ComposeDirection",
    "ContainerAction",
    "ContainerRuntime",
    "ContainerStatus",
    "RuntimeCapabilities",
]
