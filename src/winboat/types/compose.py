"""Declarative service specification (compose file) models.

The specification is treated as an immutable value: every mutation helper
returns a new instance, leaving the original untouched.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .ports import PortBinding

WINDOWS_SERVICE = "windows"


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


class ComposeService(BaseModel):
    """One service entry of the specification.

    Attributes:
        image: Container image reference.
        container_name: Fixed container name used by the runtime adapters.
        environment: Environment variables passed to the container.
        cap_add: Capability grants.
        privileged: Whether the container runs privileged.
        ports: Port bindings in compose short syntax.
        stop_grace_period: Time the runtime waits before killing the container.
        restart: Restart policy.
        volumes: Volume mount strings.
        devices: Device paths passed through to the container.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    image: str = Field(description="Container image reference")
    container_name: str = Field(description="Container name")
    environment: dict[str, str] = Field(default_factory=dict, description="Environment variables")
    cap_add: list[str] = Field(default_factory=list, description="Capability grants")
    privileged: bool = Field(default=False, description="Run privileged")
    ports: list[str] = Field(default_factory=list, description="Port bindings (compose short syntax)")
    stop_grace_period: str | None = Field(default=None, description="Stop grace period (e.g. '120s')")
    restart: str | None = Field(default=None, description="Restart policy")
    volumes: list[str] = Field(default_factory=list, description="Volume mounts")
    devices: list[str] = Field(default_factory=list, description="Device paths")

    @field_validator("environment", mode="before")
    @classmethod
    def coerce_environment(cls, value: Any) -> Any:
        """Accept the `KEY=VAL` list form and unquoted scalar values."""
        if value is None:
            return {}
        if isinstance(value, list):
            pairs = (str(item).partition("=") for item in value)
            return {key: val for key, _, val in pairs}
        if isinstance(value, dict):
            return {str(key): _scalar_text(val) for key, val in value.items()}
        return value

    @field_validator("cap_add", "ports", "volumes", "devices", mode="before")
    @classmethod
    def coerce_entries(cls, value: Any) -> Any:
        """Unquoted entries such as `- 8006` load as numbers."""
        if value is None:
            return []
        if isinstance(value, list):
            return [item if isinstance(item, str) else _scalar_text(item) for item in value]
        return value

    def port_bindings(self) -> list[PortBinding]:
        """Parse every port entry.

        Raises:
            PortBindingError: If any entry is malformed.
        """
        return [PortBinding.parse(entry) for entry in self.ports]

    def with_ports(self, ports: list[str]) -> ComposeService:
        return self.model_copy(update={"ports": list(ports)})

    def with_environment(self, **updates: str) -> ComposeService:
        return self.model_copy(update={"environment": {**self.environment, **updates}})

    def with_volumes(self, volumes: list[str]) -> ComposeService:
        return self.model_copy(update={"volumes": list(volumes)})


class ComposeSpec(BaseModel):
    """The multi-service specification document.

    Attributes:
        name: Project name.
        volumes: Named volumes (value may be None for defaults).
        networks: Named networks.
        services: Services keyed by name; the guest runs in ``windows``.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str = Field(description="Compose project name")
    volumes: dict[str, Any] = Field(default_factory=dict, description="Named volumes")
    networks: dict[str, Any] = Field(default_factory=dict, description="Named networks")
    services: dict[str, ComposeService] = Field(description="Services keyed by name")

    @property
    def windows(self) -> ComposeService:
        """The guest service.

        Raises:
            KeyError: If the specification has no ``windows`` service.
        """
        return self.services[WINDOWS_SERVICE]

    def with_service(self, service: ComposeService, name: str = WINDOWS_SERVICE) -> ComposeSpec:
        return self.model_copy(update={"services": {**self.services, name: service}})

    def with_ports(self, ports: list[str]) -> ComposeSpec:
        return self.with_service(self.windows.with_ports(ports))

    def to_document(self) -> dict[str, Any]:
        """Plain dict in file order, ``None`` fields dropped from services."""
        document = self.model_dump(mode="json", exclude={"services"})
        document["services"] = {
            name: service.model_dump(mode="json", exclude_none=True) for name, service in self.services.items()
        }
        return document


__all__ = [
    "WINDOWS_SERVICE",
    "ComposeService",
    "ComposeSpec",
]
