"""Persisted application configuration."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .container import ContainerRuntime


class AppConfig(BaseModel):
    """User preferences persisted to ``winboat.config.json``.

    Keys are camelCase on disk. Unknown keys found on disk are kept so a newer
    file survives an older reader.
    """

    model_config = ConfigDict(extra="allow", alias_generator=to_camel, populate_by_name=True, validate_assignment=True)

    scale: int = Field(default=100, description="Remote app scale (%)")
    scale_desktop: int = Field(default=100, description="Remote desktop scale (%)")
    smartcard_enabled: bool = Field(default=False, description="Forward smartcards to the guest")
    rdp_monitoring_enabled: bool = Field(default=False, description="Poll the guest for RDP session status")
    experimental_features: bool = Field(default=False, description="Enable the QMP connection keeper")
    advanced_features: bool = Field(default=False, description="Show advanced settings")
    multi_monitor: int = Field(default=0, ge=0, le=2, description="0: off, 1: multimon, 2: span")
    disable_animations: bool = Field(default=False, description="Disable UI animations")
    container_runtime: ContainerRuntime = Field(default=ContainerRuntime.DOCKER, description="Container runtime")
    passed_through_devices: list[dict[str, Any]] = Field(default_factory=list, description="USB devices passed through")
    custom_apps: list[dict[str, Any]] = Field(default_factory=list, description="User-defined app entries")
    rdp_args: list[dict[str, Any]] = Field(default_factory=list, description="RDP argument overrides")

    @field_validator("container_runtime", mode="before")
    @classmethod
    def _normalize_runtime(cls, value: Any) -> Any:
        # Older files store the display name ("Docker")
        return value.lower() if isinstance(value, str) else value


__all__ = ["AppConfig"]
