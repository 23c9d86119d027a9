"""Payload types returned by the guest server API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CpuMetrics(BaseModel):
    usage: float = 0
    frequency: float = 0


class UsageMetrics(BaseModel):
    used: float = 0
    total: float = 0
    percentage: float = 0


class Metrics(BaseModel):
    """Guest resource usage from ``GET /metrics``."""

    cpu: CpuMetrics = Field(default_factory=CpuMetrics)
    ram: UsageMetrics = Field(default_factory=UsageMetrics)
    disk: UsageMetrics = Field(default_factory=UsageMetrics)


class RdpStatus(BaseModel):
    """Payload of ``GET /rdp/status``."""

    model_config = ConfigDict(populate_by_name=True)

    rdp_connected: bool = Field(alias="rdpConnected")


class GuestServerVersion(BaseModel):
    """Payload of ``GET /version``."""

    model_config = ConfigDict(extra="allow")

    version: str


class GuestCredentials(BaseModel):
    """Guest account taken from the specification."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: str


class GuestApp(BaseModel):
    """One application entry from ``GET /apps``, consumed as-is."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(alias="Name")
    path: str = Field(alias="Path")
    args: str = Field(default="", alias="Args")
    icon: str = Field(default="", alias="Icon")
    source: str = Field(default="system", alias="Source")
    usage: int = Field(default=0, alias="Usage")


__all__ = [
    "CpuMetrics",
    "GuestApp",
    "GuestCredentials",
    "GuestServerVersion",
    "Metrics",
    "RdpStatus",
    "UsageMetrics",
]
