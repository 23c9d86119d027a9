"""Port-mapping value types and their compose short-syntax codec.

The textual form follows the compose specification's short syntax for ports::

    [[host_ip:]host_port:]container_port[/protocol]

where either port may be a ``start-end`` range. Parsing accepts every partial
form; serialization always emits the fully-qualified four-part form
(``address:host:container/protocol``) so that two mappings can be compared as
strings without false mismatches from formatting differences.
"""

from __future__ import annotations

import ipaddress
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from winboat.core.exceptions import PortBindingError

PORT_MIN = 1
PORT_MAX = 65535
DEFAULT_HOST_ADDRESS = "0.0.0.0"
DEFAULT_PROTOCOL = "tcp"

PortProtocol = Literal["tcp", "udp"]
SUPPORTED_PROTOCOLS: tuple[str, ...] = ("tcp", "udp")


def _validate_port_number(value: int) -> int:
    if not PORT_MIN <= value <= PORT_MAX:
        raise ValueError(f"Port {value} is outside the valid range {PORT_MIN}-{PORT_MAX}")
    return value


class PortRange(BaseModel):
    """Inclusive range of ports, textual form ``start-end``.

    Attributes:
        start: First port of the range.
        end: Last port of the range (inclusive).
    """

    model_config = ConfigDict(frozen=True)

    start: int = Field(description="First port of the range")
    end: int = Field(description="Last port of the range (inclusive)")

    @model_validator(mode="after")
    def _check_bounds(self) -> PortRange:
        _validate_port_number(self.start)
        _validate_port_number(self.end)
        if self.start > self.end:
            raise ValueError(f"Invalid port range {self.start}-{self.end}: start is greater than end")
        return self

    @classmethod
    def parse(cls, token: str) -> PortRange:
        """Parse a ``start-end`` token.

        Raises:
            PortBindingError: If the token is not a valid range.
        """
        start, sep, end = token.partition("-")
        if not sep:
            raise PortBindingError(f"Invalid port range '{token}': expected '<start>-<end>'")
        try:
            return cls(start=int(start), end=int(end))
        except (ValueError, ValidationError) as e:
            raise PortBindingError(f"Invalid port range '{token}': {e}") from e

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"

    def __len__(self) -> int:
        return self.end - self.start + 1


PortOrRange = int | PortRange


def parse_port_or_range(token: str) -> PortOrRange:
    """Parse a ``port`` or ``start-end`` token.

    Raises:
        PortBindingError: If the token is neither a valid port nor a valid range.
    """
    token = token.strip()
    if "-" in token:
        return PortRange.parse(token)
    try:
        return _validate_port_number(int(token))
    except ValueError as e:
        raise PortBindingError(f"Invalid port '{token}': {e}") from e


def _parse_host_address(raw: str) -> str:
    # Podman's extended syntax allows an empty address ("let the system pick")
    if raw == "":
        return ""
    address = raw
    if raw.startswith("[") or raw.endswith("]"):
        if not (raw.startswith("[") and raw.endswith("]")):
            raise PortBindingError(f"Invalid bind address '{raw}': unbalanced brackets")
        address = raw[1:-1]
    try:
        ipaddress.ip_address(address)
    except ValueError as e:
        raise PortBindingError(f"Invalid bind address '{raw}': not a valid IPv4 or IPv6 address") from e
    return address


class PortBinding(BaseModel):
    """One host to container port mapping.

    Attributes:
        host_address: Host address to bind. Empty string lets the runtime pick.
        host_port: Host port or range. None when the runtime assigns it.
        container_port: Container (guest) port or range.
        protocol: Transport protocol.
    """

    model_config = ConfigDict(frozen=True)

    host_address: str = Field(default=DEFAULT_HOST_ADDRESS, description="Host address to bind")
    host_port: PortOrRange | None = Field(description="Host port or range (None: runtime assigned)")
    container_port: PortOrRange = Field(description="Container port or range")
    protocol: PortProtocol = Field(default=DEFAULT_PROTOCOL, description="Transport protocol")

    @classmethod
    def parse(cls, entry: str) -> PortBinding:
        """Parse a compose short-syntax port entry.

        Args:
            entry: Format ``[[host_ip:]host_port:]container_port[/protocol]``.

        Returns:
            The parsed binding, with implicit defaults filled in.

        Raises:
            PortBindingError: On an unsupported protocol, an invalid address,
                or an invalid port token.

        Example:
            >>> PortBinding.parse("8006:8006").entry
            '0.0.0.0:8006:8006/tcp'
        """
        raw = entry.strip()
        if not raw:
            raise PortBindingError("Empty port entry")

        mapping, sep, protocol = raw.partition("/")
        if not sep:
            protocol = DEFAULT_PROTOCOL
        elif protocol not in SUPPORTED_PROTOCOLS:
            raise PortBindingError(f"Protocol '{protocol}' is not supported by the compose spec.")

        tokens = mapping.split(":")
        host_address = DEFAULT_HOST_ADDRESS
        if len(tokens) == 1:
            host_token = container_token = tokens[0]
        else:
            host_token, container_token = tokens[-2], tokens[-1]
            if len(tokens) >= 3:
                host_address = _parse_host_address(":".join(tokens[:-2]))

        if not container_token.strip():
            raise PortBindingError(f"Invalid port entry '{entry}': missing container port")

        host_port = parse_port_or_range(host_token) if host_token.strip() else None
        container_port = parse_port_or_range(container_token)

        return cls(
            host_address=host_address,
            host_port=host_port,
            container_port=container_port,
            protocol=protocol,  # type: ignore[arg-type]
        )

    @classmethod
    def from_ports(cls, host_port: int, guest_port: int, protocol: PortProtocol | None = None) -> PortBinding:
        """Create a wildcard-address binding from numeric ports."""
        return cls(host_port=host_port, container_port=guest_port, protocol=protocol or DEFAULT_PROTOCOL)

    @property
    def entry(self) -> str:
        """Canonical compose representation with every default made explicit."""
        address = self.host_address
        if ":" in address:
            address = f"[{address}]"
        host = "" if self.host_port is None else str(self.host_port)
        return f"{address}:{host}:{self.container_port}/{self.protocol}"

    @property
    def guest_port(self) -> int | None:
        """Container port as a single number, or None for a range."""
        return self.container_port if isinstance(self.container_port, int) else None

    def with_host_port(self, host_port: PortOrRange | None) -> PortBinding:
        return self.model_copy(update={"host_port": host_port})

    def with_protocol(self, protocol: PortProtocol) -> PortBinding:
        return self.model_copy(update={"protocol": protocol})

    def __str__(self) -> str:
        return self.entry


def port_distance(port1: int, port2: int) -> int:
    """Distance between two ports."""
    return abs(port1 - port2)


__all__ = [
    "DEFAULT_HOST_ADDRESS",
    "DEFAULT_PROTOCOL",
    "PORT_MAX",
    "PORT_MIN",
    "PortBinding",
    "PortOrRange",
    "PortProtocol",
    "PortRange",
    "parse_port_or_range",
    "port_distance",
]
