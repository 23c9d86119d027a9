"""Container management for the WinBoat guest."""

from .compose_store import ComposeStore, dump_compose, load_compose
from .defaults import (
    CONTAINER_NAME,
    DEFAULT_HOST_QMP_PORT,
    GUEST_API_PORT,
    GUEST_NOVNC_PORT,
    GUEST_QMP_PORT,
    GUEST_RDP_PORT,
    get_default_compose,
)
from .ports import (
    NegotiatedPortTable,
    PortConfiguration,
    PortNegotiator,
    is_port_open,
    port_configuration_from_spec,
    port_table_from_bindings,
)
from .backend import CONTAINER_BACKENDS, ContainerBackend, DockerBackend, PodmanBackend, create_backend  # noqa: I001

__all__ = [
    "CONTAINER_BACKENDS",
    "CONTAINER_NAME",
    "DEFAULT_HOST_QMP_PORT",
    "GUEST_API_PORT",
    "GUEST_NOVNC_PORT",
    "GUEST_QMP_PORT",
    "GUEST_RDP_PORT",
    "ComposeStore",
    "ContainerBackend",
    "DockerBackend",
    "NegotiatedPortTable",
    "PodmanBackend",
    "PortConfiguration",
    "PortNegotiator",
    "create_backend",
    "dump_compose",
    "get_default_compose",
    "is_port_open",
    "load_compose",
    "port_configuration_from_spec",
    "port_table_from_bindings",
]
