"""Default specifications and well-known guest ports.

These defaults are the starting point of every installation; the installer
negotiates host ports and patches user choices into a copy of them.
"""

from __future__ import annotations

from winboat.types.compose import ComposeService, ComposeSpec
from winboat.types.container import ContainerRuntime

# Guest ports
GUEST_RDP_PORT = 3389
GUEST_NOVNC_PORT = 8006
GUEST_API_PORT = 7148
GUEST_QMP_PORT = 7149
DEFAULT_HOST_QMP_PORT = 8149

CONTAINER_NAME = "WinBoat"
WINDOWS_IMAGE = "ghcr.io/dockur/windows:5.07"

# Restart policies
RESTART_UNLESS_STOPPED = "unless-stopped"
RESTART_ON_FAILURE = "on-failure"
RESTART_ALWAYS = "always"
RESTART_NO = "no"

STORAGE_MOUNT = "/storage"
SHARED_MOUNT = "/shared"
BOOT_ISO_MOUNT = "/boot.iso"

_DEFAULT_ENVIRONMENT: dict[str, str] = {
    "VERSION": "11",
    "RAM_SIZE": "4G",
    "CPU_CORES": "4",
    "DISK_SIZE": "64G",
    "USERNAME": "MyWindowsUser",
    "PASSWORD": "MyWindowsPassword",
    "HOME": "${HOME}",
    "LANGUAGE": "English",
    "HOST_PORTS": f"{GUEST_QMP_PORT}",
    "ARGUMENTS": f"-qmp tcp:0.0.0.0:{GUEST_QMP_PORT},server,wait=off",
}

_DEFAULT_VOLUMES: list[str] = [
    f"data:{STORAGE_MOUNT}",
    f"${{HOME}}:{SHARED_MOUNT}",
    "/dev/bus/usb:/dev/bus/usb:rslave",  # QEMU dynamic USB passthrough
    "./oem:/oem",
]

_DEFAULT_DEVICES: list[str] = ["/dev/kvm", "/dev/net/tun", "/dev/bus/usb"]


def _docker_default() -> ComposeSpec:
    return ComposeSpec(
        name="winboat",
        volumes={"data": None},
        networks={},
        services={
            "windows": ComposeService(
                image=WINDOWS_IMAGE,
                container_name=CONTAINER_NAME,
                environment=dict(_DEFAULT_ENVIRONMENT),
                cap_add=["NET_ADMIN"],
                privileged=True,
                ports=[
                    f"{GUEST_NOVNC_PORT}:{GUEST_NOVNC_PORT}",  # VNC web interface
                    f"{GUEST_API_PORT}:{GUEST_API_PORT}",  # Guest server API
                    f"{DEFAULT_HOST_QMP_PORT}:{GUEST_QMP_PORT}",  # QEMU QMP
                    f"{GUEST_RDP_PORT}:{GUEST_RDP_PORT}/tcp",
                    f"{GUEST_RDP_PORT}:{GUEST_RDP_PORT}/udp",
                ],
                stop_grace_period="120s",
                restart=RESTART_ON_FAILURE,
                volumes=list(_DEFAULT_VOLUMES),
                devices=list(_DEFAULT_DEVICES),
            )
        },
    )


def _podman_default() -> ComposeSpec:
    # Empty host ports let podman assign them; the live table is read back after start
    return ComposeSpec(
        name="winboat",
        volumes={"data": None},
        networks={"podman": {"external": True}},
        services={
            "windows": ComposeService(
                image=WINDOWS_IMAGE,
                container_name=CONTAINER_NAME,
                environment=dict(_DEFAULT_ENVIRONMENT),
                cap_add=["NET_ADMIN"],
                privileged=True,
                ports=[
                    f"127.0.0.1::{GUEST_NOVNC_PORT}",
                    f"127.0.0.1::{GUEST_API_PORT}",
                    f"127.0.0.1::{GUEST_QMP_PORT}",
                    f"127.0.0.1::{GUEST_RDP_PORT}/tcp",
                    f"127.0.0.1::{GUEST_RDP_PORT}/udp",
                ],
                stop_grace_period="120s",
                restart=RESTART_ON_FAILURE,
                volumes=list(_DEFAULT_VOLUMES),
                devices=list(_DEFAULT_DEVICES),
            )
        },
    )


_DEFAULT_SPECS = {
    ContainerRuntime.DOCKER: _docker_default,
    ContainerRuntime.PODMAN: _podman_default,
}


def get_default_compose(runtime: ContainerRuntime) -> ComposeSpec:
    """Return a fresh default specification for the runtime.

    Raises:
        ValueError: If the runtime has no default specification.
    """
    try:
        factory = _DEFAULT_SPECS[runtime]
    except KeyError:
        raise ValueError(f"No default compose specification for runtime {runtime}") from None
    return factory()


__all__ = [
    "BOOT_ISO_MOUNT",
    "CONTAINER_NAME",
    "DEFAULT_HOST_QMP_PORT",
    "GUEST_API_PORT",
    "GUEST_NOVNC_PORT",
    "GUEST_QMP_PORT",
    "GUEST_RDP_PORT",
    "RESTART_ALWAYS",
    "RESTART_NO",
    "RESTART_ON_FAILURE",
    "RESTART_UNLESS_STOPPED",
    "SHARED_MOUNT",
    "STORAGE_MOUNT",
    "get_default_compose",
]
