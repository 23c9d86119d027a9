"""Apply an installation's choices to a default specification."""

from __future__ import annotations

from winboat.core.utils import logger
from winboat.environments.container.defaults import BOOT_ISO_MOUNT, SHARED_MOUNT, STORAGE_MOUNT
from winboat.types.compose import ComposeSpec
from winboat.types.install import InstallConfiguration


def mount_target(volume: str) -> str | None:
    """Container path of a ``source:target[:options]`` volume string."""
    parts = volume.split(":")
    return parts[1] if len(parts) >= 2 else None


def configure_specification(spec: ComposeSpec, conf: InstallConfiguration) -> ComposeSpec:
    """Return ``spec`` with the guest resources, account and mounts of ``conf``.

    The storage mount is pointed at ``conf.install_folder`` (added when the
    template has none), a custom ISO is mounted at the boot image path, and
    the home folder share is dropped when sharing is disabled.
    """
    service = spec.windows.with_environment(
        RAM_SIZE=f"{conf.ram_gb}G",
        CPU_CORES=str(conf.cpu_cores),
        DISK_SIZE=f"{conf.disk_space_gb}G",
        VERSION=conf.windows_version,
        LANGUAGE=conf.windows_language,
        USERNAME=conf.username,
        PASSWORD=conf.password,
    )

    volumes = list(service.volumes)
    if conf.custom_iso_path is not None:
        volumes.append(f"{conf.custom_iso_path}:{BOOT_ISO_MOUNT}")

    storage_volume = f"{conf.install_folder}:{STORAGE_MOUNT}"
    storage_idx = next((i for i, vol in enumerate(volumes) if mount_target(vol) == STORAGE_MOUNT), None)
    if storage_idx is None:
        logger.warning(f"No {STORAGE_MOUNT} volume found in compose template, adding one")
        volumes.append(storage_volume)
    else:
        volumes[storage_idx] = storage_volume

    if not conf.share_home_folder:
        shared = [vol for vol in volumes if mount_target(vol) == SHARED_MOUNT]
        if shared:
            volumes = [vol for vol in volumes if mount_target(vol) != SHARED_MOUNT]
            logger.info("Removed home folder sharing as per user configuration")
        else:
            logger.info("No home folder sharing volume found, nothing to remove")

    return spec.with_service(service.with_volumes(volumes))


__all__ = [
    "configure_specification",
    "mount_target",
]
