"""File helpers shared by the on-disk stores.

Writes to the compose file and the config file are serialized with a lock
file next to the target, and land atomically through a temporary sibling.
"""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from filelock import FileLock

if TYPE_CHECKING:
    from collections.abc import Iterator


def lock_path_for(target_path: Path) -> Path:
    """Return the lock-file path used to guard writes to ``target_path``.

    Example:
        >>> lock_path_for(Path("a/b/docker-compose.yml"))
        PosixPath('a/b/docker-compose.yml.lock')
    """
    return target_path.with_suffix(f"{target_path.suffix}.lock")


@contextmanager
def guarded_file_lock(target_path: Path, timeout_seconds: float = 30.0) -> Iterator[None]:
    """Acquire a lock dedicated to one target file.

    Args:
        target_path: File path whose writes should be serialized.
        timeout_seconds: Max time to wait for lock acquisition.

    Raises:
        filelock.Timeout: If the lock cannot be acquired in time.
    """
    lock_path = lock_path_for(target_path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_path), timeout=timeout_seconds)
    with lock:
        yield


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` so readers see the old or the new file, never a partial one."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


__all__ = [
    "atomic_write_text",
    "guarded_file_lock",
    "lock_path_for",
]
