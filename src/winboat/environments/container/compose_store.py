"""On-disk storage of the service specification.

The compose file has a single writer. Every write holds a lock file next to
the target and replaces the file atomically; a replacement first copies the
previous file into the backup directory under a timestamped name.
"""

from __future__ import annotations

import shutil
import time
from pathlib import Path

import yaml
from pydantic import ValidationError

from winboat.core.exceptions import SpecificationError
from winboat.core.utils import atomic_write_text, guarded_file_lock, logger
from winboat.types.compose import ComposeSpec


def dump_compose(spec: ComposeSpec) -> str:
    """Serialize ``spec`` to YAML, keeping the document's key order."""
    return yaml.safe_dump(spec.to_document(), sort_keys=False, default_flow_style=False)


def load_compose(text: str) -> ComposeSpec:
    """Parse YAML text into a specification.

    Raises:
        SpecificationError: If the text is not valid YAML or not a valid specification.
    """
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SpecificationError(f"Compose file is not valid YAML: {e}") from e
    if not isinstance(document, dict):
        raise SpecificationError("Compose file does not contain a mapping")
    try:
        return ComposeSpec.model_validate(document)
    except ValidationError as e:
        raise SpecificationError(f"Compose file is not a valid specification: {e}") from e


class ComposeStore:
    """Read, write and back up one compose file.

    Args:
        path: The compose file.
        backup_dir: Directory receiving replaced files.
    """

    def __init__(self, path: Path, backup_dir: Path) -> None:
        self.path = path
        self.backup_dir = backup_dir

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> ComposeSpec:
        """Load the specification from disk.

        Raises:
            FileNotFoundError: If the compose file does not exist.
            SpecificationError: If the file cannot be parsed.
        """
        return load_compose(self.path.read_text(encoding="utf-8"))

    def write(self, spec: ComposeSpec) -> None:
        """Atomically write ``spec`` to the compose file."""
        content = dump_compose(spec)
        with guarded_file_lock(self.path):
            atomic_write_text(self.path, content)
        logger.info(f"Wrote compose file {self.path}")

    def backup(self) -> Path | None:
        """Copy the current compose file into the backup directory.

        Returns:
            Path of the backup, or None if there was no file to back up.
        """
        with guarded_file_lock(self.path):
            return self._backup_unlocked()

    def replace(self, spec: ComposeSpec) -> Path | None:
        """Back up the current file and write ``spec`` in its place.

        Returns:
            Path of the backup, or None if there was no previous file.
        """
        content = dump_compose(spec)
        with guarded_file_lock(self.path):
            backup_path = self._backup_unlocked()
            atomic_write_text(self.path, content)
        logger.info(f"Replaced compose file {self.path}")
        return backup_path

    def _backup_unlocked(self) -> Path | None:
        if not self.path.exists():
            return None
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = int(time.time() * 1000)
        backup_path = self.backup_dir / f"{stamp}-{self.path.name}"
        counter = 0
        while backup_path.exists():
            counter += 1
            backup_path = self.backup_dir / f"{stamp}-{counter}-{self.path.name}"
        shutil.copy2(self.path, backup_path)
        logger.info(f"Backed up compose file to {backup_path}")
        return backup_path


__all__ = [
    "ComposeStore",
    "dump_compose",
    "load_compose",
]
