"""JSON-backed store for ``AppConfig``.

The file is created with defaults on first read. Keys missing from an older
file are filled from the defaults and the merged document is written back; a
file that cannot be parsed is left untouched and the defaults are used.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from winboat.core.utils import atomic_write_text, guarded_file_lock, logger
from winboat.types.config import AppConfig


def _dump(config: AppConfig) -> str:
    return json.dumps(config.model_dump(mode="json", by_alias=True), indent=4) + "\n"


class ConfigStore:
    """Read and write the persisted application configuration.

    Args:
        path: Location of ``winboat.config.json``.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        """Current configuration, read from disk on first access."""
        if self._config is None:
            self._config = self.read()
        return self._config

    def read(self) -> AppConfig:
        """Load the configuration from disk.

        Returns:
            The stored configuration merged over the defaults, or the defaults
            when the file is missing or unreadable.
        """
        if not self.path.exists():
            config = AppConfig()
            self._write(config)
            logger.info(f"Created default config at {self.path}")
            return config

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("config root is not an object")
            config = AppConfig.model_validate(raw)
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Config file {self.path} is unreadable, using defaults: {e}")
            return AppConfig()

        keys = [field.alias or name for name, field in AppConfig.model_fields.items()]
        missing = [key for key in keys if key not in raw]
        if missing:
            logger.info(f"Added missing config keys: {', '.join(missing)}")
            self._write(config)
        return config

    def get(self, key: str) -> Any:
        """Return one setting by field name or camelCase key.

        Raises:
            KeyError: If the key is unknown.
        """
        name = self._field_name(key)
        return getattr(self.config, name)

    def set(self, key: str, value: Any) -> AppConfig:
        """Validate and persist one setting.

        Raises:
            KeyError: If the key is unknown.
            pydantic.ValidationError: If the value is invalid for the key.
        """
        return self.update(**{self._field_name(key): value})

    def update(self, **changes: Any) -> AppConfig:
        """Validate and persist several settings at once."""
        data = self.config.model_dump()
        data.update(changes)
        config = AppConfig.model_validate(data)
        self._write(config)
        self._config = config
        return config

    def reload(self) -> AppConfig:
        self._config = self.read()
        return self._config

    def _write(self, config: AppConfig) -> None:
        with guarded_file_lock(self.path):
            atomic_write_text(self.path, _dump(config))

    @staticmethod
    def _field_name(key: str) -> str:
        for name, field in AppConfig.model_fields.items():
            if key in (name, field.alias):
                return name
        raise KeyError(f"Unknown config key '{key}'")


__all__ = ["ConfigStore"]
