"""Application list shown to the user.

The list merges the apps reported by the guest server, a few built-in entries
and the user's custom apps from the configuration. Launch counts are kept per
app name in ``appUsage.json`` next to the configuration.
"""

from __future__ import annotations

import json
from pathlib import Path

from winboat.core.config_store import ConfigStore
from winboat.core.utils import atomic_write_text, guarded_file_lock, logger
from winboat.environments.guest_client import GuestClientProtocol
from winboat.types.guest import GuestApp

INTERNAL_SOURCE = "internal"
CUSTOM_SOURCE = "custom"

WINDOWS_DESKTOP_COMMAND = "WINDOWS_DESKTOP"
NOVNC_COMMAND = "NOVNC_COMMAND"

PRESET_APPS: tuple[GuestApp, ...] = (
    GuestApp(name="⚙️ Windows Desktop", path=WINDOWS_DESKTOP_COMMAND, source=INTERNAL_SOURCE),
    GuestApp(name="⚙️ Windows Explorer", path="%windir%\\explorer.exe", source=INTERNAL_SOURCE),
    GuestApp(name="🖥️ Browser Display", path=NOVNC_COMMAND, source=INTERNAL_SOURCE),
)


def _load_usage(path: Path) -> dict[str, int]:
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error(f"App usage file {path} is unreadable, starting from zero: {e}")
        return {}
    if not isinstance(raw, dict):
        logger.error(f"App usage file {path} does not contain an object, starting from zero")
        return {}
    return {str(name): int(count) for name, count in raw.items() if isinstance(count, int)}


class AppManager:
    """Cache of launchable apps with persisted usage counts.

    Args:
        config_store: Configuration holding the ``customApps`` entries.
        usage_file: JSON object mapping app names to launch counts.
    """

    def __init__(self, config_store: ConfigStore, usage_file: Path) -> None:
        self.config_store = config_store
        self.usage_file = usage_file
        self.usage = _load_usage(usage_file)
        self.apps: list[GuestApp] = []
        self._loaded = False

    def _custom_apps(self) -> list[GuestApp]:
        return [GuestApp.model_validate(entry) for entry in self.config_store.config.custom_apps]

    def _with_usage(self, app: GuestApp) -> GuestApp:
        return app.model_copy(update={"usage": self.usage.get(app.name, 0)})

    async def get_apps(self, client: GuestClientProtocol, refresh: bool = False) -> list[GuestApp]:
        """Return the cached app list, fetching it from the guest on first use.

        Raises:
            GuestApiError: If the guest app list cannot be fetched.
        """
        if self._loaded and not refresh:
            return self.apps

        guest_apps = await client.apps()
        merged = [*guest_apps, *PRESET_APPS, *self._custom_apps()]
        self.apps = [self._with_usage(app) for app in merged]
        self._loaded = True
        logger.info(f"App cache: {len(guest_apps)} guest apps, {len(self.apps) - len(guest_apps)} other")
        return self.apps

    def increment_usage(self, name: str) -> int:
        """Count one launch of ``name`` and persist the counts."""
        count = self.usage.get(name, 0) + 1
        self.usage[name] = count
        self.apps = [app.model_copy(update={"usage": count}) if app.name == name else app for app in self.apps]
        self.write_usage()
        return count

    def write_usage(self) -> None:
        content = json.dumps(self.usage, ensure_ascii=False)
        with guarded_file_lock(self.usage_file):
            atomic_write_text(self.usage_file, content)

    def _save_custom_apps(self, apps: list[GuestApp]) -> None:
        entries = [app.model_dump(mode="json", by_alias=True, exclude={"usage"}) for app in apps]
        self.config_store.update(custom_apps=entries)

    def add_custom_app(self, name: str, path: str, args: str = "", icon: str = "") -> GuestApp:
        """Add a user-defined app.

        Raises:
            ValueError: If an app with the same name is already listed.
        """
        if any(app.name == name for app in [*self.apps, *self._custom_apps()]):
            raise ValueError(f"An app named '{name}' already exists")

        app = GuestApp(name=name, path=path, args=args, icon=icon, source=CUSTOM_SOURCE)
        self._save_custom_apps([*self._custom_apps(), app])
        if self._loaded:
            self.apps.append(app)
        self.usage[name] = 0
        self.write_usage()
        logger.info(f"Added custom app '{name}'")
        return app

    def update_custom_app(self, old_name: str, name: str, path: str, args: str = "", icon: str = "") -> GuestApp:
        """Replace the fields of custom app ``old_name``; its usage follows a rename.

        Raises:
            KeyError: If there is no custom app named ``old_name``.
        """
        custom = self._custom_apps()
        if not any(app.name == old_name for app in custom):
            raise KeyError(f"No custom app named '{old_name}'")

        changes = {"name": name, "path": path, "args": args, "icon": icon}
        self._save_custom_apps([app.model_copy(update=changes) if app.name == old_name else app for app in custom])
        if old_name != name:
            self.usage[name] = self.usage.pop(old_name, 0)
        self.apps = [app.model_copy(update=changes) if app.name == old_name else app for app in self.apps]
        self.write_usage()
        logger.info(f"Updated custom app '{old_name}'")
        return self._with_usage(GuestApp(**changes, source=CUSTOM_SOURCE))

    def remove_custom_app(self, name: str) -> None:
        """Remove custom app ``name`` together with its usage count."""
        self._save_custom_apps([app for app in self._custom_apps() if app.name != name])
        self.apps = [app for app in self.apps if app.name != name]
        self.usage.pop(name, None)
        self.write_usage()
        logger.info(f"Removed custom app '{name}'")


__all__ = [
    "CUSTOM_SOURCE",
    "INTERNAL_SOURCE",
    "NOVNC_COMMAND",
    "PRESET_APPS",
    "WINDOWS_DESKTOP_COMMAND",
    "AppManager",
]
