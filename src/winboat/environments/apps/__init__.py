"""Launchable app list and usage counts."""

from .manager import CUSTOM_SOURCE, INTERNAL_SOURCE, PRESET_APPS, AppManager

__all__ = [
    "CUSTOM_SOURCE",
    "INTERNAL_SOURCE",
    "PRESET_APPS",
    "AppManager",
]
