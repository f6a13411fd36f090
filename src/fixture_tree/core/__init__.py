"""Settings and logging helpers shared by fixture_tree modules."""

from __future__ import annotations

from .config import (
    TomlConfigError,
    TreeSettings,
    SettingsOverrides,
    active_settings,
    load_settings,
    load_toml,
    merge_defaults,
    use_settings,
)
from .logging import JsonLogFormatter, configure_logger, release_logger

__all__ = [
    "TomlConfigError",
    "TreeSettings",
    "SettingsOverrides",
    "active_settings",
    "load_settings",
    "load_toml",
    "merge_defaults",
    "use_settings",
    "JsonLogFormatter",
    "configure_logger",
    "release_logger",
]
