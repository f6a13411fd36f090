"""TOML-backed settings for fixture_tree.

Settings are resolved with the precedence overrides > environment > TOML
file > defaults. The pytest plugin feeds command line and ini values in as
overrides and installs the result with :func:`use_settings`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

try:  # Python >= 3.11 ships ``tomllib`` in the stdlib.
    import tomllib
except ModuleNotFoundError as exc:  # pragma: no cover - defensive guard
    raise RuntimeError("Python 3.11+ is required for tomllib support.") from exc

from fixture_tree.errors import FixtureTreeConfigError

__all__ = [
    "CONFIG_ENV",
    "ENV_PREFIX",
    "TomlConfigError",
    "TreeSettings",
    "SettingsOverrides",
    "load_toml",
    "merge_defaults",
    "load_settings",
    "active_settings",
    "use_settings",
]

CONFIG_ENV = "FIXTURE_TREE_CONFIG"
ENV_PREFIX = "FIXTURE_TREE_"

_DEFAULT_TEMP_PREFIX = "fixture_tree"
_DEFAULT_ROOT_NAME = "fixture"
_DEFAULT_LOG_LEVEL = "WARNING"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


class TomlConfigError(FixtureTreeConfigError):
    """Raised when TOML config IO or validation fails."""


@dataclass(frozen=True)
class TreeSettings:
    """Resolved settings used when allocating ephemeral trees."""

    temp_prefix: str = _DEFAULT_TEMP_PREFIX
    root_name: str = _DEFAULT_ROOT_NAME
    base_dir: Optional[Path] = None
    log_level: str = _DEFAULT_LOG_LEVEL
    log_dir: Optional[Path] = None
    verbose: bool = False


@dataclass(frozen=True)
class SettingsOverrides:
    """Explicit values (e.g. from pytest options) applied over file/env."""

    temp_prefix: Optional[str] = None
    root_name: Optional[str] = None
    base_dir: Optional[Path] = None
    log_level: Optional[str] = None
    log_dir: Optional[Path] = None
    verbose: Optional[bool] = None


_active = TreeSettings()


def active_settings() -> TreeSettings:
    """Return the process-wide settings used by ``FixtureTree.create``."""

    return _active


def use_settings(settings: TreeSettings) -> TreeSettings:
    """Install ``settings`` process-wide and return the previous value."""

    global _active
    previous = _active
    _active = settings
    return previous


def load_toml(path: Path) -> Mapping[str, Any]:
    """Parse the TOML document at ``path``.

    Missing files and syntax errors are reported as :class:`TomlConfigError`.
    """

    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise TomlConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise TomlConfigError(f"Failed to parse config TOML: {exc}") from exc


def merge_defaults(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    """Recursively copy ``override`` into ``base``, rejecting unknown keys."""

    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise TomlConfigError(f"Unknown configuration key '{dotted}'.")
        current = base[key]
        if isinstance(current, MutableMapping):
            if not isinstance(value, Mapping):
                raise TomlConfigError(
                    "Expected table for '{0}', found {1}.".format(
                        dotted, type(value).__name__
                    )
                )
            merge_defaults(current, value, path=f"{dotted}.")
        else:
            base[key] = value


def load_settings(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[SettingsOverrides] = None,
    env: Optional[Mapping[str, str]] = None,
) -> TreeSettings:
    """Resolve :class:`TreeSettings` from overrides, env, TOML and defaults."""

    overrides = overrides or SettingsOverrides()
    env_map = os.environ if env is None else env

    table = _default_table()
    requested = _resolve_config_path(config_path, env_map)
    config_dir: Optional[Path] = None
    if requested is not None:
        merge_defaults(table, load_toml(requested))
        config_dir = requested.parent

    tree_opts = table["tree"]
    log_opts = table["logging"]

    return TreeSettings(
        temp_prefix=_require_text(
            "tree.temp_prefix",
            _pick_first(
                overrides.temp_prefix,
                _env_string(env_map, "TEMP_PREFIX"),
                tree_opts["temp_prefix"],
            ),
        ),
        root_name=_validate_root_name(
            _pick_first(
                overrides.root_name,
                _env_string(env_map, "ROOT_NAME"),
                tree_opts["root_name"],
            )
        ),
        base_dir=_pick_first(
            _absolute(overrides.base_dir),
            _absolute(_env_path(env_map, "BASE_DIR")),
            _file_path("tree.base_dir", tree_opts["base_dir"], config_dir),
        ),
        log_level=_require_text(
            "logging.level",
            _pick_first(
                overrides.log_level,
                _env_string(env_map, "LOG_LEVEL"),
                log_opts["level"],
            ),
        ).upper(),
        log_dir=_pick_first(
            _absolute(overrides.log_dir),
            _absolute(_env_path(env_map, "LOG_DIR")),
            _file_path("logging.dir", log_opts["dir"], config_dir),
        ),
        verbose=_coerce_bool(
            "logging.verbose",
            _pick_first(
                overrides.verbose,
                _env_string(env_map, "VERBOSE"),
                log_opts["verbose"],
            ),
        ),
    )


def _default_table() -> MutableMapping[str, MutableMapping[str, Any]]:
    defaults = TreeSettings()
    return {
        "tree": {
            "temp_prefix": defaults.temp_prefix,
            "root_name": defaults.root_name,
            "base_dir": None,
        },
        "logging": {
            "level": defaults.log_level,
            "dir": None,
            "verbose": defaults.verbose,
        },
    }


def _resolve_config_path(
    config_path: Optional[Path], env_map: Mapping[str, str]
) -> Optional[Path]:
    if config_path is not None:
        return Path(config_path).expanduser()
    candidate = env_map.get(CONFIG_ENV, "").strip()
    if candidate:
        return Path(candidate).expanduser()
    return None


def _require_text(key: str, value: object) -> str:
    if not isinstance(value, str):
        raise FixtureTreeConfigError(f"{key} must be a string.")
    text = value.strip()
    if not text:
        raise FixtureTreeConfigError(f"{key} must be a non-empty string.")
    return text


def _validate_root_name(value: object) -> str:
    name = _require_text("tree.root_name", value)
    if name in {".", ".."} or len(Path(name).parts) != 1 or "/" in name:
        raise FixtureTreeConfigError(
            f"tree.root_name must be a single path segment, got '{name}'."
        )
    return name


def _coerce_bool(key: str, value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
    raise FixtureTreeConfigError(f"{key} must be a boolean, got {value!r}.")


def _file_path(
    key: str, value: object, config_dir: Optional[Path]
) -> Optional[Path]:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise FixtureTreeConfigError(
            f"{key} must be a non-empty string when provided."
        )
    path = Path(value.strip()).expanduser()
    if not path.is_absolute() and config_dir is not None:
        path = config_dir / path
    return path.absolute()


def _absolute(path: Optional[Path]) -> Optional[Path]:
    if path is None:
        return None
    return Path(path).expanduser().absolute()


def _env_path(env_map: Mapping[str, str], key: str) -> Optional[Path]:
    raw = _env_string(env_map, key)
    if raw is None:
        return None
    return Path(raw)


def _env_string(env_map: Mapping[str, str], key: str) -> Optional[str]:
    raw = env_map.get(f"{ENV_PREFIX}{key}")
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _pick_first(*candidates: Any) -> Any:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None
