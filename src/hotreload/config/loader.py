"""Configuration loading and validation.

Handles:
- YAML file parsing
- Environment variable overrides
- Strict conversion from dict to the typed HotReloadConfig dataclass

Any malformed value raises ConfigError. Nothing is coerced silently.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from hotreload.config.merge import merge_layers
from hotreload.config.paths import get_config_paths
from hotreload.config.schema import HotReloadConfig, LoggingConfig, Scope
from hotreload.errors import ConfigError

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("hotreload.config")

_KNOWN_KEYS = frozenset({"interval", "silent", "scope", "logging"})
_LOGGING_KEYS = frozenset({"level", "file", "verbose"})

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML config file.

    Missing or unreadable files contribute nothing. A file that exists but
    does not parse to a mapping is a setup error.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict if the file is absent.

    Raises:
        ConfigError: If the YAML is invalid or not a mapping.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config in {path} must be a mapping, got {type(data).__name__}")
    return data


def env_overrides() -> dict[str, Any]:
    """Build an options dict from HOTRELOAD_* environment variables."""
    overrides: dict[str, Any] = {}

    interval = os.environ.get("HOTRELOAD_INTERVAL")
    if interval and interval.strip().lower() == "off":
        overrides["interval"] = "off"
    elif interval:
        try:
            overrides["interval"] = int(interval)
        except ValueError as e:
            raise ConfigError(f"HOTRELOAD_INTERVAL must be an integer, got {interval!r}") from e

    silent = os.environ.get("HOTRELOAD_SILENT")
    if silent:
        overrides["silent"] = _parse_bool("HOTRELOAD_SILENT", silent)

    scope = os.environ.get("HOTRELOAD_SCOPE")
    if scope:
        overrides["scope"] = scope

    log_path = os.environ.get("HOTRELOAD_LOG")
    if log_path:
        overrides["logging"] = {"file": log_path}

    return overrides


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_STRINGS:
        return True
    if lowered in _FALSE_STRINGS:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _check_unknown(section: str, data: Mapping[str, Any], known: frozenset[str]) -> None:
    unknown = sorted(set(data) - known)
    if unknown:
        where = f" in '{section}'" if section else ""
        raise ConfigError(f"Unknown option(s){where}: {', '.join(unknown)}")


def _validate_interval(value: Any) -> int | None:
    # false (YAML `interval: off`) and "off" force event-driven detection,
    # overriding an interval set by a lower layer
    if value is None or value is False or value == "off":
        return None
    # bool is an int subclass; `interval: true` is a mistake, not 1ms
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'interval' must be a positive integer (ms), got {value!r}")
    if value <= 0:
        raise ConfigError(f"'interval' must be a positive integer (ms), got {value}")
    return value


def _validate_bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{name}' must be a boolean, got {value!r}")
    return value


def _validate_scope(value: Any) -> Scope:
    if isinstance(value, Scope):
        return value
    try:
        return Scope(value)
    except ValueError as e:
        choices = ", ".join(s.value for s in Scope)
        raise ConfigError(f"'scope' must be one of {choices}, got {value!r}") from e


def _validate_logging(value: Any) -> LoggingConfig:
    if value is None:
        return LoggingConfig()
    if isinstance(value, LoggingConfig):
        return value
    if not isinstance(value, Mapping):
        raise ConfigError(f"'logging' must be a mapping, got {value!r}")
    _check_unknown("logging", value, _LOGGING_KEYS)

    level = value.get("level")
    if level is not None and not isinstance(level, str):
        raise ConfigError(f"'logging.level' must be a string, got {level!r}")

    file = value.get("file")
    if file is not None and not isinstance(file, str):
        raise ConfigError(f"'logging.file' must be a string, got {file!r}")

    verbose = value.get("verbose")
    if verbose is not None and (isinstance(verbose, bool) or not isinstance(verbose, int)):
        raise ConfigError(f"'logging.verbose' must be an integer, got {verbose!r}")

    return LoggingConfig(level=level, file=file, verbose=verbose)


def dict_to_config(data: Mapping[str, Any]) -> HotReloadConfig:
    """Validate a merged options dict and build the typed config.

    Args:
        data: Merged configuration dictionary.

    Returns:
        Typed HotReloadConfig object.

    Raises:
        ConfigError: On unknown keys or malformed values.
    """
    if not isinstance(data, Mapping):
        raise ConfigError(f"Options must be a mapping, got {type(data).__name__}")
    _check_unknown("", data, _KNOWN_KEYS)

    return HotReloadConfig(
        interval=_validate_interval(data.get("interval")),
        silent=_validate_bool("silent", data.get("silent", True)),
        scope=_validate_scope(data.get("scope", Scope.VISIBLE.value)),
        logging=_validate_logging(data.get("logging")),
    )


def load_config(
    project_root: str | None = None,
    options: Mapping[str, Any] | None = None,
    *,
    config_file: Path | None = None,
    use_files: bool = True,
) -> HotReloadConfig:
    """Load, merge and validate configuration from all sources.

    Priority order (highest to lowest):
    1. Explicit options (e.g. passed to setup())
    2. Environment variables
    3. An explicit config file, then the project config
    4. User config, then system config

    Args:
        project_root: Project directory for project-level config.
        options: Explicit options, highest priority.
        config_file: Extra config file layered above the project config.
        use_files: Set False to skip config files entirely.

    Returns:
        Validated HotReloadConfig.

    Raises:
        ConfigError: If any layer is malformed.
    """
    if options is not None and not isinstance(options, Mapping):
        raise ConfigError(f"Options must be a mapping, got {type(options).__name__}")

    layers: list[dict[str, Any]] = []

    if use_files:
        paths = get_config_paths(project_root)
        if config_file is not None:
            paths.append(config_file)
        for path in paths:
            data = load_yaml_file(path)
            if data:
                _log.debug("Loaded config from %s", path)
                layers.append(data)

    layers.append(env_overrides())
    if options:
        layers.append(dict(options))

    return dict_to_config(merge_layers(*layers))
