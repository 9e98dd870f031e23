"""Configuration for hotreload.

Options are layered from YAML files (system, user, project), HOTRELOAD_*
environment variables and the explicit options passed to setup(), then
validated once into an immutable HotReloadConfig.

Example usage:
    from hotreload.config import load_config

    config = load_config(options={"interval": 500, "silent": False})
    print(config.polling, config.scope)
"""

from hotreload.config.loader import (
    dict_to_config,
    env_overrides,
    load_config,
    load_yaml_file,
)
from hotreload.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from hotreload.config.schema import HotReloadConfig, LoggingConfig, Scope

__all__ = [
    # Main API
    "HotReloadConfig",
    "load_config",
    "dict_to_config",
    # Schema types
    "LoggingConfig",
    "Scope",
    # Sources
    "env_overrides",
    "load_yaml_file",
    # Path utilities
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
