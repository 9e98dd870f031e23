"""Where hotreload looks for YAML config files.

Lowest to highest priority:

    system   /etc/hotreload/config.yaml        %PROGRAMDATA%\\hotreload\\config.yaml
    user     $XDG_CONFIG_HOME/hotreload/...    %APPDATA%\\hotreload\\config.yaml
             (~/.config/hotreload/config.yaml)
    project  <project root>/.hotreload.yaml

None of the files need to exist.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

APP_DIR = "hotreload"
CONFIG_FILENAME = "config.yaml"
PROJECT_FILENAME = ".hotreload.yaml"


def _in_env_dir(var: str) -> Path | None:
    base = os.environ.get(var)
    return Path(base) / APP_DIR / CONFIG_FILENAME if base else None


def get_system_config_path() -> Path | None:
    """Machine-wide config file, or None if it cannot be located."""
    if sys.platform == "win32":
        return _in_env_dir("PROGRAMDATA")
    return Path("/etc") / APP_DIR / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    """Per-user config file, or None if it cannot be located."""
    if sys.platform == "win32":
        return _in_env_dir("APPDATA")
    return _in_env_dir("XDG_CONFIG_HOME") or Path.home() / ".config" / APP_DIR / CONFIG_FILENAME


def get_project_config_path(project_root: str) -> Path:
    return Path(project_root) / PROJECT_FILENAME


def get_config_paths(project_root: str | None = None) -> list[Path]:
    """Candidate config files, lowest priority first."""
    candidates = [get_system_config_path(), get_user_config_path()]
    if project_root:
        candidates.append(get_project_config_path(project_root))
    return [path for path in candidates if path is not None]
