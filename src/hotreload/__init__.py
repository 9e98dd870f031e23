"""hotreload: reload editor buffers when their files change on disk."""

__version__ = "0.1.0"

from hotreload.config import HotReloadConfig, Scope, load_config
from hotreload.errors import ConfigError, DetectorError, HotReloadError, StaleHandleError
from hotreload.host import Handle, Host, HostEvent, NotificationLevel, TrackedFile
from hotreload.watching import ReconciliationDriver, WatchSetManager, setup

__all__ = [
    # Entry points
    "setup",
    "ReconciliationDriver",
    "WatchSetManager",
    # Config
    "HotReloadConfig",
    "Scope",
    "load_config",
    # Host boundary
    "Handle",
    "Host",
    "HostEvent",
    "NotificationLevel",
    "TrackedFile",
    # Errors
    "HotReloadError",
    "ConfigError",
    "DetectorError",
    "StaleHandleError",
]
