"""Configuration schema dataclasses for hotreload.

Configuration is read once at setup and is immutable afterwards, so every
dataclass here is frozen.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Scope(Enum):
    """Which host files make up the target set.

    - VISIBLE: files shown in a visible view of the host
    - LOADED: every file the host has opened, visible or not
    """

    VISIBLE = "visible"
    LOADED = "loaded"


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    file: str | None = None  # Log file path
    verbose: int | None = None  # 0-4, takes precedence over level


@dataclass(frozen=True)
class HotReloadConfig:
    """Root configuration object.

    Example config.yaml:
        interval: 500      # poll every 500ms instead of native watching
        silent: true
        scope: loaded
        logging:
          level: debug
          file: ~/.cache/hotreload.log
    """

    interval: int | None = None  # Poll period in ms; None = event-driven only
    silent: bool = True  # Suppress user-visible notification on reload
    scope: Scope = Scope.VISIBLE
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def polling(self) -> bool:
        """True when change detection uses the polling sweep."""
        return self.interval is not None

    @property
    def interval_seconds(self) -> float | None:
        """Poll period in seconds, as asyncio expects it."""
        if self.interval is None:
            return None
        return self.interval / 1000.0
