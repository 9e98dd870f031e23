"""Exception types raised by hotreload.

Only ConfigError escapes to callers of setup(). The others are raised at
component seams and absorbed by the watch set manager or the driver.
"""

from __future__ import annotations


class HotReloadError(Exception):
    """Base class for hotreload errors."""


class ConfigError(HotReloadError):
    """Raised when configuration options are malformed.

    Always raised synchronously at setup time, before any watch exists.
    """


class DetectorError(HotReloadError):
    """Raised when a change detector cannot be created or started.

    Attributes:
        failure_class: Short identifier used to report each kind of failure
            at most once per session (e.g. "ENOSPC", "unsupported").
    """

    def __init__(self, message: str, failure_class: str = "unknown") -> None:
        super().__init__(message)
        self.failure_class = failure_class


class StaleHandleError(HotReloadError):
    """Raised by a host when a file handle is no longer valid."""
