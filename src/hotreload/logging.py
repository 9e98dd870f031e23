"""Logging for hotreload.

hotreload usually runs inside an editor that owns the terminal, so nothing is
written to stderr unless it is a real console. Diagnostics go to a log file
named by ``logging.file`` or the HOTRELOAD_LOG environment variable.

Levels, quietest first: error(0), warning(1), info(2), verbose(3), trace(4).
TRACE shows every native event; VERBOSE shows watch set changes.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hotreload.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("hotreload")

_initialized = False

_NAMED_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "verbose": VERBOSE,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# Index is the verbosity count
_VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)


class _LowercaseLevelFormatter(logging.Formatter):
    """'12:00:01 warning: message' rather than 'WARNING'."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def level_from_verbosity(verbose: int) -> int:
    """Translate a verbosity count (0-4) into a logging level."""
    if verbose >= len(_VERBOSITY_LEVELS):
        return TRACE
    return _VERBOSITY_LEVELS[max(verbose, 0)]


def _resolve_level(config: LoggingConfig | None) -> int:
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return level_from_verbosity(config.verbose)
    if config.level:
        return _NAMED_LEVELS.get(config.level.lower(), logging.INFO)
    return logging.INFO


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach handlers to the hotreload logger.

    Only the first call has any effect, so an editor can call setup() for
    several sessions without duplicating handlers.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = _resolve_level(config)
    logger.setLevel(level)
    formatter = _LowercaseLevelFormatter(
        "%(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S"
    )

    target = (config.file if config is not None else None) or os.environ.get("HOTRELOAD_LOG")
    console = sys.stderr.isatty()

    if target:
        try:
            handler: logging.Handler = logging.FileHandler(
                os.path.expanduser(target), encoding="utf-8"
            )
        except OSError as e:
            if not console:
                return
            print(f"[hotreload] Cannot open log file {target}: {e}", file=sys.stderr)
            handler = logging.StreamHandler(sys.stderr)
    elif console:
        handler = logging.StreamHandler(sys.stderr)
    else:
        return

    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """The hotreload logger, or a child of it (e.g. "watching.driver")."""
    return logger.getChild(name) if name else logger
