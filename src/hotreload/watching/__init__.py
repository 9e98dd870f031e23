"""Watch-set reconciliation and change detection.

Three layers, leaves first:
- detector: native (watchdog) per-file detectors and the polling timer
- manager: the handle -> Watch set and its reconciliation
- driver: host events, target-set computation and the reload policy
"""

from hotreload.watching.detector import (
    ChangeDetector,
    DetectorCallback,
    DetectorFactory,
    FailureReporter,
    FileSnapshot,
    NativeBackend,
    NativeDetector,
    PollingTimer,
    native_factory,
)
from hotreload.watching.driver import RECOMPUTE_EVENTS, ReconciliationDriver, setup
from hotreload.watching.manager import (
    ReconcileResult,
    Watch,
    WatchSetManager,
    WatchState,
)

__all__ = [
    # Detectors
    "ChangeDetector",
    "DetectorCallback",
    "DetectorFactory",
    "FailureReporter",
    "FileSnapshot",
    "NativeBackend",
    "NativeDetector",
    "PollingTimer",
    "native_factory",
    # Manager
    "ReconcileResult",
    "Watch",
    "WatchSetManager",
    "WatchState",
    # Driver
    "RECOMPUTE_EVENTS",
    "ReconciliationDriver",
    "setup",
]
