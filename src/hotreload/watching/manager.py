"""Watch set manager: converges live watches onto a target set of files.

The manager exclusively owns the handle -> Watch mapping. Callers request
reconcile(), stop() or stop_all(); nothing else mutates the mapping. All
methods, including the detector callbacks, run on the event loop thread.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from hotreload.host import Handle, TrackedFile
from hotreload.logging import VERBOSE, get_logger
from hotreload.watching.detector import (
    ChangeDetector,
    DetectorFactory,
    FailureReporter,
    FileSnapshot,
)

log = get_logger("watching.manager")

ChangeCallback = Callable[[TrackedFile], None]


class WatchState(Enum):
    """Lifecycle of a Watch."""

    PENDING = "pending"  # Created, detector not started yet
    ACTIVE = "active"  # Native detector running
    POLLED = "polled"  # Covered by the polling sweep
    FAILED = "failed"  # Detector failed; entry is being evicted


@dataclass
class Watch:
    """A live subscription to one tracked file's on-disk changes."""

    file: TrackedFile
    detector: ChangeDetector | None = None
    state: WatchState = WatchState.PENDING
    snapshot: FileSnapshot | None = None

    @property
    def path(self) -> Path:
        return self.file.path


@dataclass
class ReconcileResult:
    """What a reconcile() call changed."""

    started: list[Handle] = field(default_factory=list)
    stopped: list[Handle] = field(default_factory=list)
    failed: list[Handle] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.started or self.stopped)


class WatchSetManager:
    """Owns the watch set and performs create/destroy/no-op reconciliation.

    With a detector factory, each watch gets its own native detector. Without
    one (polling mode), watches only carry a FileSnapshot and sweep() is
    expected to be called periodically by a PollingTimer.

    Example:
        manager = WatchSetManager(on_change=driver.reload_if_unmodified,
                                  detector_factory=native_factory(backend))
        manager.reconcile({TrackedFile(1, Path("/src/a.py"))})
    """

    def __init__(
        self,
        on_change: ChangeCallback,
        detector_factory: DetectorFactory | None = None,
        *,
        is_valid: Callable[[Handle], bool] | None = None,
        reporter: FailureReporter | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            on_change: Called with a TrackedFile whenever it may have changed
                on disk, including right after it becomes watched.
            detector_factory: Creates native detectors; None selects polling.
            is_valid: Host validity check; invalid handles are evicted.
            reporter: Receives detector creation failures.
        """
        self._on_change = on_change
        self._factory = detector_factory
        self._is_valid = is_valid
        self._reporter = reporter
        self._watches: dict[Handle, Watch] = {}

    @property
    def polling(self) -> bool:
        return self._factory is None

    def __len__(self) -> int:
        return len(self._watches)

    def __contains__(self, handle: object) -> bool:
        return handle in self._watches

    def is_watched(self, handle: Handle) -> bool:
        return handle in self._watches

    def get(self, handle: Handle) -> Watch | None:
        return self._watches.get(handle)

    def watched(self) -> Iterator[TrackedFile]:
        """Tracked files currently watched."""
        return (watch.file for watch in list(self._watches.values()))

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    def reconcile(self, targets: Iterable[TrackedFile]) -> ReconcileResult:
        """Converge the watch set onto ``targets``.

        Stale watches are stopped before missing ones are started. Files that
        become watched are passed to on_change immediately, since they may
        have changed while unwatched. A failure on one file never aborts the
        rest.
        """
        wanted: dict[Handle, TrackedFile] = {}
        for file in targets:
            wanted[file.handle] = file

        result = ReconcileResult()

        for handle, watch in list(self._watches.items()):
            target = wanted.get(handle)
            if target is None or target.path != watch.path or not self._valid(handle):
                self._stop(handle)
                result.stopped.append(handle)

        newly_watched: list[TrackedFile] = []
        for handle, file in wanted.items():
            if handle in self._watches or not self._valid(handle):
                continue
            try:
                started = self._start(file)
            except Exception as e:
                result.failed.append(handle)
                if self._reporter is not None:
                    self._reporter.report(e, file.path)
                else:
                    log.warning("Cannot watch %s: %s", file.path, e)
                continue
            if started:
                result.started.append(handle)
                newly_watched.append(file)

        if result.changed:
            log.log(
                VERBOSE,
                "Reconciled: +%d -%d (%d watched)",
                len(result.started),
                len(result.stopped),
                len(self._watches),
            )

        for file in newly_watched:
            self._fire(file)

        return result

    def stop(self, handle: Handle) -> bool:
        """Stop and remove one watch. Returns False if it was not watched."""
        if handle not in self._watches:
            return False
        self._stop(handle)
        return True

    def stop_all(self) -> int:
        """Stop every watch. Returns how many were stopped."""
        handles = list(self._watches)
        for handle in handles:
            self._stop(handle)
        if handles:
            log.debug("Stopped %d watches", len(handles))
        return len(handles)

    def sweep(self) -> list[TrackedFile]:
        """Polling pass: report every watched file whose snapshot changed.

        Returns:
            The files passed to on_change during this sweep.
        """
        changed: list[TrackedFile] = []
        for handle, watch in list(self._watches.items()):
            if not self._valid(handle):
                self._stop(handle)
                continue
            try:
                current = FileSnapshot.take(watch.path)
            except OSError as e:
                log.warning("Error checking %s: %s", watch.path, e)
                continue
            if current == watch.snapshot:
                continue
            watch.snapshot = current
            if current.exists:
                changed.append(watch.file)

        for file in changed:
            self._fire(file)
        return changed

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _valid(self, handle: Handle) -> bool:
        if self._is_valid is None:
            return True
        try:
            return bool(self._is_valid(handle))
        except Exception as e:
            log.debug("Validity check failed for %s: %s", handle, e)
            return False

    def _start(self, file: TrackedFile) -> bool:
        """Create the watch for a file. Returns False if the path is not a file."""
        if self._factory is None:
            if not file.path.is_file():
                return False
            self._watches[file.handle] = Watch(
                file=file,
                state=WatchState.POLLED,
                snapshot=FileSnapshot.take(file.path),
            )
            return True

        handle = file.handle
        detector = self._factory(file.path, lambda error, _path: self._on_detector(handle, error))
        watch = Watch(file=file, detector=detector)
        if not detector.start():
            return False
        watch.state = WatchState.ACTIVE
        self._watches[handle] = watch
        log.log(VERBOSE, "Watching %s", file.path)
        return True

    def _stop(self, handle: Handle) -> None:
        watch = self._watches.pop(handle)
        if watch.detector is not None:
            try:
                watch.detector.stop()
            except Exception as e:
                log.warning("Error stopping watch on %s: %s", watch.path, e)
        log.log(VERBOSE, "Stopped watching %s", watch.path)

    def _on_detector(self, handle: Handle, error: BaseException | None) -> None:
        watch = self._watches.get(handle)
        if watch is None:
            return
        if error is not None:
            # The detector terminated itself; evict so the next reconcile recreates it
            watch.state = WatchState.FAILED
            log.debug("Watch on %s terminated: %s", watch.path, error)
            self._stop(handle)
            return
        self._fire(watch.file)

    def _fire(self, file: TrackedFile) -> None:
        try:
            self._on_change(file)
        except Exception as e:
            log.error("Error in change callback for %s: %s", file.path, e)
