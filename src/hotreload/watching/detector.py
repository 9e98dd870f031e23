"""Change detectors: native per-file notification and a shared polling timer.

Native detection uses a single watchdog Observer. Each watched file's parent
directory is scheduled once (non-recursive) and events are filtered down to
the exact paths that were registered. Events arrive on the observer thread
and are only ever posted onto the asyncio loop with call_soon_threadsafe;
detector state is touched on the loop thread alone.

Polling does not create per-file detectors at all. One PollingTimer task
calls a sweep function at a fixed interval, and the sweep compares
FileSnapshots of the currently watched files.
"""

from __future__ import annotations

import asyncio
import errno
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

from hotreload.errors import DetectorError
from hotreload.host import NotificationLevel
from hotreload.logging import TRACE, get_logger

log = get_logger("watching.detector")

# (error-or-None, changed path), always invoked on the loop thread
DetectorCallback = Callable[[BaseException | None, Path], None]

# Event types that mean "content may have changed"
_CHANGE_EVENTS = frozenset({"modified", "created", "closed"})

# One write arrives as a burst (modified, modified, closed); changes inside
# this window are delivered once
NATIVE_SETTLE_SECONDS = 0.05


@dataclass(frozen=True, slots=True)
class FileSnapshot:
    """On-disk state of a file, compared between polling sweeps."""

    mtime_ns: int | None
    size: int | None
    exists: bool

    @classmethod
    def take(cls, path: Path) -> FileSnapshot:
        try:
            stat = path.stat()
        except FileNotFoundError:
            return cls(mtime_ns=None, size=None, exists=False)
        return cls(mtime_ns=stat.st_mtime_ns, size=stat.st_size, exists=True)


class ChangeDetector(Protocol):
    """One observed path. Created by a DetectorFactory, owned by the manager."""

    path: Path

    @property
    def running(self) -> bool: ...

    def start(self) -> bool:
        """Begin observing. Returns False (and does nothing) if path is not a file.

        Raises:
            DetectorError: If the native primitive could not be set up.
        """
        ...

    def stop(self) -> None:
        """Stop observing. Idempotent."""
        ...


DetectorFactory = Callable[[Path, DetectorCallback], ChangeDetector]


def failure_class_of(exc: BaseException) -> str:
    """Short identifier for a detector failure, used for once-per-session reporting."""
    if isinstance(exc, DetectorError):
        return exc.failure_class
    if isinstance(exc, OSError) and exc.errno is not None:
        return errno.errorcode.get(exc.errno, str(exc.errno))
    return type(exc).__name__


class _DirectoryHandler(FileSystemEventHandler):
    """Dispatches events in one directory to the callbacks of registered files.

    Runs on the observer thread. The target map is guarded by a lock because
    the loop thread adds and removes targets while events are dispatched.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        super().__init__()
        self._loop = loop
        self._lock = threading.Lock()
        self._targets: dict[str, DetectorCallback] = {}

    def add_target(self, path: Path, callback: DetectorCallback) -> None:
        with self._lock:
            self._targets[str(path)] = callback

    def remove_target(self, path: Path) -> bool:
        """Remove a target. Returns True when no targets remain."""
        with self._lock:
            self._targets.pop(str(path), None)
            return not self._targets

    def _lookup(self, path: str) -> DetectorCallback | None:
        with self._lock:
            return self._targets.get(path)

    def _post(self, callback: DetectorCallback, error: BaseException | None, path: str) -> None:
        try:
            self._loop.call_soon_threadsafe(callback, error, Path(path))
        except RuntimeError:
            # Loop already closed during shutdown
            log.debug("Dropped event for %s: event loop closed", path)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return

        src = str(event.src_path)
        dest = str(getattr(event, "dest_path", "") or "")
        log.log(TRACE, "native event %s %s %s", event.event_type, src, dest)

        if event.event_type in _CHANGE_EVENTS:
            callback = self._lookup(src)
            if callback is not None:
                self._post(callback, None, src)
        elif event.event_type == "moved":
            # Atomic save: temp file renamed onto the watched path
            callback = self._lookup(dest) if dest else None
            if callback is not None:
                self._post(callback, None, dest)
            callback = self._lookup(src)
            if callback is not None:
                self._post(callback, DetectorError(f"{src} was moved away", "moved"), src)
        elif event.event_type == "deleted":
            callback = self._lookup(src)
            if callback is not None:
                self._post(callback, DetectorError(f"{src} was deleted", "deleted"), src)


@dataclass
class _DirectoryWatch:
    watch: ObservedWatch
    handler: _DirectoryHandler


class NativeBackend:
    """The native notification primitive: one watchdog Observer for all files.

    Directory schedules are shared and reference counted by the files
    registered in them. Only used from the loop thread.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        self._loop = loop
        self._observer_factory = observer_factory
        self._observer: BaseObserver | None = None
        self._dirs: dict[Path, _DirectoryWatch] = {}

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def running(self) -> bool:
        return self._observer is not None

    @property
    def directory_count(self) -> int:
        return len(self._dirs)

    def start(self) -> None:
        """Start the observer thread.

        Raises:
            DetectorError: If the platform observer cannot be started.
        """
        if self._observer is not None:
            return
        observer = self._observer_factory()
        try:
            observer.start()
        except (OSError, RuntimeError) as e:
            raise DetectorError(
                f"Native file watching unavailable: {e}", failure_class_of(e)
            ) from e
        self._observer = observer
        log.debug("Native observer started (%s)", type(observer).__name__)

    def add(self, path: Path, callback: DetectorCallback) -> None:
        """Register a file path.

        Raises:
            DetectorError: If the parent directory cannot be scheduled.
        """
        if self._observer is None:
            raise DetectorError("Native backend is not running", "stopped")

        directory = path.parent
        entry = self._dirs.get(directory)
        if entry is None:
            handler = _DirectoryHandler(self._loop)
            try:
                watch = self._observer.schedule(handler, str(directory), recursive=False)
            except OSError as e:
                raise DetectorError(
                    f"Cannot watch {directory}: {e}", failure_class_of(e)
                ) from e
            entry = _DirectoryWatch(watch=watch, handler=handler)
            self._dirs[directory] = entry
            log.log(TRACE, "Scheduled directory %s", directory)

        entry.handler.add_target(path, callback)

    def remove(self, path: Path) -> None:
        """Unregister a file path. Unknown paths are ignored."""
        directory = path.parent
        entry = self._dirs.get(directory)
        if entry is None:
            return
        if entry.handler.remove_target(path):
            del self._dirs[directory]
            if self._observer is not None:
                try:
                    self._observer.unschedule(entry.watch)
                except (KeyError, OSError) as e:
                    # Emitter already gone (directory deleted)
                    log.debug("Unschedule %s: %s", directory, e)
            log.log(TRACE, "Unscheduled directory %s", directory)

    def close(self) -> None:
        """Stop the observer thread and release every OS handle."""
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        self._dirs.clear()
        observer.unschedule_all()
        observer.stop()
        observer.join(timeout=5)
        log.debug("Native observer stopped")


class NativeDetector:
    """Event-driven detector for a single file.

    Change messages are coalesced: the callback runs once, ``settle`` seconds
    after the first message of a burst. A deletion or move away from the path
    terminates the detector immediately; the error is still passed to the
    callback so the owner can evict it.
    """

    def __init__(
        self,
        backend: NativeBackend,
        path: Path,
        callback: DetectorCallback,
        settle: float = NATIVE_SETTLE_SECONDS,
    ) -> None:
        self.path = path
        self._backend = backend
        self._callback = callback
        self._settle = settle
        self._pending: asyncio.TimerHandle | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        if self._running:
            return True
        if not self.path.is_file():
            return False
        self._backend.add(self.path, self._deliver)
        self._running = True
        return True

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._cancel_pending()
        self._backend.remove(self.path)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _deliver(self, error: BaseException | None, path: Path) -> None:
        # Messages posted before stop() may still arrive afterwards
        if not self._running:
            return
        if error is not None:
            self.stop()
            self._callback(error, path)
            return
        if self._pending is None:
            self._pending = self._backend.loop.call_later(self._settle, self._flush)

    def _flush(self) -> None:
        self._pending = None
        if self._running:
            self._callback(None, self.path)


def native_factory(
    backend: NativeBackend, settle: float = NATIVE_SETTLE_SECONDS
) -> DetectorFactory:
    """DetectorFactory producing NativeDetectors on a shared backend."""

    def create(path: Path, callback: DetectorCallback) -> ChangeDetector:
        return NativeDetector(backend, path, callback, settle)

    return create


class PollingTimer:
    """Fires a sweep callback every ``interval`` seconds on the running loop.

    Example:
        timer = PollingTimer(0.5, manager.sweep)
        timer.start()
        ...
        timer.stop()
    """

    def __init__(self, interval: float, callback: Callable[[], object]) -> None:
        self._interval = interval
        self._callback = callback
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._running

    async def _run(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            if not self._running:
                break
            try:
                self._callback()
            except Exception as e:
                log.error("Error in polling sweep: %s", e)

    def start(self) -> None:
        """Start the timer. Must be called from within a running loop."""
        if self._running:
            return
        loop = asyncio.get_running_loop()
        self._running = True
        self._task = loop.create_task(self._run())
        log.debug("Polling timer started (interval=%.3fs)", self._interval)

    def stop(self) -> None:
        """Stop the timer. Idempotent."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
            log.debug("Polling timer stopped")


class FailureReporter:
    """Surfaces detector failures to the user at most once per failure class.

    Every failure is logged; only the first of each class reaches notify().
    """

    def __init__(self, notify: Callable[[str, NotificationLevel], None]) -> None:
        self._notify = notify
        self._reported: set[str] = set()

    @property
    def reported(self) -> frozenset[str]:
        return frozenset(self._reported)

    def report(self, exc: BaseException, path: Path | None = None) -> bool:
        """Record a failure. Returns True if the user was notified."""
        failure_class = failure_class_of(exc)
        where = f" for {path}" if path is not None else ""
        if failure_class in self._reported:
            log.debug("Watch failed%s (%s): %s", where, failure_class, exc)
            return False

        self._reported.add(failure_class)
        log.warning("Watch failed%s (%s): %s", where, failure_class, exc)
        try:
            self._notify(
                f"hotreload: cannot watch files ({failure_class}): {exc}",
                NotificationLevel.WARNING,
            )
        except Exception as e:
            log.error("Error notifying user: %s", e)
        return True
