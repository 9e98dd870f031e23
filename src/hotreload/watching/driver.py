"""Reconciliation driver: host events in, watch set reconciliation out.

The driver decides when to recompute the target set and what "reload if
unmodified" means. It owns the lifetime of the watch set manager, the
native backend and the polling timer, and guarantees that every native
handle is released on PROCESS_EXIT.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from hotreload.config.loader import load_config
from hotreload.config.schema import HotReloadConfig, Scope
from hotreload.errors import DetectorError, StaleHandleError
from hotreload.host import Handle, Host, HostEvent, TrackedFile, tracked_file
from hotreload.logging import get_logger, setup_logging
from hotreload.watching.detector import (
    ChangeDetector,
    DetectorCallback,
    DetectorFactory,
    FailureReporter,
    NativeBackend,
    PollingTimer,
    native_factory,
)
from hotreload.watching.manager import ReconcileResult, WatchSetManager

log = get_logger("watching.driver")

# Events that trigger a recompute of the target set, per scope
RECOMPUTE_EVENTS: dict[Scope, frozenset[HostEvent]] = {
    Scope.VISIBLE: frozenset(
        {HostEvent.FILE_ACTIVE, HostEvent.ACTIVE_SET_CHANGED, HostEvent.FILE_CLOSED}
    ),
    Scope.LOADED: frozenset(
        {
            HostEvent.FILE_ACTIVE,
            HostEvent.ACTIVE_SET_CHANGED,
            HostEvent.FILE_CLOSED,
            HostEvent.FOCUS_GAINED,
        }
    ),
}


class ReconciliationDriver:
    """Keeps the watch set in step with the host's active files.

    Lifecycle:
    1. start() (inside a running loop) subscribes to host events, starts
       the native backend or polling timer, and reconciles once
    2. Host events recompute the target set and reconcile
    3. Detected changes run reload_if_unmodified() on the loop thread
    4. PROCESS_EXIT (or shutdown()) stops every watch before returning

    Example:
        async with ReconciliationDriver(host, load_config()) as driver:
            ...
    """

    def __init__(
        self,
        host: Host,
        config: HotReloadConfig | None = None,
        *,
        detector_factory: DetectorFactory | None = None,
        backend: NativeBackend | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            host: The editor integration.
            config: Validated configuration (defaults if omitted).
            detector_factory: Overrides native detector creation (tests).
            backend: Native backend to use instead of creating one.
        """
        self._host = host
        self._config = config or HotReloadConfig()
        self._detector_factory = detector_factory
        self._backend = backend
        self._reporter = FailureReporter(host.notify)
        self._manager: WatchSetManager | None = None
        self._timer: PollingTimer | None = None
        self._unsubscribers: list[Callable[[], None]] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        # Handles race-checked by a reconcile during the current loop iteration
        self._just_checked: set[Handle] = set()
        self._running = False

    @property
    def config(self) -> HotReloadConfig:
        return self._config

    @property
    def manager(self) -> WatchSetManager | None:
        return self._manager

    @property
    def reporter(self) -> FailureReporter:
        return self._reporter

    def is_running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start watching.

        Must be called from within a running event loop; native events are
        posted back onto that loop.
        """
        if self._running:
            return
        loop = asyncio.get_running_loop()
        self._loop = loop

        factory = self._make_factory(loop)
        self._manager = WatchSetManager(
            on_change=self.reload_if_unmodified,
            detector_factory=factory,
            is_valid=self._host.is_valid,
            reporter=self._reporter,
        )

        interval = self._config.interval_seconds
        if interval is not None:
            self._timer = PollingTimer(interval, self._manager.sweep)
            self._timer.start()

        for event in HostEvent:
            self._unsubscribers.append(
                self._host.subscribe(event, self._make_event_callback(event))
            )

        self._running = True
        log.info(
            "hotreload started (%s, scope=%s)",
            f"polling every {self._config.interval}ms" if self._config.polling else "native",
            self._config.scope.value,
        )
        self.reconcile()

    def _make_factory(self, loop: asyncio.AbstractEventLoop) -> DetectorFactory | None:
        if self._config.polling:
            return None
        if self._detector_factory is not None:
            return self._detector_factory

        if self._backend is None:
            self._backend = NativeBackend(loop)
        try:
            self._backend.start()
        except DetectorError as e:
            # Files stay unwatched; FILE_ACTIVE checks still reload them
            self._reporter.report(e)
            return _unavailable_factory(e)
        return native_factory(self._backend)

    def _make_event_callback(self, event: HostEvent) -> Callable[[Handle | None], None]:
        def callback(handle: Handle | None = None) -> None:
            self.handle_event(event, handle)

        return callback

    def shutdown(self) -> None:
        """Stop every watch and release native resources. Idempotent."""
        if not self._running:
            return
        self._running = False

        for unsubscribe in self._unsubscribers:
            try:
                unsubscribe()
            except Exception as e:
                log.warning("Error unsubscribing from host: %s", e)
        self._unsubscribers.clear()

        if self._timer is not None:
            self._timer.stop()
            self._timer = None

        stopped = self._manager.stop_all() if self._manager is not None else 0
        self._just_checked.clear()

        if self._backend is not None:
            self._backend.close()

        log.info("hotreload stopped (%d watches released)", stopped)

    async def __aenter__(self) -> ReconciliationDriver:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.shutdown()

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def handle_event(self, event: HostEvent, handle: Handle | None = None) -> None:
        """React to a host event. Never raises."""
        if not self._running:
            return
        log.debug("Host event %s (%s)", event.value, handle)

        try:
            if event is HostEvent.PROCESS_EXIT:
                self.shutdown()
                return

            manager = self._manager
            if event is HostEvent.FILE_CLOSED and handle is not None and manager is not None:
                manager.stop(handle)

            if event in RECOMPUTE_EVENTS[self._config.scope]:
                self.reconcile()

            if event is HostEvent.FILE_ACTIVE:
                current = handle if handle is not None else self._host.current_file()
                # Hosts often send several events for one open; a file that
                # became watched in this loop iteration was already checked
                if current is not None and current not in self._just_checked:
                    self.check(current)
            elif event is HostEvent.FOCUS_GAINED:
                self.reload_all()
        except Exception as e:
            log.error("Error handling host event %s: %s", event.value, e)

    # -------------------------------------------------------------------------
    # Target set
    # -------------------------------------------------------------------------

    def target_set(self) -> set[TrackedFile]:
        """Tracked files the host currently considers active."""
        if self._config.scope is Scope.LOADED:
            handles = self._host.loaded_files()
        else:
            handles = self._host.visible_files()

        targets: set[TrackedFile] = set()
        for handle in handles:
            try:
                file = tracked_file(self._host, handle)
            except StaleHandleError:
                continue
            if file is not None:
                targets.add(file)
        return targets

    def reconcile(self) -> ReconcileResult:
        """Recompute the target set from live host state and converge."""
        if self._manager is None or not self._running:
            return ReconcileResult()
        result = self._manager.reconcile(self.target_set())
        if result.started and self._loop is not None:
            if not self._just_checked:
                self._loop.call_soon(self._just_checked.clear)
            self._just_checked.update(result.started)
        return result

    # -------------------------------------------------------------------------
    # Reload policy
    # -------------------------------------------------------------------------

    def check(self, handle: Handle) -> bool:
        """Run the reload policy for a host handle."""
        try:
            file = tracked_file(self._host, handle)
        except StaleHandleError:
            return False
        if file is None:
            return False
        return self.reload_if_unmodified(file)

    def reload_all(self) -> int:
        """Run the reload policy for every watched file."""
        if self._manager is None:
            return 0
        return sum(1 for file in self._manager.watched() if self.reload_if_unmodified(file))

    def reload_if_unmodified(self, file: TrackedFile) -> bool:
        """Reload a file from disk unless it has unsaved edits.

        The modified flag is queried at call time, never cached. Never
        raises; a handle closed in the meantime is silently ignored.

        Returns:
            True if the host was asked to reload the file.
        """
        host = self._host
        handle = file.handle
        try:
            if not host.is_valid(handle) or not host.file_path(handle):
                return False
            if host.is_modified(handle):
                log.debug("Skipping reload of %s: unsaved edits", file.path)
                return False
            host.reload(handle, silent=self._config.silent)
        except StaleHandleError:
            log.debug("Skipping reload of %s: handle %s closed", file.path, handle)
            return False
        except Exception as e:
            log.error("Error reloading %s: %s", file.path, e)
            return False

        log.debug("Reloaded %s", file.path)
        return True


def _unavailable_factory(error: DetectorError) -> DetectorFactory:
    """Factory used when the native backend could not start."""

    def create(path: Path, callback: DetectorCallback) -> ChangeDetector:
        raise DetectorError(str(error), error.failure_class)

    return create


def setup(
    host: Host,
    options: Mapping[str, Any] | None = None,
    *,
    project_root: str | None = None,
    use_files: bool = False,
    detector_factory: DetectorFactory | None = None,
) -> ReconciliationDriver:
    """Validate options, configure logging and start a driver.

    Must be called from within a running event loop.

    Args:
        host: The editor integration.
        options: Plugin options (interval, silent, scope, logging).
        project_root: Project directory for project-level config files.
        use_files: Also read YAML config files.
        detector_factory: Overrides native detector creation.

    Returns:
        The started ReconciliationDriver.

    Raises:
        ConfigError: If the options are malformed. No watch is created.
    """
    config = load_config(project_root, options, use_files=use_files)
    setup_logging(config.logging)

    driver = ReconciliationDriver(host, config, detector_factory=detector_factory)
    driver.start()
    return driver
