"""Shared test doubles for hotreload tests."""

from __future__ import annotations

import asyncio
import os
import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from hotreload.errors import StaleHandleError
from hotreload.host import EventCallback, Handle, HostEvent, NotificationLevel
from hotreload.watching.detector import DetectorCallback


@dataclass
class FakeFile:
    path: str | None
    modified: bool = False
    visible: bool = True


class FakeHost:
    """In-memory Host that records every reload and notification."""

    def __init__(self) -> None:
        self.files: dict[Handle, FakeFile] = {}
        self.current: Handle | None = None
        self.reloads: list[tuple[Handle, bool]] = []
        self.notifications: list[tuple[str, NotificationLevel]] = []
        self.subscribers: dict[HostEvent, list[EventCallback]] = defaultdict(list)
        self.reload_error: Exception | None = None

    # Test helpers

    def add(
        self,
        handle: Handle,
        path: str | Path | None,
        *,
        visible: bool = True,
        modified: bool = False,
    ) -> None:
        self.files[handle] = FakeFile(
            path=str(path) if path is not None else None,
            modified=modified,
            visible=visible,
        )
        self.current = handle

    def remove(self, handle: Handle) -> None:
        self.files.pop(handle, None)
        if self.current == handle:
            self.current = None

    def emit(self, event: HostEvent, handle: Handle | None = None) -> None:
        for callback in list(self.subscribers[event]):
            callback(handle)

    def reloaded(self, handle: Handle) -> int:
        return sum(1 for h, _ in self.reloads if h == handle)

    def _file(self, handle: Handle) -> FakeFile:
        try:
            return self.files[handle]
        except KeyError:
            raise StaleHandleError(f"no such file {handle}") from None

    # Host protocol

    def visible_files(self):
        return [h for h, f in self.files.items() if f.visible]

    def loaded_files(self):
        return list(self.files)

    def current_file(self):
        return self.current

    def file_path(self, handle):
        return self._file(handle).path

    def is_valid(self, handle):
        return handle in self.files

    def is_modified(self, handle):
        return self._file(handle).modified

    def reload(self, handle, *, silent):
        self._file(handle)
        if self.reload_error is not None:
            raise self.reload_error
        self.reloads.append((handle, silent))

    def subscribe(self, event, callback):
        self.subscribers[event].append(callback)

        def unsubscribe() -> None:
            self.subscribers[event].remove(callback)

        return unsubscribe

    def notify(self, message, level):
        self.notifications.append((message, level))


class FakeDetector:
    """Detector double; fire() simulates a message delivered on the loop."""

    def __init__(self, path: Path, callback: DetectorCallback) -> None:
        self.path = path
        self.callback = callback
        self.running = False
        self.stop_calls = 0

    def start(self) -> bool:
        if not self.path.is_file():
            return False
        self.running = True
        return True

    def stop(self) -> None:
        self.stop_calls += 1
        self.running = False

    def fire(self, error: BaseException | None = None) -> None:
        if error is not None:
            self.running = False
        self.callback(error, self.path)


class FakeDetectorFactory:
    """Records every detector it creates; can be told to fail for some paths."""

    def __init__(self) -> None:
        self.created: list[FakeDetector] = []
        self.failures: dict[Path, Exception] = {}

    def __call__(self, path: Path, callback: DetectorCallback) -> FakeDetector:
        if path in self.failures:
            raise self.failures[path]
        detector = FakeDetector(path, callback)
        self.created.append(detector)
        return detector

    def live(self) -> list[FakeDetector]:
        return [d for d in self.created if d.running]

    def for_path(self, path: Path) -> FakeDetector:
        return [d for d in self.created if d.path == path][-1]


async def wait_for(condition: Callable[[], object], timeout: float = 5.0) -> bool:
    """Await until condition() is truthy or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        await asyncio.sleep(0.02)
    return bool(condition())


def bump(path: Path, content: str) -> None:
    """Rewrite a file and make sure its mtime moves forward."""
    before = path.stat().st_mtime_ns
    path.write_text(content)
    after = path.stat().st_mtime_ns
    if after <= before:
        os.utime(path, ns=(before + 1_000_000, before + 1_000_000))
