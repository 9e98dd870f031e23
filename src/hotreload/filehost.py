"""Headless Host implementation backed by plain files.

Each opened file is held in memory as a "buffer". All buffers are both
visible and loaded. reload() re-reads the file and reports what changed,
which makes this host useful for the command line and for end-to-end tests.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from hotreload.errors import StaleHandleError
from hotreload.host import EventCallback, Handle, HostEvent, NotificationLevel
from hotreload.logging import get_logger

log = get_logger("filehost")

_LEVEL_STYLES = {
    NotificationLevel.INFO: "green",
    NotificationLevel.WARNING: "yellow",
    NotificationLevel.ERROR: "bold red",
}


@dataclass
class Buffer:
    """In-memory copy of a file."""

    path: str
    content: bytes = b""
    modified: bool = False
    reloads: int = 0


class FileHost:
    """A minimal editor: open files, mark them modified, reload them."""

    def __init__(
        self,
        console: Console | None = None,
        on_reload: Callable[[Handle, Buffer], None] | None = None,
    ) -> None:
        self._console = console or Console(stderr=True)
        self._on_reload = on_reload
        self._buffers: dict[int, Buffer] = {}
        self._next_handle = 1
        self._current: int | None = None
        self._subscribers: dict[HostEvent, list[EventCallback]] = defaultdict(list)

    # -------------------------------------------------------------------------
    # Editing operations
    # -------------------------------------------------------------------------

    def open(self, path: str | Path) -> int:
        """Load a file into a new buffer and make it current."""
        name = str(path)
        content = b""
        if name:
            try:
                content = Path(name).read_bytes()
            except FileNotFoundError:
                log.debug("Opening new file %s", name)
        handle = self._next_handle
        self._next_handle += 1
        self._buffers[handle] = Buffer(path=name, content=content)
        self._current = handle
        self.emit(HostEvent.ACTIVE_SET_CHANGED)
        self.emit(HostEvent.FILE_ACTIVE, handle)
        return handle

    def close(self, handle: int) -> None:
        """Drop a buffer."""
        if self._buffers.pop(handle, None) is None:
            return
        if self._current == handle:
            self._current = next(iter(self._buffers), None)
        self.emit(HostEvent.FILE_CLOSED, handle)
        self.emit(HostEvent.ACTIVE_SET_CHANGED)

    def focus(self, handle: int) -> None:
        self._buffer(handle)
        self._current = handle
        self.emit(HostEvent.FILE_ACTIVE, handle)

    def edit(self, handle: int, content: bytes) -> None:
        """Change a buffer without saving it."""
        buffer = self._buffer(handle)
        buffer.content = content
        buffer.modified = True

    def save(self, handle: int) -> None:
        buffer = self._buffer(handle)
        Path(buffer.path).write_bytes(buffer.content)
        buffer.modified = False

    def buffer(self, handle: int) -> Buffer:
        return self._buffer(handle)

    def emit(self, event: HostEvent, handle: Handle | None = None) -> None:
        """Deliver an event to subscribers."""
        for callback in list(self._subscribers[event]):
            callback(handle)

    def _buffer(self, handle: Handle) -> Buffer:
        buffer = self._buffers.get(handle) if isinstance(handle, int) else None
        if buffer is None:
            raise StaleHandleError(f"Buffer {handle} is not open")
        return buffer

    # -------------------------------------------------------------------------
    # Host protocol
    # -------------------------------------------------------------------------

    def visible_files(self) -> Iterable[Handle]:
        return list(self._buffers)

    def loaded_files(self) -> Iterable[Handle]:
        return list(self._buffers)

    def current_file(self) -> Handle | None:
        return self._current

    def file_path(self, handle: Handle) -> str | None:
        return self._buffer(handle).path or None

    def is_valid(self, handle: Handle) -> bool:
        return isinstance(handle, int) and handle in self._buffers

    def is_modified(self, handle: Handle) -> bool:
        return self._buffer(handle).modified

    def reload(self, handle: Handle, *, silent: bool) -> None:
        buffer = self._buffer(handle)
        try:
            content = Path(buffer.path).read_bytes()
        except FileNotFoundError as e:
            raise StaleHandleError(f"{buffer.path} no longer exists") from e
        if content == buffer.content:
            return

        buffer.content = content
        buffer.reloads += 1
        log.info("Reloaded %s (%d bytes)", buffer.path, len(content))
        if not silent:
            self.notify(f'"{buffer.path}" reloaded from disk', NotificationLevel.INFO)
        if self._on_reload is not None:
            self._on_reload(handle, buffer)

    def subscribe(self, event: HostEvent, callback: EventCallback) -> Callable[[], None]:
        self._subscribers[event].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[event]:
                self._subscribers[event].remove(callback)

        return unsubscribe

    def notify(self, message: str, level: NotificationLevel) -> None:
        self._console.print(message, style=_LEVEL_STYLES[level], markup=False)
