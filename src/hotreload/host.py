"""Host editor boundary.

hotreload never touches buffers, windows or messages directly. Everything it
needs from the editor goes through the Host protocol defined here, so an
editor integration only has to implement these methods and publish the
HostEvent notifications.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable

# Host-assigned buffer number or stable path string
Handle = int | str


class HostEvent(Enum):
    """Host notifications that can change the target set."""

    FILE_ACTIVE = "file_active"  # A file became the current one (BufEnter/WinEnter)
    ACTIVE_SET_CHANGED = "active_set_changed"  # Views opened, closed or rearranged
    FILE_CLOSED = "file_closed"  # A file was unloaded/deleted from the host
    FOCUS_GAINED = "focus_gained"  # The host window regained focus
    PROCESS_EXIT = "process_exit"  # The host is about to exit


class NotificationLevel(Enum):
    """Severity of a user-visible message."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class TrackedFile:
    """A host file eligible for watching.

    Only constructed for handles with a non-empty path; see tracked_file().
    """

    handle: Handle
    path: Path


EventCallback = Callable[[Handle | None], None]


@runtime_checkable
class Host(Protocol):
    """What hotreload needs from the editing environment.

    All methods are called on the event loop thread. Methods taking a
    handle may raise StaleHandleError if the handle became invalid.
    """

    def visible_files(self) -> Iterable[Handle]:
        """Handles of files shown in a visible view."""
        ...

    def loaded_files(self) -> Iterable[Handle]:
        """Handles of every file the host has opened."""
        ...

    def current_file(self) -> Handle | None:
        """Handle of the focused file, if any."""
        ...

    def file_path(self, handle: Handle) -> str | None:
        """Backing path of a file, or None/"" for scratch buffers."""
        ...

    def is_valid(self, handle: Handle) -> bool:
        """Whether the handle still refers to an open file."""
        ...

    def is_modified(self, handle: Handle) -> bool:
        """Whether the file has unsaved local edits."""
        ...

    def reload(self, handle: Handle, *, silent: bool) -> None:
        """Re-read the file from disk. Must be safe if nothing changed."""
        ...

    def subscribe(self, event: HostEvent, callback: EventCallback) -> Callable[[], None]:
        """Register a callback for a host event; returns an unsubscribe function."""
        ...

    def notify(self, message: str, level: NotificationLevel) -> None:
        """Show a message to the user."""
        ...


def tracked_file(host: Host, handle: Handle) -> TrackedFile | None:
    """Build a TrackedFile for a handle, or None if it has no backing path."""
    name = host.file_path(handle)
    if not name:
        return None
    return TrackedFile(handle=handle, path=Path(name).expanduser().absolute())
