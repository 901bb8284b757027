"""Async-friendly filesystem watcher with debouncing."""

import asyncio
import threading
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from livedev.events.normalizer import event_path, is_excluded, normalize_event
from livedev.events.types import FileChange

logger = structlog.get_logger()


class DebouncingHandler(FileSystemEventHandler):
    """Watchdog event handler with a single debounce timer per root.

    Every qualifying event restarts the timer; when it fires, only the
    last event seen is emitted. Changes to distinct files inside one
    window are therefore reported as a single change for the last file.

    Attributes:
        debounce_ms: Debounce window in milliseconds.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[FileChange], Coroutine[Any, Any, None]],
        root: Path,
        excluded: list[Path] | None = None,
        debounce_ms: int = 100,
        on_directory_created: Callable[[Path], None] | None = None,
    ) -> None:
        """Initialize debouncing handler.

        Args:
            loop: Event loop for scheduling async callbacks.
            callback: Async function to call with debounced changes.
            root: Resolved watch root.
            excluded: Resolved directories whose changes are ignored.
            debounce_ms: Debounce window in milliseconds.
            on_directory_created: Called with each new directory, from the
                observer thread.
        """
        super().__init__()
        self._loop = loop
        self._callback = callback
        self._root = root
        self._excluded = excluded or []
        self._debounce_ms = debounce_ms
        self._timer: threading.Timer | None = None
        self._pending: FileChange | None = None
        self._lock = threading.Lock()
        self._coalesced_count = 0
        self._on_directory_created = on_directory_created

    @property
    def debounce_ms(self) -> int:
        """Debounce window in milliseconds."""
        return self._debounce_ms

    @property
    def coalesced_events(self) -> int:
        """Number of events superseded by a later one within the window."""
        return self._coalesced_count

    def _emit_event(self) -> None:
        """Emit the pending change to the async callback."""
        with self._lock:
            change = self._pending
            self._pending = None
            self._timer = None
            if change is None:
                return

        logger.debug(
            "watcher_emit",
            path=change.event.path,
            change_type=change.event.type.value,
        )
        try:
            future = asyncio.run_coroutine_threadsafe(self._callback(change), self._loop)
            future.result(timeout=5.0)
        except Exception as e:
            logger.error("watcher_callback_error", error=str(e), path=change.event.path)

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Handle filesystem event with debouncing.

        Args:
            event: Raw watchdog filesystem event.
        """
        if (
            event.is_directory
            and event.event_type in ("created", "moved")
            and self._on_directory_created is not None
        ):
            self._on_directory_created(Path(event_path(event)).resolve())

        change = normalize_event(event, self._root, self._excluded)
        if change is None:
            return

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._coalesced_count += 1

            self._pending = change
            self._timer = threading.Timer(
                self._debounce_ms / 1000.0,
                self._emit_event,
            )
            self._timer.daemon = True
            self._timer.start()

    def cancel_all(self) -> None:
        """Cancel the pending timer during shutdown."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending = None


def resolve_excluded(root: Path, excluded: list[str]) -> list[Path]:
    """Resolve excluded directories relative to the root.

    Args:
        root: Resolved watch root.
        excluded: Directory names or paths; relative ones are under root.

    Returns:
        Resolved absolute paths.
    """
    return [(root / entry).resolve() for entry in excluded if entry]


def plan_watches(directory: Path, excluded: list[Path]) -> list[tuple[Path, bool]]:
    """Choose the OS-level watches for a directory tree.

    A directory with no excluded path beneath it gets one recursive watch.
    A directory above an excluded path is watched non-recursively and its
    subdirectories are planned one by one, so excluded trees are never
    watched at all.

    Args:
        directory: Resolved directory to cover.
        excluded: Resolved excluded directories.

    Returns:
        ``(path, recursive)`` pairs, parents before children.
    """
    if is_excluded(directory, excluded):
        return []
    if not any(entry.is_relative_to(directory) for entry in excluded):
        return [(directory, True)]

    watches = [(directory, False)]
    children = sorted(
        child for child in directory.iterdir() if child.is_dir() and not child.is_symlink()
    )
    for child in children:
        watches.extend(plan_watches(child, excluded))
    return watches


class FilesystemWatcher:
    """High-level filesystem watcher manager.

    Wraps watchdog Observer and DebouncingHandler to provide a clean
    interface for starting and stopping filesystem monitoring.

    Attributes:
        root: Directory being watched.
        debounce_ms: Debounce window in milliseconds.
    """

    def __init__(
        self,
        root: str | Path,
        loop: asyncio.AbstractEventLoop,
        on_change: Callable[[FileChange], Coroutine[Any, Any, None]],
        excluded: list[str] | None = None,
        debounce_ms: int = 100,
    ) -> None:
        """Initialize filesystem watcher.

        Args:
            root: Directory to watch recursively.
            loop: Event loop for async callbacks.
            on_change: Async callback for debounced changes.
            excluded: Subdirectories whose changes are ignored.
            debounce_ms: Debounce window in milliseconds.
        """
        self._root = Path(root).resolve()
        self._excluded = resolve_excluded(self._root, excluded or [])
        self._debounce_ms = debounce_ms
        self._handler = DebouncingHandler(
            loop,
            on_change,
            self._root,
            self._excluded,
            debounce_ms,
            on_directory_created=self._watch_new_directory,
        )
        self._observer: Observer | None = None  # pyright: ignore[reportInvalidTypeForm]
        # Directories watched without recursion; new children need their own watch.
        self._shallow: set[Path] = set()
        self._watches: list[tuple[Path, bool]] = []
        self._schedule_lock = threading.Lock()

    @property
    def root(self) -> Path:
        """Directory being watched."""
        return self._root

    @property
    def excluded(self) -> list[Path]:
        """Resolved excluded directories."""
        return self._excluded.copy()

    @property
    def coalesced_events(self) -> int:
        """Number of events coalesced by debouncing."""
        return self._handler.coalesced_events

    def start(self) -> None:
        """Start the filesystem observer.

        Raises:
            ValueError: If the root does not exist or is not a directory.
            OSError: If the underlying watch cannot be established.
        """
        if not self._root.exists():
            raise ValueError(f"Watch root does not exist: {self._root}")
        if not self._root.is_dir():
            raise ValueError(f"Watch root is not a directory: {self._root}")

        observer = Observer()
        watches = plan_watches(self._root, self._excluded)
        with self._schedule_lock:
            self._observer = observer
            for path, recursive in watches:
                self._schedule(observer, path, recursive)
        observer.start()
        logger.info(
            "watcher_started",
            root=str(self._root),
            excluded=[str(p) for p in self._excluded],
            watches=len(watches),
            debounce_ms=self._debounce_ms,
        )

    @property
    def watched_paths(self) -> list[tuple[Path, bool]]:
        """Directories with an OS-level watch, as ``(path, recursive)`` pairs."""
        return list(self._watches)

    def _schedule(self, observer: BaseObserver, path: Path, recursive: bool) -> None:
        observer.schedule(self._handler, str(path), recursive=recursive)
        self._watches.append((path, recursive))
        if not recursive:
            self._shallow.add(path)

    def _watch_new_directory(self, path: Path) -> None:
        """Add watches for a directory created under a non-recursive watch."""
        with self._schedule_lock:
            observer = self._observer
            if observer is None or path.parent not in self._shallow:
                return
            try:
                for child, recursive in plan_watches(path, self._excluded):
                    self._schedule(observer, child, recursive)
            except OSError as e:
                logger.warning("watch_add_failed", path=str(path), error=str(e))
                return
        logger.debug("watch_added", path=str(path))

    def stop(self) -> None:
        """Stop the filesystem observer."""
        self._handler.cancel_all()

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None

        with self._schedule_lock:
            self._shallow.clear()
            self._watches.clear()
        logger.info("watcher_stopped")
