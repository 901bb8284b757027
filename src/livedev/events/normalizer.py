"""Event normalization pipeline for transforming raw filesystem events."""

from datetime import UTC, datetime
from pathlib import Path

import structlog
from watchdog.events import FileSystemEvent

from livedev.events.types import (
    TEMP_FILE_SUFFIXES,
    WATCHED_OPERATIONS,
    ChangeEvent,
    ChangeKind,
    FileChange,
)

logger = structlog.get_logger()

KIND_BY_SUFFIX: dict[str, ChangeKind] = {
    ".css": ChangeKind.STYLE_UPDATE,
    ".js": ChangeKind.SCRIPT_UPDATE,
}


def decode_path(path: str | bytes) -> str:
    """Return a watchdog path as text."""
    if isinstance(path, str):
        return path
    return bytes(path).decode("utf-8", errors="replace")


def event_path(raw_event: FileSystemEvent) -> str:
    """Path a raw event refers to; the destination for moves."""
    dest_path = getattr(raw_event, "dest_path", "")
    if raw_event.event_type == "moved" and dest_path:
        return decode_path(dest_path)
    return decode_path(raw_event.src_path)


def classify(path: str) -> ChangeKind:
    """Determine the update kind from a file's extension.

    Args:
        path: Path of the changed file.

    Returns:
        Style update for stylesheets, script update for scripts,
        full reload for everything else.
    """
    return KIND_BY_SUFFIX.get(Path(path).suffix.lower(), ChangeKind.RELOAD)


def is_ignored_name(name: str) -> bool:
    """Check if a file name is hidden or an editor temporary.

    Args:
        name: Final path component.

    Returns:
        True if changes to this file should never be reported.
    """
    if name.startswith("."):
        return True
    return name.endswith(TEMP_FILE_SUFFIXES)


def is_excluded(path: Path, excluded: list[Path]) -> bool:
    """Check if a resolved path lies under an excluded directory.

    Args:
        path: Resolved absolute path.
        excluded: Resolved excluded directory paths.

    Returns:
        True if the path is inside one of the excluded directories.
    """
    return any(path == root or path.is_relative_to(root) for root in excluded)


def relative_url(path: Path, root: Path) -> str | None:
    """Express a path under the root as a URL-rooted path.

    Args:
        path: Resolved absolute path.
        root: Resolved watch root.

    Returns:
        Path such as "/styles/app.css", or None if outside the root.
    """
    try:
        relative = path.relative_to(root)
    except ValueError:
        return None
    return "/" + relative.as_posix()


def normalize_event(
    raw_event: FileSystemEvent,
    root: Path,
    excluded: list[Path] | None = None,
) -> FileChange | None:
    """Transform a raw filesystem event into a classified change.

    Args:
        raw_event: Raw watchdog filesystem event.
        root: Resolved watch root.
        excluded: Resolved directories whose changes are ignored.

    Returns:
        Classified change if the event qualifies, None if it should be dropped.
    """
    if raw_event.is_directory or raw_event.event_type not in WATCHED_OPERATIONS:
        return None

    path = Path(event_path(raw_event)).resolve()

    if excluded and is_excluded(path, excluded):
        return None

    url_path = relative_url(path, root)
    if url_path is None:
        logger.warning("event_outside_root", path=str(path), root=str(root))
        return None

    if any(is_ignored_name(part) for part in url_path.split("/") if part):
        return None

    return FileChange(
        event=ChangeEvent(type=classify(url_path), path=url_path),
        absolute_path=str(path),
        operation=raw_event.event_type,
        timestamp=datetime.now(UTC),
    )
