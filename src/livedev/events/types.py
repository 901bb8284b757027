"""Change event types for filesystem monitoring."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ChangeKind(str, Enum):
    """How a browser should react to a changed file."""

    RELOAD = "reload"
    STYLE_UPDATE = "css-update"
    SCRIPT_UPDATE = "js-update"


TEMP_FILE_SUFFIXES: tuple[str, ...] = (
    "~",
    ".tmp",
    ".swp",
    ".swo",
    ".swx",
)


WATCHED_OPERATIONS: frozenset[str] = frozenset(
    {
        "created",
        "modified",
        "deleted",
        "moved",
    }
)


class ChangeEvent(BaseModel):
    """Classified change notification sent to subscribers.

    Attributes:
        type: Kind of update the browser should perform.
        path: URL-rooted path of the changed file.
    """

    type: ChangeKind = Field(description="Update kind")
    path: str = Field(description="URL-rooted path of the changed file")


class FileChange(BaseModel):
    """A change event together with the metadata side effects need.

    Attributes:
        event: The classified change event.
        absolute_path: Absolute filesystem path of the changed file.
        operation: Raw watchdog operation name.
        timestamp: Time the change was emitted (UTC).
    """

    event: ChangeEvent
    absolute_path: str
    operation: str
    timestamp: datetime

    def metadata(self) -> dict[str, str]:
        """Flatten into the string map used by webhooks and command triggers."""
        return {
            "event": "file_change",
            "type": self.event.type.value,
            "path": self.absolute_path,
            "relative_path": self.event.path,
            "operation": self.operation,
            "timestamp": self.timestamp.isoformat(),
        }
