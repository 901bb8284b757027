"""Events subsystem for filesystem monitoring and live-reload broadcasting."""
from livedev.events.bus import EventBus, Subscriber
from livedev.events.hub import BroadcastHub
from livedev.events.notify import ChangeNotifier
from livedev.events.types import ChangeEvent, ChangeKind, FileChange
from livedev.events.watcher import FilesystemWatcher

__all__ = [
    "BroadcastHub",
    "ChangeEvent",
    "ChangeKind",
    "ChangeNotifier",
    "EventBus",
    "FileChange",
    "FilesystemWatcher",
    "Subscriber",
]
