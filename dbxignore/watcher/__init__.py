"""Watcher subsystem for dbxignore."""
from .event_queue import EventQueue
from .probe import DirectoryProbe
from .types import EventKind, RawNotification, WatchEvent

__all__ = [
    "DirectoryProbe",
    "EventKind",
    "EventQueue",
    "RawNotification",
    "WatchEvent",
]
