"""Shared type definitions for the watcher subsystem."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path


class EventKind(Enum):
    """Notification kinds the watcher reacts to."""

    CREATE = auto()
    WRITE = auto()
    RENAME = auto()


@dataclass(frozen=True, slots=True)
class WatchEvent:
    """A single settled-or-pending change notification for *path*.

    ``observed_at`` is a :func:`time.monotonic` reading taken when the
    notification was received.
    """

    path: Path
    kind: EventKind
    observed_at: float = field(default_factory=time.monotonic)


@dataclass(frozen=True, slots=True)
class RawNotification:
    """Backend-neutral notification delivered to the watcher loop.

    ``kind`` is ``None`` for notification kinds the watcher does not handle
    (deletions, attribute changes); they are never dispatched. ``src_path``
    is the old location of a renamed entry and ``removed`` marks a deletion;
    both only update the watcher's bookkeeping.
    """

    path: Path
    kind: EventKind | None
    is_directory: bool = False
    src_path: Path | None = None
    removed: bool = False


__all__ = ["EventKind", "RawNotification", "WatchEvent"]
