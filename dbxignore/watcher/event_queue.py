"""Pending-event buffer with per-path debouncing."""
from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable

from .types import EventKind, WatchEvent


class EventQueue:
    """Hold at most one pending event per path until it has settled.

    Every notification for a path replaces the buffered one (last write
    wins) and restarts its quiet period. :meth:`drain_settled` removes and
    returns the events that have been quiet for at least ``debounce``
    seconds.
    """

    def __init__(
        self,
        *,
        debounce: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.debounce = debounce
        self._clock = clock
        self._pending: dict[Path, WatchEvent] = {}
        self._lock = threading.Lock()

    def add(self, path: Path, kind: EventKind) -> WatchEvent:
        """Buffer a notification for *path* and return the stored event."""

        event = WatchEvent(path=path, kind=kind, observed_at=self._clock())
        with self._lock:
            self._pending[path] = event
        return event

    def drain_settled(self) -> list[WatchEvent]:
        now = self._clock()
        ready: list[WatchEvent] = []

        with self._lock:
            for path, event in list(self._pending.items()):
                if now - event.observed_at >= self.debounce:
                    ready.append(event)
                    del self._pending[path]

        return ready

    def clear(self) -> None:
        """Clear internal buffers without emitting events."""

        with self._lock:
            self._pending.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._pending


__all__ = ["EventQueue"]
