"""In-memory record of recently processed entries."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .models import Fingerprint


@dataclass(frozen=True, slots=True)
class CacheEntry:
    fingerprint: Fingerprint
    ignored: bool
    added: float


class ProcessedCache:
    """TTL-bounded map of path to the fingerprint it was last classified with.

    An entry only counts as seen while it is younger than ``ttl`` seconds and
    its fingerprint still matches; expired entries are evicted on lookup.
    """

    def __init__(self, ttl: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[Path, CacheEntry] = {}
        self._lock = threading.Lock()

    def lookup(self, path: Path, fingerprint: Fingerprint) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(path)
            if entry is None:
                return None
            if self._clock() - entry.added > self.ttl:
                del self._entries[path]
                return None
        if entry.fingerprint != fingerprint:
            return None
        return entry

    def seen(self, path: Path, fingerprint: Fingerprint) -> bool:
        return self.lookup(path, fingerprint) is not None

    def record(self, path: Path, fingerprint: Fingerprint, *, ignored: bool = False) -> None:
        entry = CacheEntry(fingerprint=fingerprint, ignored=ignored, added=self._clock())
        with self._lock:
            self._entries[path] = entry

    def remove(self, path: Path) -> None:
        with self._lock:
            self._entries.pop(path, None)

    def remove_under(self, directory: Path) -> int:
        """Forget *directory* and everything below it; return the count."""

        with self._lock:
            stale = [
                path for path in self._entries if path == directory or directory in path.parents
            ]
            for path in stale:
                del self._entries[path]
        return len(stale)

    def clean(self) -> int:
        """Drop expired entries and return how many were removed."""

        now = self._clock()
        with self._lock:
            expired = [path for path, entry in self._entries.items() if now - entry.added > self.ttl]
            for path in expired:
                del self._entries[path]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["CacheEntry", "ProcessedCache"]
