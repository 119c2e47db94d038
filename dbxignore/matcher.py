"""Gitignore-style matching against the nearest ``.dropboxignore`` file."""
from __future__ import annotations

import os
import threading
from collections import OrderedDict
from pathlib import Path

from pathspec import PathSpec

from .config import IGNORE_FILE_NAME

DEFAULT_CACHE_SIZE = 32


def load_ignore_file(path: str | Path) -> PathSpec:
    """Compile the patterns of an ignore file, skipping blanks and comments."""

    with open(path, encoding="utf-8") as handle:
        patterns = [
            line.strip()
            for line in handle
            if line.strip() and not line.strip().startswith("#")
        ]
    return PathSpec.from_lines("gitwildmatch", patterns)


class IgnoreMatcher:
    """Answers whether a path is excluded by its closest ignore file.

    Compiled rule sets are kept in a small LRU keyed by ignore-file path and
    recompiled when the file's modification time changes. Safe for
    concurrent use.
    """

    def __init__(
        self,
        cache_size: int = DEFAULT_CACHE_SIZE,
        *,
        ignore_file_name: str = IGNORE_FILE_NAME,
    ) -> None:
        self.cache_size = cache_size if cache_size > 0 else DEFAULT_CACHE_SIZE
        self.ignore_file_name = ignore_file_name
        self._cache: OrderedDict[Path, tuple[int, PathSpec]] = OrderedDict()
        self._lock = threading.Lock()

    def should_ignore(self, path: str | Path, *, is_dir: bool | None = None) -> bool:
        """Return ``True`` if *path* matches the rules of its nearest ignore file.

        Raises :class:`OSError` when the ignore file exists but cannot be read.
        """

        path = Path(path)
        ignore_file = self.find_ignore_file(path.parent)
        if ignore_file is None:
            return False

        spec = self._get_or_load(ignore_file)
        relative = path.relative_to(ignore_file.parent).as_posix()
        if spec.match_file(relative):
            return True

        if is_dir is None:
            is_dir = os.path.isdir(path)
        return is_dir and spec.match_file(relative + "/")

    def find_ignore_file(self, directory: Path) -> Path | None:
        """Walk up from *directory* to the filesystem root looking for an ignore file."""

        current = directory
        while True:
            candidate = current / self.ignore_file_name
            if candidate.exists():
                return candidate
            parent = current.parent
            if parent == current:
                return None
            current = parent

    def invalidate(self, ignore_file: str | Path) -> None:
        with self._lock:
            self._cache.pop(Path(ignore_file), None)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def cached_files(self) -> list[Path]:
        with self._lock:
            return list(self._cache)

    def _get_or_load(self, ignore_file: Path) -> PathSpec:
        mtime_ns = ignore_file.stat().st_mtime_ns
        with self._lock:
            cached = self._cache.get(ignore_file)
            if cached is not None and cached[0] == mtime_ns:
                self._cache.move_to_end(ignore_file)
                return cached[1]

        spec = load_ignore_file(ignore_file)

        with self._lock:
            self._cache[ignore_file] = (mtime_ns, spec)
            self._cache.move_to_end(ignore_file)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return spec


__all__ = ["IGNORE_FILE_NAME", "IgnoreMatcher", "load_ignore_file"]
