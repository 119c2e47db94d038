"""Configuration data structures for dbxignore."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, Optional

from .errors import RootResolutionError

DEFAULT_ROOT = "~/Dropbox"
DEFAULT_SCAN_INTERVAL = 5 * 60.0
DEFAULT_DEBOUNCE = 0.8
DEFAULT_FLUSH_INTERVAL = 0.25
DEFAULT_CACHE_TTL = 60.0
DEFAULT_MATCHER_CACHE_SIZE = 32
DEFAULT_PROBE_QUEUE_SIZE = 1024
IGNORE_FILE_NAME = ".dropboxignore"

# Version control, sync-client cache and dependency directories.
DEFAULT_SKIP_DIRS: frozenset[str] = frozenset(
    {".git", ".dropbox.cache", "node_modules", ".svn", ".hg"}
)


@dataclass(frozen=True)
class SkipPolicy:
    """Directory names that are never descended into nor watched."""

    names: frozenset[str] = DEFAULT_SKIP_DIRS
    skip_hidden: bool = True

    def should_prune(self, name: str, *, is_root: bool = False) -> bool:
        if is_root:
            return False
        if name in self.names:
            return True
        return self.skip_hidden and name.startswith(".") and name not in {".", ".."}

    def with_names(self, names: Iterable[str]) -> "SkipPolicy":
        return replace(self, names=self.names | frozenset(names))

    def without_names(self, names: Iterable[str]) -> "SkipPolicy":
        return replace(self, names=self.names - frozenset(names))


@dataclass(frozen=True)
class ScannerOptions:
    """Options for :class:`~dbxignore.file_scanner.IncrementalScanner`."""

    scan_interval: float = DEFAULT_SCAN_INTERVAL
    skip_policy: SkipPolicy = field(default_factory=SkipPolicy)

    def __post_init__(self) -> None:
        if self.scan_interval <= 0:
            raise ValueError("scan_interval must be positive")


@dataclass(frozen=True)
class WatcherOptions:
    """Options for :class:`~dbxignore.realtime_watcher.RealtimeWatcher`."""

    debounce: float = DEFAULT_DEBOUNCE
    flush_interval: float = DEFAULT_FLUSH_INTERVAL
    probe_queue_size: int = DEFAULT_PROBE_QUEUE_SIZE
    ignore_file_name: str = IGNORE_FILE_NAME
    skip_policy: SkipPolicy = field(default_factory=SkipPolicy)

    def __post_init__(self) -> None:
        if self.debounce < 0:
            raise ValueError("debounce must not be negative")
        if self.flush_interval <= 0:
            raise ValueError("flush_interval must be positive")
        if self.probe_queue_size <= 0:
            raise ValueError("probe_queue_size must be positive")


@dataclass
class DaemonConfig:
    """Top-level settings assembled by the CLI."""

    root: Path = Path(DEFAULT_ROOT)
    dry_run: bool = False
    verbose: bool = False
    scan_interval: float = DEFAULT_SCAN_INTERVAL
    debounce: float = DEFAULT_DEBOUNCE
    flush_interval: float = DEFAULT_FLUSH_INTERVAL
    cache_ttl: float = DEFAULT_CACHE_TTL
    matcher_cache_size: int = DEFAULT_MATCHER_CACHE_SIZE
    extra_skip_dirs: Iterable[str] = field(default_factory=tuple)
    log_file: Optional[Path] = None

    @property
    def log_level(self) -> int:
        return logging.DEBUG if self.verbose else logging.INFO

    def skip_policy(self) -> SkipPolicy:
        return SkipPolicy().with_names(self.extra_skip_dirs)

    def resolve_root(self) -> Path:
        """Expand ``~`` and return the absolute monitored root."""

        return resolve_root(self.root)

    def scanner_options(self) -> ScannerOptions:
        return ScannerOptions(scan_interval=self.scan_interval, skip_policy=self.skip_policy())

    def watcher_options(self) -> WatcherOptions:
        return WatcherOptions(
            debounce=self.debounce,
            flush_interval=self.flush_interval,
            skip_policy=self.skip_policy(),
        )


def resolve_root(root: str | Path) -> Path:
    """Return *root* as an absolute directory path or raise."""

    try:
        resolved = Path(root).expanduser().resolve()
    except (OSError, RuntimeError) as exc:
        raise RootResolutionError(f"Cannot resolve root {root}: {exc}") from exc
    if not resolved.is_dir():
        raise RootResolutionError(f"Root is not a directory: {resolved}")
    return resolved


__all__ = [
    "DEFAULT_SKIP_DIRS",
    "IGNORE_FILE_NAME",
    "DaemonConfig",
    "ScannerOptions",
    "SkipPolicy",
    "WatcherOptions",
    "resolve_root",
]
