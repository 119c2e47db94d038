"""Core types shared by the scanner, the watcher and decision handlers."""
from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, NamedTuple


class Fingerprint(NamedTuple):
    """Identity and modification time of a filesystem entry."""

    inode: int
    mtime_ns: int


class ActionKind(Enum):
    CONTINUE = "continue"
    SKIP_SUBTREE = "skip_subtree"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Action:
    """Result of a decision handler call.

    ``SKIP_SUBTREE`` asks the traversal not to descend into a directory;
    ``FAILED`` reports that the entry could not be classified this round.
    Use the :data:`CONTINUE` and :data:`SKIP_SUBTREE` singletons and
    :meth:`failed` rather than building instances by hand.
    """

    kind: ActionKind
    reason: str | None = None

    @classmethod
    def failed(cls, reason: str) -> "Action":
        return cls(ActionKind.FAILED, reason)

    @property
    def skips_subtree(self) -> bool:
        return self.kind is ActionKind.SKIP_SUBTREE

    @property
    def is_failure(self) -> bool:
        return self.kind is ActionKind.FAILED


CONTINUE = Action(ActionKind.CONTINUE)
SKIP_SUBTREE = Action(ActionKind.SKIP_SUBTREE)


@dataclass(frozen=True, slots=True)
class EntryInfo:
    """A path together with its ``lstat`` metadata."""

    path: Path
    stat: os.stat_result

    @classmethod
    def from_path(cls, path: str | Path) -> "EntryInfo":
        """Build an entry from ``os.lstat``; raises :class:`OSError`."""

        path = Path(path)
        return cls(path=path, stat=os.lstat(path))

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.stat.st_mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.stat.st_mode)

    @property
    def mtime_ns(self) -> int:
        return self.stat.st_mtime_ns

    @property
    def fingerprint(self) -> Fingerprint:
        return Fingerprint(self.stat.st_ino, self.stat.st_mtime_ns)


Handler = Callable[[EntryInfo], Action]


@dataclass(slots=True)
class ScanReport:
    """Counters collected during one scanner walk."""

    files: int = 0
    dirs: int = 0
    skipped_dirs: int = 0
    unchanged_dirs: int = 0
    unchanged_files: int = 0
    handler_calls: int = 0
    failures: int = 0
    entry_errors: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "files": self.files,
            "dirs": self.dirs,
            "skipped_dirs": self.skipped_dirs,
            "unchanged_dirs": self.unchanged_dirs,
            "unchanged_files": self.unchanged_files,
            "handler_calls": self.handler_calls,
            "failures": self.failures,
            "entry_errors": self.entry_errors,
        }


__all__ = [
    "CONTINUE",
    "SKIP_SUBTREE",
    "Action",
    "ActionKind",
    "EntryInfo",
    "Fingerprint",
    "Handler",
    "ScanReport",
]
