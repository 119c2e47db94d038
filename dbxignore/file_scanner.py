"""Periodic incremental scanner feeding every entry to a decision handler."""
from __future__ import annotations

import logging
import os
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable

from .cancellation import CancellationToken
from .config import ScannerOptions, resolve_root
from .errors import Cancelled
from .logger import get_logger, log_event
from .models import CONTINUE, Action, EntryInfo, Handler, ScanReport

LOGGER_NAME = "dbxignore.scanner"


class IncrementalScanner:
    """Walks the monitored root depth-first, parents before children.

    Repeat scans are pruned in two ways: a directory whose modification time
    is unchanged since the previous walk is not descended into, and a
    non-directory entry modified before the previous walk started is not
    handed to the handler.
    """

    def __init__(
        self,
        root: str | Path,
        handler: Handler,
        options: ScannerOptions | None = None,
        logger: logging.Logger | None = None,
        *,
        after_scan: Callable[[ScanReport], object] | None = None,
    ) -> None:
        self.root = resolve_root(root)
        self.handler = handler
        self.options = options or ScannerOptions()
        self.skip_policy = self.options.skip_policy
        self.logger = get_logger(LOGGER_NAME, logger)
        self.after_scan = after_scan

        self._lock = threading.Lock()
        self._dir_mtimes: dict[Path, int] = {}
        self._last_scan_start: int | None = None

    @property
    def last_scan_start(self) -> int | None:
        """Wall-clock start of the last completed scan in nanoseconds."""

        with self._lock:
            return self._last_scan_start

    @property
    def last_scan(self) -> datetime | None:
        start = self.last_scan_start
        if start is None:
            return None
        return datetime.fromtimestamp(start / 1_000_000_000)

    def fingerprints(self) -> dict[Path, int]:
        """Snapshot of the directory modification-time table."""

        with self._lock:
            return dict(self._dir_mtimes)

    def clear_cache(self) -> None:
        """Forget every directory fingerprint so the next scan descends fully."""

        with self._lock:
            self._dir_mtimes.clear()

    def set_skip_dir(self, name: str, skip: bool) -> None:
        if skip:
            self.skip_policy = self.skip_policy.with_names([name])
        else:
            self.skip_policy = self.skip_policy.without_names([name])

    def run(self, token: CancellationToken) -> None:
        """Scan now, then every ``scan_interval`` seconds until *token* fires.

        Always terminates by raising :class:`~dbxignore.errors.Cancelled`.
        """

        while True:
            token.raise_if_cancelled()
            try:
                self.scan(token)
            except Cancelled:
                raise
            except Exception as exc:
                log_event(
                    self.logger,
                    level=logging.ERROR,
                    action="scan.error",
                    message="Scan failed",
                    extra={"root": self.root, "error": repr(exc)},
                )
            if token.wait(self.options.scan_interval):
                token.raise_if_cancelled()

    def scan(self, token: CancellationToken | None = None) -> ScanReport:
        """Perform one full traversal of the root and return its counters."""

        scan_start = time.time_ns()
        started = time.monotonic()
        last_scan = self.last_scan_start
        visited: set[Path] = set()
        report = ScanReport()

        log_event(
            self.logger,
            level=logging.DEBUG,
            action="scan.start",
            message="Starting scan",
            extra={"root": self.root, "incremental": last_scan is not None},
        )

        try:
            root_entry = EntryInfo.from_path(self.root)
        except OSError as exc:
            self._entry_error(self.root, exc, report)
        else:
            self._walk(root_entry, last_scan, visited, report, token)

        self._purge_fingerprints(visited)
        with self._lock:
            self._last_scan_start = scan_start

        report.duration_ms = (time.monotonic() - started) * 1000
        log_event(
            self.logger,
            level=logging.INFO,
            action="scan.complete",
            message="Scan completed",
            duration_ms=report.duration_ms,
            extra={"root": self.root, **report.to_dict()},
        )
        if self.after_scan is not None:
            self.after_scan(report)
        return report

    def _walk(
        self,
        root_entry: EntryInfo,
        last_scan: int | None,
        visited: set[Path],
        report: ScanReport,
        token: CancellationToken | None,
    ) -> None:
        stack: list[tuple[EntryInfo, bool]] = [(root_entry, True)]
        while stack:
            directory, is_root = stack.pop()
            if token is not None:
                token.raise_if_cancelled()
            if not self._enter_directory(directory, is_root, last_scan, visited, report):
                continue

            try:
                with os.scandir(directory.path) as it:
                    children = list(it)
            except OSError as exc:
                self._entry_error(directory.path, exc, report)
                continue

            subdirs: list[EntryInfo] = []
            for child in children:
                if token is not None:
                    token.raise_if_cancelled()
                try:
                    entry = EntryInfo(Path(child.path), child.stat(follow_symlinks=False))
                except OSError as exc:
                    self._entry_error(Path(child.path), exc, report)
                    continue
                if entry.is_dir:
                    subdirs.append(entry)
                else:
                    self._visit_file(entry, last_scan, report)

            stack.extend((subdir, False) for subdir in reversed(subdirs))

    def _enter_directory(
        self,
        directory: EntryInfo,
        is_root: bool,
        last_scan: int | None,
        visited: set[Path],
        report: ScanReport,
    ) -> bool:
        """Handle a directory's own entry and decide whether to descend."""

        report.dirs += 1
        visited.add(directory.path)

        action = self._dispatch(directory, report)
        if action.skips_subtree:
            report.skipped_dirs += 1
            log_event(
                self.logger,
                level=logging.DEBUG,
                action="scan.skip_subtree",
                message="Skipping contents of ignored directory",
                extra={"path": directory.path},
            )
            return False

        if self.skip_policy.should_prune(directory.path.name, is_root=is_root):
            report.skipped_dirs += 1
            return False

        previous = self._record_fingerprint(directory.path, directory.mtime_ns)
        # The root is always descended so its direct children are re-examined.
        if last_scan is not None and not is_root and previous == directory.mtime_ns:
            report.unchanged_dirs += 1
            return False
        return True

    def _visit_file(self, entry: EntryInfo, last_scan: int | None, report: ScanReport) -> None:
        report.files += 1
        if last_scan is not None and entry.mtime_ns < last_scan:
            report.unchanged_files += 1
            return
        self._dispatch(entry, report)

    def _dispatch(self, entry: EntryInfo, report: ScanReport) -> Action:
        report.handler_calls += 1
        try:
            action = self.handler(entry)
        except Exception as exc:
            report.failures += 1
            log_event(
                self.logger,
                level=logging.WARNING,
                action="scan.handler_error",
                message="Handler raised an exception",
                extra={"path": entry.path, "error": repr(exc)},
            )
            return CONTINUE

        if action.is_failure:
            report.failures += 1
            log_event(
                self.logger,
                level=logging.WARNING,
                action="scan.handler_failed",
                message="Handler could not classify entry",
                extra={"path": entry.path, "reason": action.reason},
            )
        return action

    def _entry_error(self, path: Path, exc: OSError, report: ScanReport) -> None:
        report.entry_errors += 1
        log_event(
            self.logger,
            level=logging.WARNING,
            action="scan.entry_error",
            message="Cannot access entry",
            extra={"path": path, "error": repr(exc)},
        )

    def _record_fingerprint(self, path: Path, mtime_ns: int) -> int | None:
        with self._lock:
            previous = self._dir_mtimes.get(path)
            self._dir_mtimes[path] = mtime_ns
        return previous

    def _purge_fingerprints(self, visited: set[Path]) -> None:
        with self._lock:
            for path in [path for path in self._dir_mtimes if path not in visited]:
                del self._dir_mtimes[path]


__all__ = ["IncrementalScanner"]
