"""Default decision handler: match, check, tag, remember."""
from __future__ import annotations

import logging
from pathlib import Path

from .attributes import AttributeStore
from .logger import get_logger, log_event
from .matcher import IgnoreMatcher
from .models import CONTINUE, SKIP_SUBTREE, Action, EntryInfo, ScanReport
from .state import ProcessedCache

LOGGER_NAME = "dbxignore.handler"


class IgnoreHandler:
    """Tags entries matched by their ignore file and prunes tagged directories.

    Safe to call concurrently from the scanner and the watcher: the
    collaborators synchronize internally and setting the attribute twice is
    harmless.
    """

    def __init__(
        self,
        matcher: IgnoreMatcher,
        cache: ProcessedCache,
        store: AttributeStore,
        *,
        dry_run: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        self.matcher = matcher
        self.cache = cache
        self.store = store
        self.dry_run = dry_run
        self.logger = get_logger(LOGGER_NAME, logger)

    def __call__(self, entry: EntryInfo) -> Action:
        path = entry.path
        fingerprint = entry.fingerprint

        if not entry.is_dir and path.name == self.matcher.ignore_file_name:
            self.rules_changed(path)

        cached = self.cache.lookup(path, fingerprint)
        if cached is not None:
            return self._ignored_result(entry) if cached.ignored else CONTINUE

        try:
            should_ignore = self.matcher.should_ignore(path, is_dir=entry.is_dir)
        except (OSError, ValueError) as exc:
            return Action.failed(f"matcher error: {exc!r}")
        if not should_ignore:
            return CONTINUE

        try:
            tagged = self.store.is_tagged(path)
        except OSError as exc:
            return Action.failed(f"cannot read attribute: {exc!r}")

        if not tagged:
            if self.dry_run:
                log_event(
                    self.logger,
                    level=logging.INFO,
                    action="handler.dry_run",
                    message="Would set ignore attribute",
                    extra={"path": path},
                )
            else:
                try:
                    self.store.set_tagged(path)
                except OSError as exc:
                    return Action.failed(f"cannot set attribute: {exc!r}")
                log_event(
                    self.logger,
                    level=logging.INFO,
                    action="handler.tagged",
                    message="Set ignore attribute",
                    extra={"path": path, "directory": entry.is_dir},
                )

        self.cache.record(path, fingerprint, ignored=True)
        return self._ignored_result(entry)

    def rules_changed(self, ignore_file: Path) -> None:
        """Forget decisions that *ignore_file* may have influenced."""

        self.matcher.invalidate(ignore_file)
        removed = self.cache.remove_under(ignore_file.parent)
        log_event(
            self.logger,
            level=logging.DEBUG,
            action="handler.rules_changed",
            message="Ignore file changed; cached decisions dropped",
            extra={"path": ignore_file, "dropped": removed},
        )

    def expire(self, _report: ScanReport | None = None) -> int:
        """Drop expired cache entries; run after every scan."""

        removed = self.cache.clean()
        if removed:
            log_event(
                self.logger,
                level=logging.DEBUG,
                action="handler.cache_expired",
                message="Expired processed-cache entries",
                extra={"removed": removed, "remaining": len(self.cache)},
            )
        return removed

    @staticmethod
    def _ignored_result(entry: EntryInfo) -> Action:
        return SKIP_SUBTREE if entry.is_dir else CONTINUE


__all__ = ["IgnoreHandler"]
