"""Realtime filesystem watcher with per-path debouncing."""
from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from queue import Empty, Queue
from typing import Callable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from .cancellation import CancellationToken
from .config import WatcherOptions
from .errors import WatcherSetupError
from .logger import get_logger, log_event
from .models import EntryInfo, Handler
from .watcher.event_queue import EventQueue
from .watcher.probe import DirectoryProbe
from .watcher.types import EventKind, RawNotification, WatchEvent

LOGGER_NAME = "dbxignore.watcher"


def _within(path: Path, directory: Path) -> bool:
    return path == directory or directory in path.parents


class WatcherBackend:
    """Base protocol for OS notification backends.

    Backends deliver :class:`RawNotification` objects through
    :meth:`RealtimeWatcher.publish` and failures through
    :meth:`RealtimeWatcher.publish_error`. ``add`` and ``remove`` may be
    called from any thread.
    """

    def add(self, path: Path) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def remove(self, path: Path) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def watched(self) -> set[Path]:  # pragma: no cover - interface
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class _WatchdogEventHandler(FileSystemEventHandler):
    """Translate watchdog events into :class:`RawNotification` objects."""

    def __init__(self, watcher: "RealtimeWatcher") -> None:
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            notification = self._translate(event)
        except Exception as exc:
            self._watcher.publish_error(exc)
            return
        self._watcher.publish(notification)

    @staticmethod
    def _translate(event: FileSystemEvent) -> RawNotification:
        event_type = event.event_type
        is_directory = bool(event.is_directory)
        path = Path(os.fsdecode(event.src_path))
        if event_type == EVENT_TYPE_MOVED:
            # Moved out of every watched tree.
            if not event.dest_path:
                return RawNotification(path, None, is_directory, removed=True)
            destination = Path(os.fsdecode(event.dest_path))
            return RawNotification(destination, EventKind.RENAME, is_directory, src_path=path)
        if event_type == EVENT_TYPE_CREATED:
            return RawNotification(path, EventKind.CREATE, is_directory)
        if event_type == EVENT_TYPE_DELETED:
            return RawNotification(path, None, is_directory, removed=True)
        # Directory modifications only echo changes to their children.
        if event_type == EVENT_TYPE_MODIFIED and not is_directory:
            return RawNotification(path, EventKind.WRITE, is_directory)
        return RawNotification(path, None, is_directory)


class WatchdogBackend(WatcherBackend):
    """watchdog observer with one recursive watch per top-level directory.

    A directory below an already scheduled one is only recorded: the
    recursive watch reports its changes, so the number of OS watch
    instances and emitter threads does not grow with the tree.
    """

    def __init__(self, watcher: "RealtimeWatcher") -> None:
        self._handler = _WatchdogEventHandler(watcher)
        self._observer = Observer()
        self._schedules: dict[Path, ObservedWatch | None] = {}
        self._registered: set[Path] = set()
        self._lock = threading.Lock()
        self._observer.start()

    def add(self, path: Path) -> None:
        with self._lock:
            if path in self._registered:
                return
            if any(_within(path, root) for root in self._schedules):
                self._registered.add(path)
                return
            self._schedules[path] = None

        try:
            watch = self._observer.schedule(self._handler, str(path), recursive=True)
        except Exception:
            with self._lock:
                self._schedules.pop(path, None)
            raise

        with self._lock:
            self._schedules[path] = watch
            self._registered.add(path)
            nested = [root for root in self._schedules if root != path and path in root.parents]
            redundant = [self._schedules.pop(root) for root in nested]
        for old in redundant:
            self._unschedule(old)

    def remove(self, path: Path) -> None:
        watch = None
        with self._lock:
            self._registered.discard(path)
            if path in self._schedules and not any(path in other.parents for other in self._registered):
                watch = self._schedules.pop(path)
        self._unschedule(watch)

    def watched(self) -> set[Path]:
        with self._lock:
            return set(self._registered)

    def scheduled(self) -> set[Path]:
        with self._lock:
            return {path for path, watch in self._schedules.items() if watch is not None}

    def close(self) -> None:
        self._observer.stop()
        if self._observer.is_alive() and self._observer is not threading.current_thread():
            self._observer.join()
        with self._lock:
            self._schedules.clear()
            self._registered.clear()

    def _unschedule(self, watch: ObservedWatch | None) -> None:
        if watch is None:
            return
        try:
            self._observer.unschedule(watch)
        except KeyError:
            pass


class RealtimeWatcher:
    """Coalesces filesystem notifications and hands settled paths to a handler.

    Notifications land in a thread-safe queue filled by the backend. The
    loop in :meth:`run` buffers them per path in an :class:`EventQueue` and,
    every ``flush_interval`` seconds, dispatches the paths that have been
    quiet for at least ``debounce`` seconds, outside the buffer lock.

    Notifications below a pruned directory are dropped on arrival. A
    directory is pruned when the handler answers ``SKIP_SUBTREE`` for it or
    when :meth:`remove` is called; any path below a watched root whose
    ancestor name is excluded by the skip policy is dropped as well.
    Pruned directories are offered to the handler again whenever an ignore
    file above them changes.
    """

    def __init__(
        self,
        handler: Handler,
        options: WatcherOptions | None = None,
        *,
        backend_factory: Callable[["RealtimeWatcher"], WatcherBackend] | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.handler = handler
        self.options = options or WatcherOptions()
        self.skip_policy = self.options.skip_policy
        self.logger = get_logger(LOGGER_NAME, logger)

        self._clock = clock
        self._queue: Queue[RawNotification | BaseException] = Queue()
        self._events = EventQueue(debounce=self.options.debounce, clock=clock)
        self._probe = DirectoryProbe(
            self._register_subtree,
            self.skip_policy,
            self.logger,
            maxsize=self.options.probe_queue_size,
        )
        self._lock = threading.Lock()
        self._roots: set[Path] = set()
        self._pruned: set[Path] = set()
        self._closed = False

        factory = backend_factory or self._default_backend_factory
        try:
            self._backend = factory(self)
        except OSError as exc:
            raise WatcherSetupError(f"Cannot create filesystem watcher: {exc}") from exc
        self._probe.start()

    def __enter__(self) -> "RealtimeWatcher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def pending(self) -> int:
        """Number of paths waiting for their debounce window to elapse."""

        return len(self._events)

    def watched(self) -> set[Path]:
        return self._backend.watched()

    def pruned(self) -> set[Path]:
        with self._lock:
            return set(self._pruned)

    def is_pruned(self, path: str | Path) -> bool:
        """Return ``True`` when changes at *path* are not reported."""

        path = Path(path)
        with self._lock:
            if any(parent in self._pruned for parent in path.parents):
                return True
            root = next((root for root in self._roots if _within(path, root)), None)
        if root is None:
            return False
        return any(self.skip_policy.should_prune(name) for name in path.relative_to(root).parts[:-1])

    def add(self, path: str | Path) -> None:
        """Watch a single directory; raises :class:`OSError` on failure."""

        path = Path(path)
        self._backend.add(path)
        with self._lock:
            self._pruned.discard(path)

    def remove(self, path: str | Path) -> None:
        """Stop reporting changes at or below *path*."""

        self._prune(Path(path))

    def add_recursive(self, root: str | Path) -> int:
        """Watch *root* and every directory below it not pruned by the skip policy.

        Directories that cannot be watched or listed are logged and skipped.
        Returns the number of directories now watched.
        """

        root = Path(root)
        with self._lock:
            self._roots.add(root)
            self._pruned.discard(root)
        return self._register_subtree(root, is_root=True)

    def publish(self, notification: RawNotification) -> None:
        """Submit a backend notification to the event loop."""

        self._queue.put(notification)

    def publish_error(self, error: BaseException) -> None:
        self._queue.put(error)

    def run(self, token: CancellationToken) -> None:
        """Process notifications until *token* fires, then raise ``Cancelled``."""

        flush_interval = self.options.flush_interval
        next_flush = self._clock() + flush_interval

        while True:
            token.raise_if_cancelled()

            timeout = min(max(next_flush - self._clock(), 0.0), flush_interval)
            try:
                item = self._queue.get(timeout=timeout)
            except Empty:
                item = None

            if isinstance(item, RawNotification):
                self._ingest(item)
            elif isinstance(item, BaseException):
                log_event(
                    self.logger,
                    level=logging.WARNING,
                    action="watcher.backend_error",
                    message="Watch error",
                    extra={"error": repr(item)},
                )

            now = self._clock()
            if now >= next_flush:
                self.flush_pending()
                next_flush = now + flush_interval

    def flush_pending(self) -> list[WatchEvent]:
        """Dispatch every settled event and return them."""

        settled = self._events.drain_settled()
        for event in settled:
            self._dispatch(event)
        return settled

    def close(self) -> None:
        """Release the backend and the probe worker; safe to call twice."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._probe.stop()
        self._backend.close()
        self._events.clear()

    def _register_subtree(self, top: Path, is_root: bool = False) -> int:
        count = 0
        stack: list[tuple[Path, bool]] = [(top, True)]
        while stack:
            directory, is_top = stack.pop()
            if self.skip_policy.should_prune(directory.name, is_root=is_root and is_top):
                continue
            if not is_top:
                with self._lock:
                    if directory in self._pruned:
                        continue
            try:
                self._backend.add(directory)
                count += 1
            except OSError as exc:
                log_event(
                    self.logger,
                    level=logging.WARNING,
                    action="watcher.watch_failed",
                    message="Failed to watch directory (continuing)",
                    extra={"path": directory, "error": repr(exc)},
                )

            try:
                with os.scandir(directory) as it:
                    children = list(it)
            except OSError as exc:
                log_event(
                    self.logger,
                    level=logging.WARNING,
                    action="watcher.access_error",
                    message="Cannot list directory",
                    extra={"path": directory, "error": repr(exc)},
                )
                continue

            for child in children:
                try:
                    if child.is_dir(follow_symlinks=False):
                        stack.append((Path(child.path), False))
                except OSError:
                    continue
        return count

    def _ingest(self, notification: RawNotification) -> None:
        if notification.is_directory:
            if notification.src_path is not None:
                self._forget_subtree(notification.src_path)
            if notification.removed:
                self._forget_subtree(notification.path)
        if notification.kind is None:
            return

        path = notification.path
        if self.is_pruned(path):
            return
        self._events.add(path, notification.kind)
        if path.name == self.options.ignore_file_name:
            self._recheck_pruned(path.parent)
        if notification.kind in (EventKind.CREATE, EventKind.RENAME):
            self._probe.submit(path)

    def _dispatch(self, event: WatchEvent) -> None:
        try:
            entry = EntryInfo.from_path(event.path)
        except FileNotFoundError:
            return
        except OSError as exc:
            log_event(
                self.logger,
                level=logging.WARNING,
                action="watcher.entry_error",
                message="Cannot access changed path",
                extra={"path": event.path, "error": repr(exc)},
            )
            return

        try:
            action = self.handler(entry)
        except Exception as exc:
            log_event(
                self.logger,
                level=logging.WARNING,
                action="watcher.handler_error",
                message="Handler raised an exception",
                extra={"path": event.path, "kind": event.kind.name, "error": repr(exc)},
            )
            return

        if action.is_failure:
            log_event(
                self.logger,
                level=logging.WARNING,
                action="watcher.handler_failed",
                message="Handler could not classify entry",
                extra={"path": event.path, "kind": event.kind.name, "reason": action.reason},
            )
        elif entry.is_dir:
            if action.skips_subtree:
                self._prune(entry.path)
            elif self._unprune(entry.path):
                self._register_subtree(entry.path)

    def _prune(self, directory: Path) -> None:
        with self._lock:
            if directory in self._pruned:
                return
            self._pruned.add(directory)
            roots = set(self._roots)
        for path in self._backend.watched():
            if path not in roots and _within(path, directory):
                self._backend.remove(path)
        log_event(
            self.logger,
            level=logging.DEBUG,
            action="watcher.pruned",
            message="Ignoring changes below directory",
            extra={"path": directory},
        )

    def _unprune(self, directory: Path) -> bool:
        with self._lock:
            if directory not in self._pruned:
                return False
            self._pruned.discard(directory)
        log_event(
            self.logger,
            level=logging.DEBUG,
            action="watcher.resumed",
            message="Reporting changes below directory again",
            extra={"path": directory},
        )
        return True

    def _forget_subtree(self, directory: Path) -> None:
        """Drop state for a directory that was deleted or renamed away."""

        with self._lock:
            self._pruned = {path for path in self._pruned if not _within(path, directory)}
            roots = set(self._roots)
        for path in self._backend.watched():
            if path not in roots and _within(path, directory):
                self._backend.remove(path)

    def _recheck_pruned(self, directory: Path) -> None:
        with self._lock:
            affected = [path for path in self._pruned if directory in path.parents]
        for path in affected:
            self._events.add(path, EventKind.WRITE)

    @staticmethod
    def _default_backend_factory(watcher: "RealtimeWatcher") -> WatcherBackend:
        return WatchdogBackend(watcher)


__all__ = ["RealtimeWatcher", "WatchdogBackend", "WatcherBackend"]
