from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

import pytest

from dbxignore.logger import ROOT_LOGGER_NAME
from dbxignore.models import CONTINUE, Action, EntryInfo
from dbxignore.realtime_watcher import WatcherBackend


class FakeBackend(WatcherBackend):
    """In-memory watch registry; notifications are published by the tests."""

    def __init__(self, watcher, fail: set[Path] | None = None) -> None:
        self.watcher = watcher
        self.fail = fail or set()
        self.paths: set[Path] = set()
        self.closed = 0
        self._lock = threading.Lock()

    def add(self, path: Path) -> None:
        if path in self.fail:
            raise PermissionError(13, "Permission denied", str(path))
        with self._lock:
            self.paths.add(path)

    def remove(self, path: Path) -> None:
        with self._lock:
            self.paths.discard(path)

    def watched(self) -> set[Path]:
        with self._lock:
            return set(self.paths)

    def close(self) -> None:
        self.closed += 1


class MemoryStore:
    """Attribute store keeping tags in a set."""

    def __init__(self) -> None:
        self.tagged: set[Path] = set()
        self.set_calls = 0
        self._lock = threading.Lock()

    def is_tagged(self, path) -> bool:
        with self._lock:
            return Path(path) in self.tagged

    def set_tagged(self, path) -> None:
        with self._lock:
            self.set_calls += 1
            self.tagged.add(Path(path))

    def remove_tagged(self, path) -> None:
        with self._lock:
            self.tagged.discard(Path(path))


class RecordingHandler:
    """Handler recording every call; per-path results can be preset."""

    def __init__(self, results: dict[Path, Action] | None = None) -> None:
        self.results = results or {}
        self.calls: list[tuple[Path, float]] = []
        self._lock = threading.Lock()

    def __call__(self, entry: EntryInfo) -> Action:
        with self._lock:
            self.calls.append((entry.path, time.monotonic()))
        return self.results.get(entry.path, CONTINUE)

    @property
    def paths(self) -> list[Path]:
        with self._lock:
            return [path for path, _ in self.calls]


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def wait_until(predicate, *, timeout: float = 2.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture()
def fake_backend_cls():
    return FakeBackend


@pytest.fixture()
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def memory_store_cls():
    return MemoryStore


@pytest.fixture()
def recording_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture()
def recording_handler_cls():
    return RecordingHandler


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def wait_for():
    return wait_until


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
