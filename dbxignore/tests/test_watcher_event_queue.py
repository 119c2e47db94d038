"""Tests for watcher event queue coalescing and settling."""
from __future__ import annotations

from pathlib import Path

from dbxignore.watcher.event_queue import EventQueue
from dbxignore.watcher.types import EventKind


def test_event_queue_coalesces_per_path(tmp_path: Path, fake_clock) -> None:
    queue = EventQueue(debounce=0.5, clock=fake_clock)
    path = tmp_path / "file.txt"

    queue.add(path, EventKind.CREATE)
    for _ in range(4):
        fake_clock.advance(0.01)
        queue.add(path, EventKind.WRITE)

    assert len(queue) == 1
    fake_clock.advance(0.6)
    settled = queue.drain_settled()
    assert len(settled) == 1
    assert settled[0].kind is EventKind.WRITE
    assert settled[0].path == path
    assert len(queue) == 0


def test_event_queue_waits_for_quiet_period(tmp_path: Path, fake_clock) -> None:
    queue = EventQueue(debounce=0.1, clock=fake_clock)
    path = tmp_path / "file.txt"

    queue.add(path, EventKind.WRITE)
    fake_clock.advance(0.05)
    assert queue.drain_settled() == []
    assert path in queue

    queue.add(path, EventKind.WRITE)
    fake_clock.advance(0.08)
    assert queue.drain_settled() == []

    fake_clock.advance(0.03)
    assert [event.path for event in queue.drain_settled()] == [path]


def test_event_queue_settles_paths_independently(tmp_path: Path, fake_clock) -> None:
    queue = EventQueue(debounce=0.1, clock=fake_clock)
    first = tmp_path / "first"
    second = tmp_path / "second"

    queue.add(first, EventKind.CREATE)
    fake_clock.advance(0.06)
    queue.add(second, EventKind.RENAME)
    fake_clock.advance(0.06)

    assert [event.path for event in queue.drain_settled()] == [first]
    assert second in queue


def test_event_queue_clear_drops_everything(tmp_path: Path, fake_clock) -> None:
    queue = EventQueue(debounce=0.0, clock=fake_clock)
    queue.add(tmp_path / "a", EventKind.WRITE)
    queue.add(tmp_path / "b", EventKind.WRITE)

    queue.clear()

    assert len(queue) == 0
    assert queue.drain_settled() == []
