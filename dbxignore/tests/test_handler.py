"""Tests for :mod:`dbxignore.handler`."""
from __future__ import annotations

import os
import threading
from pathlib import Path

import pytest

from dbxignore.handler import IgnoreHandler
from dbxignore.matcher import IgnoreMatcher
from dbxignore.models import CONTINUE, SKIP_SUBTREE, EntryInfo
from dbxignore.state import ProcessedCache


@pytest.fixture()
def tree(tmp_path: Path) -> Path:
    (tmp_path / ".dropboxignore").write_text("*.log\nbuild/\n", encoding="utf-8")
    (tmp_path / "build").mkdir()
    (tmp_path / "debug.log").write_text("log", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("notes", encoding="utf-8")
    return tmp_path


def make_handler(store, *, dry_run: bool = False) -> IgnoreHandler:
    return IgnoreHandler(IgnoreMatcher(), ProcessedCache(60.0), store, dry_run=dry_run)


def test_matched_file_is_tagged(tree: Path, memory_store) -> None:
    handler = make_handler(memory_store)

    action = handler(EntryInfo.from_path(tree / "debug.log"))

    assert action is CONTINUE
    assert memory_store.tagged == {tree / "debug.log"}


def test_matched_directory_is_tagged_and_pruned(tree: Path, memory_store) -> None:
    handler = make_handler(memory_store)

    action = handler(EntryInfo.from_path(tree / "build"))

    assert action is SKIP_SUBTREE
    assert tree / "build" in memory_store.tagged


def test_unmatched_entry_is_left_alone(tree: Path, memory_store) -> None:
    handler = make_handler(memory_store)

    assert handler(EntryInfo.from_path(tree / "notes.txt")) is CONTINUE
    assert memory_store.tagged == set()
    assert len(handler.cache) == 0


def test_dry_run_does_not_tag(tree: Path, memory_store) -> None:
    handler = make_handler(memory_store, dry_run=True)

    assert handler(EntryInfo.from_path(tree / "build")) is SKIP_SUBTREE
    assert memory_store.tagged == set()
    assert len(handler.cache) == 1


def test_already_tagged_entry_is_not_rewritten(tree: Path, memory_store) -> None:
    memory_store.tagged.add(tree / "debug.log")
    handler = make_handler(memory_store)

    assert handler(EntryInfo.from_path(tree / "debug.log")) is CONTINUE
    assert memory_store.set_calls == 0


def test_cache_hit_skips_the_store(tree: Path, memory_store) -> None:
    handler = make_handler(memory_store)
    entry = EntryInfo.from_path(tree / "build")
    handler(entry)
    memory_store.tagged.clear()

    assert handler(entry) is SKIP_SUBTREE
    assert memory_store.set_calls == 1
    assert memory_store.tagged == set()


def test_modified_entry_is_reevaluated(tree: Path, memory_store) -> None:
    handler = make_handler(memory_store)
    target = tree / "debug.log"
    handler(EntryInfo.from_path(target))
    memory_store.tagged.clear()

    stamp = target.stat().st_mtime_ns + 5_000_000_000
    os.utime(target, ns=(stamp, stamp))
    handler(EntryInfo.from_path(target))

    assert memory_store.set_calls == 2
    assert target in memory_store.tagged


def test_store_errors_are_reported_as_failures(tree: Path, memory_store_cls) -> None:
    class BrokenStore(memory_store_cls):
        def set_tagged(self, path) -> None:
            raise PermissionError(1, "Operation not permitted", str(path))

    handler = make_handler(BrokenStore())

    action = handler(EntryInfo.from_path(tree / "debug.log"))

    assert action.is_failure
    assert "cannot set attribute" in (action.reason or "")
    assert len(handler.cache) == 0


def test_unreadable_ignore_file_is_a_failure(tmp_path: Path, memory_store) -> None:
    (tmp_path / ".dropboxignore").mkdir()
    (tmp_path / "file.txt").write_text("x", encoding="utf-8")
    handler = make_handler(memory_store)

    action = handler(EntryInfo.from_path(tmp_path / "file.txt"))

    assert action.is_failure
    assert memory_store.tagged == set()


def test_concurrent_callers_converge_on_one_tag(tree: Path, memory_store) -> None:
    handler = make_handler(memory_store)
    entry = EntryInfo.from_path(tree / "debug.log")
    barrier = threading.Barrier(2)
    results: list[object] = []
    errors: list[BaseException] = []

    def caller() -> None:
        barrier.wait()
        for _ in range(50):
            try:
                results.append(handler(entry))
            except Exception as exc:
                errors.append(exc)

    threads = [threading.Thread(target=caller) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert set(results) == {CONTINUE}
    assert memory_store.tagged == {tree / "debug.log"}
    assert 1 <= memory_store.set_calls <= 2


def test_changed_ignore_file_drops_cached_decisions(tree: Path, memory_store) -> None:
    handler = make_handler(memory_store)
    build = EntryInfo.from_path(tree / "build")
    assert handler(build) is SKIP_SUBTREE

    rules = tree / ".dropboxignore"
    rules.write_text("*.log\n", encoding="utf-8")
    handler(EntryInfo.from_path(rules))

    assert len(handler.cache) == 0
    assert handler(build) is CONTINUE


def test_expire_drops_stale_cache_entries(tree: Path, memory_store, fake_clock) -> None:
    handler = IgnoreHandler(IgnoreMatcher(), ProcessedCache(5.0, clock=fake_clock), memory_store)
    handler(EntryInfo.from_path(tree / "debug.log"))
    fake_clock.advance(3)
    handler(EntryInfo.from_path(tree / "build"))
    fake_clock.advance(3)

    assert handler.expire() == 1
    assert len(handler.cache) == 1
    assert handler.expire() == 0
