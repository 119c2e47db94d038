from __future__ import annotations

from pathlib import Path

import pytest

from dbxignore import cli


@pytest.fixture()
def patched_store(monkeypatch, memory_store_cls):
    store = memory_store_cls()
    monkeypatch.setattr("dbxignore.cli.AttributeStore", lambda: store)
    monkeypatch.setattr("dbxignore.orchestrator.AttributeStore", lambda: store)
    return store


def make_tree(root: Path) -> None:
    (root / ".dropboxignore").write_text("*.log\n", encoding="utf-8")
    (root / "x.log").write_text("log", encoding="utf-8")


def test_cli_scan_tags_matched_files(tmp_path, patched_store, capsys) -> None:
    make_tree(tmp_path)

    exit_code = cli.main(["scan", "--root", str(tmp_path)])

    assert exit_code == 0
    assert "Scanned 2 file(s) and 1 dir(s)" in capsys.readouterr().out
    assert patched_store.tagged == {tmp_path.resolve() / "x.log"}


def test_cli_scan_dry_run_leaves_files_untouched(tmp_path, patched_store) -> None:
    make_tree(tmp_path)

    assert cli.main(["scan", "--root", str(tmp_path), "--dry-run"]) == 0
    assert patched_store.tagged == set()


def test_cli_scan_rejects_missing_root(tmp_path, patched_store, capsys) -> None:
    exit_code = cli.main(["scan", "--root", str(tmp_path / "missing")])

    assert exit_code == 1
    assert "Scan failed" in capsys.readouterr().err


def test_cli_serve_rejects_missing_root(tmp_path, patched_store, capsys) -> None:
    exit_code = cli.main(["serve", "--root", str(tmp_path / "missing")])

    assert exit_code == 1
    assert "Startup failed" in capsys.readouterr().err


def test_cli_check_reports_match_and_tag(tmp_path, patched_store, capsys) -> None:
    make_tree(tmp_path)
    (tmp_path / "notes.txt").write_text("notes", encoding="utf-8")
    patched_store.set_tagged(tmp_path / "x.log")

    exit_code = cli.main(["check", str(tmp_path / "x.log"), str(tmp_path / "notes.txt")])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "x.log: matched=yes tagged=yes" in out
    assert "notes.txt: matched=no tagged=no" in out


def test_cli_untag(tmp_path, patched_store, capsys) -> None:
    make_tree(tmp_path)
    target = tmp_path / "x.log"
    patched_store.set_tagged(target)

    assert cli.main(["untag", "--dry-run", str(target)]) == 0
    assert "Would remove" in capsys.readouterr().out
    assert patched_store.is_tagged(target)

    assert cli.main(["untag", str(target)]) == 0
    assert "Removed ignore attribute" in capsys.readouterr().out
    assert not patched_store.is_tagged(target)


def test_cli_without_command_prints_help(capsys) -> None:
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out
