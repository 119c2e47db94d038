from __future__ import annotations

from pathlib import Path

import pytest

from dbxignore.config import (
    DEFAULT_SKIP_DIRS,
    DaemonConfig,
    ScannerOptions,
    SkipPolicy,
    WatcherOptions,
    resolve_root,
)
from dbxignore.errors import RootResolutionError


def test_skip_policy_prunes_known_and_hidden_names() -> None:
    policy = SkipPolicy()

    assert policy.should_prune(".git")
    assert policy.should_prune("node_modules")
    assert policy.should_prune(".Trash")
    assert not policy.should_prune("photos")
    assert not policy.should_prune(".hidden-root", is_root=True)


def test_skip_policy_extension_returns_new_value() -> None:
    policy = SkipPolicy(skip_hidden=False)

    extended = policy.with_names(["build"])
    trimmed = extended.without_names(["node_modules"])

    assert extended.should_prune("build")
    assert not policy.should_prune("build")
    assert not trimmed.should_prune("node_modules")
    assert policy.names == DEFAULT_SKIP_DIRS
    assert not policy.should_prune(".config")


def test_options_validate_intervals() -> None:
    with pytest.raises(ValueError):
        ScannerOptions(scan_interval=0)
    with pytest.raises(ValueError):
        WatcherOptions(flush_interval=0)
    with pytest.raises(ValueError):
        WatcherOptions(debounce=-1)


def test_daemon_config_builds_component_options(tmp_path: Path) -> None:
    config = DaemonConfig(
        root=tmp_path,
        verbose=True,
        scan_interval=30,
        debounce=0.2,
        extra_skip_dirs=("build",),
    )

    scanner_options = config.scanner_options()
    watcher_options = config.watcher_options()

    assert scanner_options.scan_interval == 30
    assert watcher_options.debounce == 0.2
    assert scanner_options.skip_policy.should_prune("build")
    assert watcher_options.skip_policy.should_prune(".git")
    assert config.log_level == 10


def test_resolve_root_expands_home(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    (tmp_path / "Dropbox").mkdir()

    config = DaemonConfig(root=Path("~/Dropbox"))

    assert config.resolve_root() == (tmp_path / "Dropbox").resolve()


def test_resolve_root_rejects_files_and_missing_paths(tmp_path: Path) -> None:
    regular = tmp_path / "file.txt"
    regular.write_text("x", encoding="utf-8")

    with pytest.raises(RootResolutionError):
        resolve_root(regular)
    with pytest.raises(RootResolutionError):
        resolve_root(tmp_path / "missing")
