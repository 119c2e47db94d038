"""Command line interface for dbxignore."""
from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path

from .attributes import AttributeStore
from .cancellation import CancellationToken
from .config import (
    DEFAULT_DEBOUNCE,
    DEFAULT_ROOT,
    DEFAULT_SCAN_INTERVAL,
    DaemonConfig,
)
from .errors import Cancelled, SetupError
from .file_scanner import IncrementalScanner
from .logger import configure_logging
from .matcher import IgnoreMatcher
from .orchestrator import Orchestrator, build_handler

__version__ = "0.1.0"


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "handler"):
        parser.print_help()
        return 1
    return args.handler(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dbxignore", description="Dropbox ignore daemon")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--root", "-r", type=Path, default=Path(DEFAULT_ROOT), help="Root directory to monitor/scan")
    common.add_argument("--dry-run", "-n", action="store_true", help="Show what would be done without making changes")
    common.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    common.add_argument("--skip-dir", action="append", default=[], help="Extra directory name to never descend into")
    common.add_argument("--log-file", type=Path, help="Write logs to a rotating file instead of stderr")

    serve = subparsers.add_parser("serve", parents=[common], help="Run the daemon")
    serve.add_argument("--scan-interval", type=float, default=DEFAULT_SCAN_INTERVAL, help="Seconds between scans")
    serve.add_argument("--debounce", type=float, default=DEFAULT_DEBOUNCE, help="Seconds a path must stay quiet")
    serve.set_defaults(handler=_handle_serve)

    scan = subparsers.add_parser("scan", parents=[common], help="Run a one-time scan")
    scan.set_defaults(handler=_handle_scan)

    check = subparsers.add_parser("check", help="Show whether paths are matched and tagged")
    check.add_argument("paths", nargs="+", type=Path)
    check.set_defaults(handler=_handle_check)

    untag = subparsers.add_parser("untag", help="Remove the ignore attribute from paths")
    untag.add_argument("paths", nargs="+", type=Path)
    untag.add_argument("--dry-run", "-n", action="store_true")
    untag.set_defaults(handler=_handle_untag)

    return parser


def _config_from_args(args: argparse.Namespace) -> DaemonConfig:
    config = DaemonConfig(
        root=args.root,
        dry_run=args.dry_run,
        verbose=args.verbose,
        extra_skip_dirs=tuple(args.skip_dir),
        log_file=args.log_file,
    )
    if hasattr(args, "scan_interval"):
        config.scan_interval = args.scan_interval
        config.debounce = args.debounce
    configure_logging(config.log_file, level=config.log_level)
    return config


def _handle_serve(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    try:
        orchestrator = Orchestrator.from_config(config)
    except SetupError as exc:
        print(f"Startup failed: {exc}", file=sys.stderr)
        return 1

    token = CancellationToken()

    def _request_shutdown(signum: int, _frame: object) -> None:
        token.cancel(f"signal {signal.Signals(signum).name}")

    signal.signal(signal.SIGINT, _request_shutdown)
    signal.signal(signal.SIGTERM, _request_shutdown)

    print(f"dbxignore watching {orchestrator.scanner.root}. Press Ctrl+C to stop.")
    try:
        orchestrator.run(token)
    except Cancelled:
        pass
    finally:
        orchestrator.close()
    return 0


def _handle_scan(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    try:
        scanner = IncrementalScanner(
            config.resolve_root(),
            build_handler(config),
            config.scanner_options(),
        )
    except SetupError as exc:
        print(f"Scan failed: {exc}", file=sys.stderr)
        return 1

    report = scanner.scan()
    print(
        f"Scanned {report.files} file(s) and {report.dirs} dir(s) "
        f"({report.skipped_dirs} skipped, {report.failures} failure(s))"
    )
    return 0


def _handle_check(args: argparse.Namespace) -> int:
    matcher = IgnoreMatcher()
    try:
        store = AttributeStore()
    except SetupError as exc:
        print(f"Check failed: {exc}", file=sys.stderr)
        return 1

    status = 0
    for raw_path in args.paths:
        path = Path(raw_path).expanduser().absolute()
        try:
            matched = matcher.should_ignore(path)
            tagged = store.is_tagged(path)
        except OSError as exc:
            print(f"{path}: error: {exc}", file=sys.stderr)
            status = 1
            continue
        print(f"{path}: matched={'yes' if matched else 'no'} tagged={'yes' if tagged else 'no'}")
    return status


def _handle_untag(args: argparse.Namespace) -> int:
    try:
        store = AttributeStore()
    except SetupError as exc:
        print(f"Untag failed: {exc}", file=sys.stderr)
        return 1

    status = 0
    for raw_path in args.paths:
        path = Path(raw_path).expanduser().absolute()
        if args.dry_run:
            print(f"Would remove ignore attribute from {path}")
            continue
        try:
            store.remove_tagged(path)
        except OSError as exc:
            print(f"{path}: error: {exc}", file=sys.stderr)
            status = 1
            continue
        print(f"Removed ignore attribute from {path}")
    return status


__all__ = ["main"]


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
