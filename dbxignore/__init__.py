"""dbxignore package exports."""

from .cancellation import CancellationToken
from .cli import main as cli_main
from .config import DaemonConfig, ScannerOptions, SkipPolicy, WatcherOptions
from .file_scanner import IncrementalScanner
from .handler import IgnoreHandler
from .models import CONTINUE, SKIP_SUBTREE, Action, EntryInfo, Handler
from .orchestrator import Orchestrator
from .realtime_watcher import RealtimeWatcher

__all__ = [
    "CONTINUE",
    "SKIP_SUBTREE",
    "Action",
    "CancellationToken",
    "DaemonConfig",
    "EntryInfo",
    "Handler",
    "IgnoreHandler",
    "IncrementalScanner",
    "Orchestrator",
    "RealtimeWatcher",
    "ScannerOptions",
    "SkipPolicy",
    "WatcherOptions",
    "cli_main",
]
