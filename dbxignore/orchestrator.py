"""Runs the scanner and the watcher side by side."""
from __future__ import annotations

import logging
import threading
from typing import Callable

from .attributes import AttributeStore
from .cancellation import CancellationToken
from .config import DaemonConfig
from .errors import Cancelled, WatcherSetupError
from .file_scanner import IncrementalScanner
from .handler import IgnoreHandler
from .logger import get_logger, log_event
from .matcher import IgnoreMatcher
from .models import Handler
from .realtime_watcher import RealtimeWatcher, WatcherBackend
from .state import ProcessedCache

LOGGER_NAME = "dbxignore.orchestrator"


def build_handler(config: DaemonConfig, *, store: AttributeStore | None = None) -> IgnoreHandler:
    """Wire the default handler from *config*."""

    return IgnoreHandler(
        IgnoreMatcher(config.matcher_cache_size),
        ProcessedCache(config.cache_ttl),
        store or AttributeStore(),
        dry_run=config.dry_run,
    )


class Orchestrator:
    """Owns one scanner and one watcher sharing a handler and a cancellation token."""

    def __init__(
        self,
        scanner: IncrementalScanner,
        watcher: RealtimeWatcher,
        logger: logging.Logger | None = None,
    ) -> None:
        self.scanner = scanner
        self.watcher = watcher
        self.logger = get_logger(LOGGER_NAME, logger)

    @classmethod
    def from_config(
        cls,
        config: DaemonConfig,
        *,
        handler: Handler | None = None,
        backend_factory: Callable[[RealtimeWatcher], WatcherBackend] | None = None,
    ) -> "Orchestrator":
        """Build both loops for ``config.root`` and register the initial watches.

        Raises :class:`~dbxignore.errors.SetupError` subclasses when the root
        cannot be resolved or not even the root can be watched.
        """

        root = config.resolve_root()
        handler = handler or build_handler(config)
        after_scan = handler.expire if isinstance(handler, IgnoreHandler) else None
        scanner = IncrementalScanner(
            root, handler, config.scanner_options(), after_scan=after_scan
        )
        watcher = RealtimeWatcher(
            handler,
            config.watcher_options(),
            backend_factory=backend_factory,
        )
        if watcher.add_recursive(root) == 0:
            watcher.close()
            raise WatcherSetupError(f"Cannot watch root directory: {root}")
        return cls(scanner, watcher)

    def run(self, token: CancellationToken) -> None:
        """Run both loops until they exit; raises ``Cancelled`` afterwards."""

        threads = [
            threading.Thread(
                target=self._run_loop,
                args=("scanner", self.scanner.run, token),
                name="IncrementalScanner",
                daemon=True,
            ),
            threading.Thread(
                target=self._run_loop,
                args=("watcher", self.watcher.run, token),
                name="RealtimeWatcher",
                daemon=True,
            ),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        token.raise_if_cancelled()

    def close(self) -> None:
        self.watcher.close()

    def _run_loop(
        self,
        name: str,
        loop: Callable[[CancellationToken], None],
        token: CancellationToken,
    ) -> None:
        log_event(
            self.logger,
            level=logging.INFO,
            action=f"{name}.started",
            message=f"Starting {name}",
            extra={"root": self.scanner.root},
        )
        try:
            loop(token)
        except Cancelled:
            log_event(
                self.logger,
                level=logging.DEBUG,
                action=f"{name}.stopped",
                message=f"{name.capitalize()} stopped",
            )
        except Exception as exc:
            log_event(
                self.logger,
                level=logging.ERROR,
                action=f"{name}.crashed",
                message=f"{name.capitalize()} exited unexpectedly",
                extra={"error": repr(exc)},
            )
            token.cancel(f"{name} failed")
        else:
            # Loops only return by raising; stop the sibling as well.
            token.cancel(f"{name} returned")


__all__ = ["Orchestrator", "build_handler"]
