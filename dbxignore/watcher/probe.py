"""Bounded worker that registers watches for newly created directories."""
from __future__ import annotations

import logging
import os
import stat
import threading
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Callable

from ..config import SkipPolicy
from ..logger import log_event

_Sentinel = object()


class DirectoryProbe:
    """Stat new paths off the event loop and watch the ones that are directories.

    Requests beyond ``maxsize`` are dropped with a warning; the periodic
    scanner still reaches such directories.
    """

    def __init__(
        self,
        register: Callable[[Path], object],
        skip_policy: SkipPolicy,
        logger: logging.Logger,
        *,
        maxsize: int,
    ) -> None:
        self._register = register
        self.skip_policy = skip_policy
        self.logger = logger
        self._queue: Queue[Path | object] = Queue(maxsize=maxsize)
        self._stop_event = threading.Event()
        self._worker: threading.Thread | None = None
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            if self._worker and self._worker.is_alive():
                return
            self._stop_event.clear()
            self._worker = threading.Thread(target=self._run, name="DirectoryProbe", daemon=True)
            self._worker.start()

    def stop(self) -> None:
        with self._lock:
            self._stop_event.set()
            try:
                self._queue.put_nowait(_Sentinel)
            except Full:
                pass
            worker = self._worker
            self._worker = None
        if worker and worker.is_alive() and worker is not threading.current_thread():
            worker.join()

    def submit(self, path: Path) -> bool:
        """Queue *path* for probing; return ``False`` when it was dropped."""

        try:
            self._queue.put_nowait(path)
        except Full:
            log_event(
                self.logger,
                level=logging.WARNING,
                action="watcher.probe_dropped",
                message="Directory probe queue is full; new path left to the scanner",
                extra={"path": path},
            )
            return False
        return True

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                item = self._queue.get(timeout=0.5)
            except Empty:
                continue
            if item is _Sentinel:
                break
            self._probe(item)  # type: ignore[arg-type]

    def _probe(self, path: Path) -> None:
        try:
            st = os.lstat(path)
        except OSError:
            return
        if not stat.S_ISDIR(st.st_mode):
            return
        if self.skip_policy.should_prune(path.name):
            return
        try:
            self._register(path)
        except Exception as exc:
            log_event(
                self.logger,
                level=logging.WARNING,
                action="watcher.probe_error",
                message="Failed to watch new directory",
                extra={"path": path, "error": repr(exc)},
            )


__all__ = ["DirectoryProbe"]
