"""Cancellation token shared by the long-running loops."""
from __future__ import annotations

import threading
import time

from .errors import Cancelled, DeadlineExceeded


class CancellationToken:
    """A one-shot, thread-safe cancellation signal with an optional deadline.

    Loops call :meth:`wait` instead of :func:`time.sleep` so they wake up as
    soon as the token fires, and :meth:`raise_if_cancelled` at every step
    boundary.
    """

    def __init__(self, *, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._error: Cancelled | None = None
        self._lock = threading.Lock()

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._error is None:
                self._error = Cancelled(reason)
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            with self._lock:
                if self._error is None:
                    self._error = DeadlineExceeded("deadline exceeded")
            self._event.set()
            return True
        return False

    @property
    def error(self) -> Cancelled | None:
        """The terminal error, or ``None`` while the token is live."""

        if not self.cancelled:
            return None
        return self._error

    def wait(self, timeout: float | None = None) -> bool:
        """Block up to *timeout* seconds; return ``True`` once cancelled."""

        if self._deadline is not None:
            remaining = max(self._deadline - time.monotonic(), 0.0)
            timeout = remaining if timeout is None else min(timeout, remaining)
        self._event.wait(timeout)
        return self.cancelled

    def raise_if_cancelled(self) -> None:
        error = self.error
        if error is not None:
            raise type(error)(str(error))


__all__ = ["CancellationToken"]
