"""Exception hierarchy shared by the scanner, watcher and orchestrator."""
from __future__ import annotations


class DbxIgnoreError(Exception):
    """Base class for errors raised by dbxignore."""


class SetupError(DbxIgnoreError):
    """Startup failed; the daemon cannot run."""


class RootResolutionError(SetupError):
    """The monitored root is missing or is not a directory."""


class WatcherSetupError(SetupError):
    """The OS notification backend could not be created."""


class UnsupportedPlatformError(SetupError):
    """Extended attributes are not available on this platform."""


class Cancelled(DbxIgnoreError):
    """Raised by a loop once its cancellation token has fired."""


class DeadlineExceeded(Cancelled):
    """Cancellation triggered by a token deadline."""


__all__ = [
    "Cancelled",
    "DbxIgnoreError",
    "DeadlineExceeded",
    "RootResolutionError",
    "SetupError",
    "UnsupportedPlatformError",
    "WatcherSetupError",
]
