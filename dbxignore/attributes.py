"""Extended-attribute tagging understood by the Dropbox client."""
from __future__ import annotations

import errno
import os
import sys
from pathlib import Path

from .errors import UnsupportedPlatformError

# macOS File Provider attribute and the Linux client's attribute.
ATTR_MACOS = "com.apple.fileprovider.ignore#P"
ATTR_LINUX = "user.com.dropbox.ignored"
ATTR_VALUE = b"1"

_MISSING_ATTR_ERRNOS = frozenset({errno.ENODATA, getattr(errno, "ENOATTR", errno.ENODATA)})


def default_attribute_name(platform: str | None = None) -> str:
    platform = platform or sys.platform
    if platform == "darwin":
        return ATTR_MACOS
    return ATTR_LINUX


class AttributeStore:
    """Reads and writes the "ignored" marker; every operation is idempotent.

    Symbolic links are followed, so tagging a link tags its target.
    """

    def __init__(self, name: str | None = None) -> None:
        if not hasattr(os, "setxattr"):
            raise UnsupportedPlatformError(
                f"Extended attributes are not supported on {sys.platform}"
            )
        self.name = name or default_attribute_name()

    def is_tagged(self, path: str | Path) -> bool:
        try:
            os.getxattr(path, self.name)
        except OSError as exc:
            if exc.errno in _MISSING_ATTR_ERRNOS:
                return False
            raise
        return True

    def set_tagged(self, path: str | Path) -> None:
        os.setxattr(path, self.name, ATTR_VALUE)

    def remove_tagged(self, path: str | Path) -> None:
        try:
            os.removexattr(path, self.name)
        except OSError as exc:
            if exc.errno not in _MISSING_ATTR_ERRNOS:
                raise


__all__ = ["ATTR_LINUX", "ATTR_MACOS", "AttributeStore", "default_attribute_name"]
