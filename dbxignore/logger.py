"""Structured logging utilities for dbxignore."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

_HOME = Path.home()
_LOG_FORMAT = "%(message)s"
_MAX_BYTES = 10 * 1024 * 1024
_BACKUP_COUNT = 5

ROOT_LOGGER_NAME = "dbxignore"


def _sanitize(value: str) -> str:
    """Replace home directory with ``~/`` to protect privacy."""

    home_str = str(_HOME)
    if value.startswith(home_str):
        remainder = value[len(home_str):]
        if not remainder:
            return "~"
        if remainder.startswith(("/", "\\")):
            return f"~/{remainder[1:]}"
    return value


def configure_logging(
    log_path: Path | None = None,
    *,
    level: int = logging.INFO,
    max_bytes: int = _MAX_BYTES,
    backup_count: int = _BACKUP_COUNT,
) -> logging.Logger:
    """Configure and return the package logger used throughout the daemon."""

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    if logger.handlers:
        if log_path:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
        else:
            for handler in logger.handlers:
                handler.setLevel(level)
            return logger

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    else:
        handler = logging.StreamHandler()

    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    return logger


def get_logger(name: str, logger: logging.Logger | None = None) -> logging.Logger:
    """Return *logger* or the named child logger, configuring output once."""

    if logger is not None:
        return logger
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        configure_logging()
    return logging.getLogger(name)


def _prepare_payload(data: dict[str, Any]) -> dict[str, Any]:
    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Path):
            sanitized[key] = _sanitize(str(value))
        elif isinstance(value, str):
            sanitized[key] = _sanitize(value)
        elif isinstance(value, dict):
            sanitized[key] = _prepare_payload(value)
        elif isinstance(value, (list, tuple)):
            sanitized[key] = [
                _sanitize(str(item)) if isinstance(item, (str, Path)) else item for item in value
            ]
        else:
            sanitized[key] = value
    return sanitized


def log_event(
    logger: logging.Logger,
    *,
    level: int,
    action: str,
    message: str,
    duration_ms: float | None = None,
    extra: dict[str, Any] | None = None,
) -> None:
    """Emit a structured JSON log entry."""

    if not logger.isEnabledFor(level):
        return

    payload: dict[str, Any] = {
        "ts": _utcnow_iso(),
        "level": logging.getLevelName(level),
        "action": action,
        "message": _sanitize(message),
    }
    if duration_ms is not None:
        payload["ms"] = round(duration_ms, 3)
    if extra:
        payload.update(_prepare_payload(extra))

    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


__all__ = ["ROOT_LOGGER_NAME", "configure_logging", "get_logger", "log_event"]
