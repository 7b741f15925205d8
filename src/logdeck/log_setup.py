"""Diagnostic logging setup for the dashboard process."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .redaction import sanitize_for_logging, sanitize_text

LOGGER_NAME = "logdeck"

_RESERVED_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


class JsonConsoleFormatter(logging.Formatter):
    """Simple JSON formatter for structured diagnostic logs."""

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_text(record.getMessage()),
        }
        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            event["context"] = sanitize_for_logging(extra)
        if record.exc_info:
            event["exception"] = sanitize_text(self.formatException(record.exc_info))
        return json.dumps(event, default=str)


def setup_logger(
    name: str = LOGGER_NAME,
    level: int | str = logging.INFO,
    *,
    log_file: Path | None = None,
) -> logging.Logger:
    """Create and configure a process-wide logger.

    When ``log_file`` is given the records go there instead of stderr; the live
    dashboard owns the terminal, so diagnostics must never reach the screen.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    handler: logging.Handler
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(JsonConsoleFormatter())
    logger.addHandler(handler)
    return logger
