"""
Structured Logging — JSON Lines for Detection Runs

Every pagedetect module logs through `logging.getLogger(__name__)`
and attaches context with `extra=` (url, detector, channel, ...).
The formatters here turn that context into output:
  - JSONFormatter: one JSON object per line, context as top-level keys
  - TextFormatter: readable line with a trailing `key=value` suffix

Usage:
    from pagedetect.logging import setup_logging, get_logger
    setup_logging()                      # PAGEDETECT_LOG_LEVEL / _FORMAT
    logger = get_logger("engine")
    logger.info("Run complete", extra={"url": url, "count": 3})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Iterable, Optional


LOG_LEVEL = os.getenv("PAGEDETECT_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("PAGEDETECT_LOG_FORMAT", "json")  # "json" or "text"

# Context keys lifted from `extra=` into the output
CONTEXT_FIELDS = (
    "url", "url_hash", "detector", "category", "channel", "pattern",
    "confidence", "count", "removed", "method", "error", "duration_ms",
)


def _context(record: logging.LogRecord, fields: Iterable[str]) -> dict:
    return {
        key: getattr(record, key)
        for key in fields
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON lines."""

    def __init__(self, fields: Iterable[str] = CONTEXT_FIELDS):
        super().__init__()
        self.fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context(record, self.fields))

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable format for development, context appended as key=value."""

    def __init__(self, fields: Iterable[str] = CONTEXT_FIELDS):
        super().__init__(
            fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.fields = tuple(fields)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context(record, self.fields)
        if context:
            line += " | " + " ".join(f"{k}={v}" for k, v in context.items())
        return line


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """
    Configure the `pagedetect` logger. Call once at startup.

    Arguments override PAGEDETECT_LOG_LEVEL / PAGEDETECT_LOG_FORMAT.
    Calling again replaces the handler instead of adding a second one.
    """
    level = (level or LOG_LEVEL).upper()
    fmt = fmt or LOG_FORMAT

    root = logging.getLogger("pagedetect")
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    root.addHandler(handler)
    return root


def get_logger(name: str) -> logging.Logger:
    """Get a named logger under the pagedetect namespace."""
    return logging.getLogger(f"pagedetect.{name}")
