"""
Logging setup for the simulation shell.

Contextual fields are passed only via `extra={"context": {...}}` so both the
console and the JSON formatter can render them.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        # Amounts are arbitrary-precision ints; default=str keeps anything else printable.
        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable single-line records."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        base = f"{timestamp} | {record.levelname:<8} | {record.name} | {record.getMessage()}"
        context = getattr(record, "context", None)
        if context:
            base += " | " + ", ".join(f"{k}={v}" for k, v in context.items())
        return base


def setup_logging(level: int = logging.INFO, *, json_format: bool = False, stream: Optional[object] = None) -> None:
    """Configure the root logger with a single stream handler."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter() if json_format else ConsoleFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)
