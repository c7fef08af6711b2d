# Path: core/logging.py
# Purpose: Configure application logging and attach structured context to log entries.
# Layer: core.
# Details: JSON or text output, request id propagation, and helpers for orphan/compensation records.

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")


class StructuredFormatter(logging.Formatter):
    """JSON formatter carrying request_id and any ``extra_data`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_ctx.get(),
        }

        extra = getattr(record, "extra_data", None)
        if extra:
            log_data.update(extra)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter with request_id and inline context."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        line = f"{timestamp} [{record.levelname}] [{request_id_ctx.get()}] {record.name}: {record.getMessage()}"
        extra = getattr(record, "extra_data", None)
        if extra:
            line += " " + " ".join(f"{key}={value}" for key, value in extra.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Install a single stdout handler on the root logger."""

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if fmt == "json" else TextFormatter())
    root_logger.addHandler(handler)


def log_with_context(logger: logging.Logger, level: int, message: str, **extra: Any) -> None:
    """Log ``message`` with structured fields attached as ``extra_data``."""

    if logger.isEnabledFor(level):
        logger.log(level, message, extra={"extra_data": extra})


__all__ = ["StructuredFormatter", "TextFormatter", "log_with_context", "request_id_ctx", "setup_logging"]
