"""Logging setup and the in-memory buffer behind /api/logs/recent."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Deque

logger = logging.getLogger("focus_engine")

# Circular buffer of recent log entries (max 100)
log_buffer: Deque[dict] = deque(maxlen=100)


class LogBufferHandler(logging.Handler):
    """Captures log records into log_buffer with timestamp, level and message."""

    def emit(self, record: logging.LogRecord):
        try:
            log_buffer.append({
                "timestamp": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
                "level": record.levelname,
                "logger": record.name,
                "message": self.format(record),
            })
        except Exception:
            self.handleError(record)


buffer_handler = LogBufferHandler()
buffer_handler.setLevel(logging.DEBUG)
buffer_handler.setFormatter(logging.Formatter("%(message)s"))


def setup_logging(level: int = logging.INFO, console: bool = True) -> None:
    """Attach the buffer (and optionally a stderr handler) to the package logger."""
    logger.setLevel(level)
    if buffer_handler not in logger.handlers:
        logger.addHandler(buffer_handler)
    if console and not any(getattr(h, "_focus_console", False) for h in logger.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", "%H:%M:%S"))
        stream._focus_console = True
        logger.addHandler(stream)

    # Also capture uvicorn logs
    uvicorn_logger = logging.getLogger("uvicorn")
    if buffer_handler not in uvicorn_logger.handlers:
        uvicorn_logger.addHandler(buffer_handler)


def recent_logs(limit: int = 50) -> list[dict]:
    return list(log_buffer)[-limit:]
