"""Logging configuration for feedline_sim.

Configurable via environment variables:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL. Default: INFO
- LOG_FORMAT: 'text' or 'json'. Default: text
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """TIMESTAMP LEVEL [LOGGER] MESSAGE"""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        name = record.name
        if name.startswith("feedline_sim."):
            name = name[len("feedline_sim."):]
        line = f"{timestamp} {record.levelname:8s} [{name}] {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_log_level() -> int:
    return _LEVELS.get(os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)


def get_log_format() -> str:
    fmt = os.environ.get("LOG_FORMAT", "text").lower()
    return fmt if fmt in ("text", "json") else "text"


def configure_logging(level: Optional[int] = None, format_type: Optional[str] = None) -> None:
    """Install a single stderr handler on the ``feedline_sim`` logger.

    Call once at startup; repeated calls replace the handler.
    """
    if level is None:
        level = get_log_level()
    if format_type is None:
        format_type = get_log_format()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if format_type == "json" else TextFormatter())

    root = logging.getLogger("feedline_sim")
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)
    root.propagate = False

    root.debug("Logging configured: level=%s, format=%s", logging.getLevelName(level), format_type)
