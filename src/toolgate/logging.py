"""
Toolgate Structured Logging

Provides a configured logger for the policy gate using stdlib logging
with structured context.

Usage:
    from toolgate.logging import get_logger

    logger = get_logger("toolgate.policy")
    logger.info("Tool denied", extra={"tool_name": "read_file", "result": "denied"})

For machine consumption, configure with JSON output:
    from toolgate.logging import configure_logging
    configure_logging(json_output=True, level="INFO")

The ``TOOLGATE_LOG_LEVEL`` and ``TOOLGATE_LOG_JSON`` environment variables
set the defaults applied on import.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

STRUCTURED_KEYS = (
    "tool_name",
    "user_id",
    "project_id",
    "session_id",
    "result",
    "risk_class",
    "sink",
    "duration_ms",
)


class ToolgateFormatter(logging.Formatter):
    """Structured log formatter.

    Outputs either human-readable or JSON format depending on configuration.
    """

    def __init__(self, json_output: bool = False):
        super().__init__()
        self._json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in STRUCTURED_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self._json_output:
            return json.dumps(log_data, default=str)

        extra_keys = {
            k: v
            for k, v in log_data.items()
            if k not in ("timestamp", "level", "logger", "message", "exception")
        }
        extra_str = ""
        if extra_keys:
            extra_str = " | " + " ".join(f"{k}={v}" for k, v in extra_keys.items())

        line = (
            f"[{log_data['timestamp']}] {record.levelname:8s} {record.name}: "
            f"{record.getMessage()}{extra_str}"
        )
        if "exception" in log_data:
            line += "\n" + log_data["exception"]
        return line


def configure_logging(
    level: str = "WARNING",
    json_output: bool = False,
) -> None:
    """Configure the ``toolgate`` logger hierarchy.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, emit one JSON object per record.
    """
    root_logger = logging.getLogger("toolgate")
    root_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ToolgateFormatter(json_output=json_output))
    root_logger.addHandler(handler)

    root_logger.propagate = False


def get_logger(name: str = "toolgate") -> logging.Logger:
    """Get a toolgate logger instance.

    Args:
        name: Logger name (usually a module path like "toolgate.audit").
    """
    return logging.getLogger(name)


configure_logging(
    level=os.environ.get("TOOLGATE_LOG_LEVEL", "WARNING"),
    json_output=os.environ.get("TOOLGATE_LOG_JSON", "").lower() in ("1", "true", "yes"),
)
