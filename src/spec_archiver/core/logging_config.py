"""Structured logging configuration with automatic context injection.

Log records emitted while an archival attempt is running carry the attempt's
operation ID and spec path, so a batch run can be followed spec by spec.

Usage:
    from spec_archiver.core.logging_config import configure_logging, get_logger

    configure_logging(level="DEBUG", format="human")
    logger = get_logger(__name__)

    with archival_context(spec_path="specs/alpha"):
        logger.info("Copying files")  # includes operation_id and spec_path
"""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO, Union

from spec_archiver.core.context import (
    get_operation_id,
    get_spec_path,
    get_start_time,
)

__all__ = [
    "ROOT_LOGGER_NAME",
    "ContextFilter",
    "StructuredFormatter",
    "HumanReadableFormatter",
    "configure_logging",
    "get_logger",
]

ROOT_LOGGER_NAME = "spec_archiver"


class ContextFilter(logging.Filter):
    """Logging filter that injects operation context into log records.

    Adds ``operation_id``, ``spec_path`` and ``elapsed_ms`` to every record.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.operation_id = get_operation_id() or "-"
        record.spec_path = get_spec_path() or "-"

        start_time = get_start_time()
        if start_time > 0:
            record.elapsed_ms = round((time.time() - start_time) * 1000, 2)
        else:
            record.elapsed_ms = 0.0

        return True


# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "operation_id", "spec_path", "elapsed_ms"}


def _short_name(name: str) -> str:
    prefix = f"{ROOT_LOGGER_NAME}."
    return name[len(prefix):] if name.startswith(prefix) else name


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Example output:
        {"timestamp":"2025-01-15T10:30:45.123Z","level":"INFO",
         "logger":"spec_archiver.core.archival","message":"Archived spec",
         "operation_id":"arc_a1b2c3d4e5f6","spec_path":"specs/alpha",
         "elapsed_ms":42.5}
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "operation_id": getattr(record, "operation_id", "-"),
            "spec_path": getattr(record, "spec_path", "-"),
            "elapsed_ms": getattr(record, "elapsed_ms", 0.0),
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Single-line formatter for terminals.

    Example:
        2025-01-15 10:30:45 [INFO] [arc_a1b2c3] core.archival: Copying files (specs/alpha)
    """

    def __init__(self, *, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        parts = []
        if self.include_timestamp:
            parts.append(datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"))
        parts.append(f"[{record.levelname}]")

        operation_id = getattr(record, "operation_id", "-")
        if operation_id != "-":
            parts.append(f"[{operation_id}]")

        parts.append(f"{_short_name(record.name)}: {record.getMessage()}")

        spec_path = getattr(record, "spec_path", "-")
        if spec_path != "-":
            parts.append(f"({spec_path})")

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    *,
    level: Union[int, str] = logging.INFO,
    format: str = "structured",  # "structured" or "human"
    stream: Optional[TextIO] = None,
    add_context: bool = True,
) -> logging.Logger:
    """Configure the root spec_archiver logger.

    Args:
        level: Log level (default: INFO)
        format: Output format ("structured" for JSON, "human" for readable)
        stream: Output stream (default: stderr)
        add_context: Add ContextFilter for automatic context injection

    Returns:
        Configured root logger for spec_archiver
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)

    if format == "structured":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())

    if add_context:
        handler.addFilter(ContextFilter())

    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the spec_archiver namespace.

    Args:
        name: Logger name (typically __name__)
    """
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    return logging.getLogger(name)
