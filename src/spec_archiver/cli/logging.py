"""Structured logging hooks for CLI commands.

Every command runs inside an operation context, so log records and the
response envelope share one operation ID.
"""

import logging
import time
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from spec_archiver.core.context import (
    archival_context,
    generate_operation_id,
    get_operation_id,
)

__all__ = [
    "cli_command",
    "get_cli_logger",
    "CLILogger",
]

T = TypeVar("T")


class CLILogger:
    """Structured logger for CLI commands.

    Attaches the current operation ID and any keyword context to each
    record under ``cli_context``.
    """

    def __init__(self, name: str = "spec_archiver.cli"):
        self._logger = logging.getLogger(name)

    def _log(
        self,
        level: int,
        message: str,
        **extra: Any,
    ) -> None:
        """Log with structured context."""
        context = {
            "operation_id": get_operation_id(),
            **extra,
        }
        self._logger.log(level, message, extra={"cli_context": context})

    def debug(self, message: str, **extra: Any) -> None:
        self._log(logging.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> None:
        self._log(logging.INFO, message, **extra)

    def warning(self, message: str, **extra: Any) -> None:
        self._log(logging.WARNING, message, **extra)

    def error(self, message: str, **extra: Any) -> None:
        self._log(logging.ERROR, message, **extra)


# Global CLI logger
_cli_logger = CLILogger()


def get_cli_logger() -> CLILogger:
    """Get the global CLI logger."""
    return _cli_logger


def cli_command(
    command_name: Optional[str] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for CLI commands.

    Automatically:
    - Opens an operation context with a ``cli_`` operation ID
    - Logs command start/end with duration

    Args:
        command_name: Override command name (defaults to function name).

    Example:
        >>> @cli_command("archive-list")
        ... def list_archives(ctx):
        ...     ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = command_name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            with archival_context(operation_id=generate_operation_id("cli")):
                start = time.perf_counter()
                success = True
                error_msg = None

                _cli_logger.debug(f"CLI command started: {name}", command=name)

                try:
                    return func(*args, **kwargs)
                except SystemExit as e:
                    success = e.code in (None, 0)
                    raise
                except Exception as e:
                    success = False
                    error_msg = str(e)
                    raise
                finally:
                    duration_ms = (time.perf_counter() - start) * 1000
                    _cli_logger.debug(
                        f"CLI command completed: {name}",
                        command=name,
                        success=success,
                        duration_ms=round(duration_ms, 2),
                        error=error_msg,
                    )

        return wrapper

    return decorator
