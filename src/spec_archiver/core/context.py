"""Operation context for archival attempts.

Each archival attempt (or batch run) gets an operation ID that is carried in
context variables, so every log record emitted while the attempt is running
can be correlated with it.

Usage:
    from spec_archiver.core.context import archival_context, get_operation_id

    with archival_context(spec_path="specs/alpha") as ctx:
        print(ctx.operation_id)  # e.g., "arc_a1b2c3d4e5f6"
"""

from __future__ import annotations

import secrets
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, Optional

__all__ = [
    "operation_id_var",
    "spec_path_var",
    "start_time_var",
    "ArchivalContext",
    "generate_operation_id",
    "archival_context",
    "get_operation_id",
    "get_spec_path",
    "get_start_time",
    "get_current_context",
]

# -----------------------------------------------------------------------------
# Context Variables
# -----------------------------------------------------------------------------

operation_id_var: ContextVar[str] = ContextVar("operation_id", default="")

spec_path_var: ContextVar[str] = ContextVar("spec_path", default="")

start_time_var: ContextVar[float] = ContextVar("start_time", default=0.0)


def generate_operation_id(prefix: str = "arc") -> str:
    """Generate a unique operation ID.

    Format: {prefix}_{12_hex_chars}
    Example: "arc_a1b2c3d4e5f6"
    """
    return f"{prefix}_{secrets.token_hex(6)}"


@dataclass
class ArchivalContext:
    """Snapshot of the current operation context.

    Attributes:
        operation_id: Unique identifier of the archival attempt
        spec_path: Spec being processed (empty outside an attempt)
        start_time: Attempt start timestamp
    """

    operation_id: str = ""
    spec_path: str = ""
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_ms(self) -> float:
        if self.start_time <= 0:
            return 0.0
        return (time.time() - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "spec_path": self.spec_path,
            "start_time": self.start_time,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }


@contextmanager
def archival_context(
    *,
    spec_path: Optional[str] = None,
    operation_id: Optional[str] = None,
) -> Generator[ArchivalContext, None, None]:
    """Set up operation context for the duration of the with block.

    Nested use keeps the outer operation ID (a batch run shares one ID across
    its specs) unless an explicit ``operation_id`` is given.

    Args:
        spec_path: Spec being processed
        operation_id: Explicit operation ID (generated if not provided)

    Yields:
        ArchivalContext with the active values
    """
    effective_id = operation_id or operation_id_var.get() or generate_operation_id()
    effective_spec = spec_path if spec_path is not None else spec_path_var.get()
    now = time.time()

    tokens = [
        operation_id_var.set(effective_id),
        spec_path_var.set(effective_spec),
        start_time_var.set(now),
    ]
    try:
        yield ArchivalContext(
            operation_id=effective_id,
            spec_path=effective_spec,
            start_time=now,
        )
    finally:
        operation_id_var.reset(tokens[0])
        spec_path_var.reset(tokens[1])
        start_time_var.reset(tokens[2])


# -----------------------------------------------------------------------------
# Context Accessors
# -----------------------------------------------------------------------------


def get_operation_id() -> str:
    """Get the current operation ID, or empty string if not set."""
    return operation_id_var.get()


def get_spec_path() -> str:
    """Get the spec path of the current attempt, or empty string."""
    return spec_path_var.get()


def get_start_time() -> float:
    """Get the attempt start time, or 0.0 if not set."""
    return start_time_var.get()


def get_current_context() -> ArchivalContext:
    """Get a snapshot of all current context values."""
    return ArchivalContext(
        operation_id=get_operation_id(),
        spec_path=get_spec_path(),
        start_time=get_start_time(),
    )
