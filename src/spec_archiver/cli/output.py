"""Output helpers for the spec-archiver CLI.

JSON envelopes are the default output: success envelopes go to stdout,
error envelopes to stderr followed by exit code 1. A few listing commands
can render a rich table instead with ``--format table``.
"""

import json
import sys
from dataclasses import asdict
from typing import Any, Dict, List, Mapping, NoReturn, Optional, Sequence

from rich.console import Console
from rich.table import Table

from spec_archiver.core.errors import ArchivalError, ArchivalErrorKind
from spec_archiver.core.responses import (
    archival_error_response,
    error_response,
    error_type_for_kind,
    success_response,
)

OUTPUT_FORMATS = ("json", "table")


def emit(data: Any) -> None:
    """Emit JSON to stdout.

    Args:
        data: Any JSON-serializable data structure.
    """
    print(json.dumps(data, separators=(",", ":"), default=str))


def emit_error(
    message: str,
    code: str = "INTERNAL_ERROR",
    *,
    error_type: str = "internal",
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Emit error JSON to stderr and exit with code 1.

    Args:
        message: Human-readable error description.
        code: Error code in SCREAMING_SNAKE_CASE (e.g., VALIDATION_ERROR, NOT_FOUND).
        error_type: Error category (validation, not_found, internal, etc.).
        remediation: Actionable guidance for resolving the error.
        details: Optional additional error context.

    Raises:
        SystemExit: Always exits with code 1.
    """
    response = error_response(
        message,
        error_code=code,
        error_type=error_type,
        remediation=remediation,
        details=details,
    )
    print(json.dumps(asdict(response), separators=(",", ":"), default=str), file=sys.stderr)
    sys.exit(1)


def emit_archival_error(
    error: ArchivalError,
    *,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Emit an ArchivalError envelope to stderr and exit with code 1."""
    response = archival_error_response(error, details=details)
    print(json.dumps(asdict(response), separators=(",", ":"), default=str), file=sys.stderr)
    sys.exit(1)


def emit_kind_error(
    message: str,
    kind: ArchivalErrorKind,
    *,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Emit an error keyed by an archival error kind."""
    emit_error(
        message,
        code=kind.value,
        error_type=error_type_for_kind(kind).value,
        remediation=kind.default_recovery_action,
        details=details,
    )


def emit_success(
    data: Any,
    *,
    warnings: Optional[Sequence[str]] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> None:
    """Emit success response envelope to stdout.

    Args:
        data: The operation-specific payload.
        warnings: Non-fatal issues to surface in meta.warnings.
        meta: Additional metadata to merge into meta object.
    """
    if isinstance(data, dict):
        response = success_response(data=data, warnings=warnings, meta=meta)
    else:
        # Wrap non-dict data in a result key
        response = success_response(data={"result": data}, warnings=warnings, meta=meta)
    emit(asdict(response))


def emit_table(
    rows: List[Dict[str, Any]],
    columns: Sequence[str],
    *,
    title: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    """Render rows as a rich table on stdout.

    Args:
        rows: Row dicts; missing keys render as empty cells.
        columns: Keys to show, in order.
        title: Optional table title.
        console: Console to print to (stdout by default).
    """
    table = Table(title=title, show_header=True, header_style="bold")
    for column in columns:
        table.add_column(column)

    for row in rows:
        table.add_row(*("" if row.get(col) is None else str(row.get(col)) for col in columns))

    (console or Console()).print(table)
