"""
Standard response envelope for spec-archiver commands.

Every CLI command prints one JSON document of the form:

    {
        "success": bool,       # operation success/failure
        "data": {...},         # primary payload (error details on failure)
        "error": str | null,   # error message or null on success
        "meta": {
            "version": "response-v1",
            "operation_id": "arc_abc123"?,
            "warnings": ["..."]?
        }
    }

Key Principle:
    - `success=True` means the operation executed correctly (even if the result is empty).
    - `success=False` means the operation failed to execute; include actionable error details.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from spec_archiver.core.context import get_operation_id
from spec_archiver.core.errors import ArchivalError, ArchivalErrorKind

logger = logging.getLogger(__name__)

RESPONSE_VERSION = "response-v1"


class ErrorCode(str, Enum):
    """Machine-readable error codes for command responses.

    Archival failures use their ArchivalErrorKind value as the code; these
    cover the failures that happen before any archival work starts.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorType(str, Enum):
    """Error categories for routing and client-side handling."""

    VALIDATION = "validation"  # No retry, fix input
    NOT_FOUND = "not_found"  # No retry
    CONFLICT = "conflict"  # Maybe retry, check state
    INTERNAL = "internal"  # Yes, after fixing the environment
    PARTIAL = "partial"  # Archive exists, finish cleanup


_KIND_TO_TYPE: Dict[ArchivalErrorKind, ErrorType] = {
    ArchivalErrorKind.VALIDATION_FAILED: ErrorType.VALIDATION,
    ArchivalErrorKind.COPY_FAILED: ErrorType.INTERNAL,
    ArchivalErrorKind.CONFIG_ERROR: ErrorType.INTERNAL,
    ArchivalErrorKind.INTEGRITY_FAILED: ErrorType.CONFLICT,
    ArchivalErrorKind.CLEANUP_FAILED: ErrorType.PARTIAL,
    ArchivalErrorKind.SPEC_NOT_FOUND: ErrorType.NOT_FOUND,
}


@dataclass
class CommandResponse:
    """
    Standard response structure for commands.

    Attributes:
        success: Whether the operation completed successfully
        data: The primary payload
        error: Error message if success is False, None otherwise
        meta: Response metadata including version identifier
    """

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=lambda: {"version": RESPONSE_VERSION})


def _build_meta(
    *,
    warnings: Optional[Sequence[str]] = None,
    extra: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Construct a metadata payload that always includes the response version."""
    meta: Dict[str, Any] = {"version": RESPONSE_VERSION}

    operation_id = get_operation_id()
    if operation_id:
        meta["operation_id"] = operation_id
    if warnings:
        meta["warnings"] = list(warnings)
    if extra:
        meta.update(dict(extra))

    return meta


def success_response(
    data: Optional[Mapping[str, Any]] = None,
    *,
    warnings: Optional[Sequence[str]] = None,
    meta: Optional[Mapping[str, Any]] = None,
    **fields: Any,
) -> CommandResponse:
    """Create a standardized success response.

    Args:
        data: Optional mapping used as the base payload.
        warnings: Non-fatal issues to surface in ``meta.warnings``.
        meta: Arbitrary extra metadata to merge into ``meta``.
        **fields: Additional payload fields (shorthand for ``data.update``).
    """
    payload: Dict[str, Any] = {}
    if data:
        payload.update(dict(data))
    if fields:
        payload.update(fields)

    return CommandResponse(
        success=True,
        data=payload,
        error=None,
        meta=_build_meta(warnings=warnings, extra=meta),
    )


def error_response(
    message: str,
    *,
    data: Optional[Mapping[str, Any]] = None,
    error_code: Optional[Union[ErrorCode, ArchivalErrorKind, str]] = None,
    error_type: Optional[Union[ErrorType, str]] = None,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> CommandResponse:
    """Create a standardized error response.

    Args:
        message: Human-readable description of the failure.
        data: Optional mapping with additional machine-readable context.
        error_code: Canonical error code (defaults to INTERNAL_ERROR).
        error_type: Error category (defaults to internal).
        remediation: User-facing guidance on how to fix the issue.
        details: Nested structure describing the failure.
        meta: Arbitrary extra metadata to merge into ``meta``.

    Example:
        >>> error_response(
        ...     "Spec directory not found: specs/alpha",
        ...     error_code=ErrorCode.NOT_FOUND,
        ...     error_type=ErrorType.NOT_FOUND,
        ...     remediation="Check the spec path",
        ... )
    """
    payload: Dict[str, Any] = {}
    if data:
        payload.update(dict(data))

    code = error_code if error_code is not None else ErrorCode.INTERNAL_ERROR
    kind = error_type if error_type is not None else ErrorType.INTERNAL

    payload.setdefault("error_code", code.value if isinstance(code, Enum) else code)
    payload.setdefault("error_type", kind.value if isinstance(kind, Enum) else kind)
    if remediation is not None:
        payload.setdefault("remediation", remediation)
    if details:
        payload.setdefault("details", dict(details))

    return CommandResponse(
        success=False,
        data=payload,
        error=message,
        meta=_build_meta(extra=meta),
    )


def archival_error_response(
    error: ArchivalError,
    *,
    details: Optional[Mapping[str, Any]] = None,
) -> CommandResponse:
    """Error response for an ArchivalError, keyed by its kind."""
    return error_response(
        error.message,
        data={"spec_path": error.spec_path},
        error_code=error.kind,
        error_type=_KIND_TO_TYPE[error.kind],
        remediation=error.recovery_action,
        details=details,
    )


def error_type_for_kind(kind: ArchivalErrorKind) -> ErrorType:
    return _KIND_TO_TYPE[kind]
