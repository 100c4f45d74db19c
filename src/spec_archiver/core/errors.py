"""
Error taxonomy for spec archival operations.

Every failure raised by the archival subsystem is an ``ArchivalError`` that
carries a machine-readable ``kind``. Callers branch on ``error.kind`` rather
than on the Python type, so the set of kinds below is the full contract.

Kinds:
    - VALIDATION_FAILED: pre-flight safety check failed, nothing was touched
    - COPY_FAILED: I/O failure while duplicating files into the archive
    - CONFIG_ERROR: archive root or index file not creatable/readable/writable
    - INTEGRITY_FAILED: post-copy verification mismatch (rolled back)
    - CLEANUP_FAILED: original could not be removed after a valid, indexed
      archive was created (partial success, not rolled back)
    - SPEC_NOT_FOUND: the spec directory or its tasks.md does not exist
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union


class ArchivalErrorKind(str, Enum):
    """Machine-readable archival error codes (SCREAMING_SNAKE_CASE)."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    COPY_FAILED = "COPY_FAILED"
    CONFIG_ERROR = "CONFIG_ERROR"
    INTEGRITY_FAILED = "INTEGRITY_FAILED"
    CLEANUP_FAILED = "CLEANUP_FAILED"
    SPEC_NOT_FOUND = "SPEC_NOT_FOUND"

    @property
    def is_partial_success(self) -> bool:
        """True when the archive already exists and is durable."""
        return self is ArchivalErrorKind.CLEANUP_FAILED

    @property
    def default_recovery_action(self) -> str:
        return _RECOVERY_ACTIONS[self]


_RECOVERY_ACTIONS: Dict[ArchivalErrorKind, str] = {
    ArchivalErrorKind.VALIDATION_FAILED: (
        "Fix the reported issues (missing files, recent edits, existing "
        "destination) and retry the archival"
    ),
    ArchivalErrorKind.COPY_FAILED: (
        "Check disk space and permissions on the archive location, then retry"
    ),
    ArchivalErrorKind.CONFIG_ERROR: (
        "Verify the archive location exists and is writable, and that the "
        "archive index file is valid JSON"
    ),
    ArchivalErrorKind.INTEGRITY_FAILED: (
        "The partial archive was removed; retry the archival once the spec "
        "directory is no longer being modified"
    ),
    ArchivalErrorKind.CLEANUP_FAILED: (
        "The archive is valid and indexed; remove the original spec directory "
        "manually or retry the cleanup step"
    ),
    ArchivalErrorKind.SPEC_NOT_FOUND: (
        "Verify the spec path and that it contains a tasks.md file"
    ),
}


class ArchivalError(Exception):
    """Archival operation failed.

    Attributes:
        kind: Machine-readable error kind.
        spec_path: Spec (or archive) path the failure relates to.
        recovery_action: Actionable guidance for resolving the failure.
    """

    def __init__(
        self,
        message: str,
        kind: ArchivalErrorKind,
        spec_path: Union[str, Path],
        recovery_action: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.spec_path = str(spec_path)
        self.recovery_action = recovery_action or kind.default_recovery_action

    @property
    def code(self) -> str:
        """Error code string (the enum value)."""
        return self.kind.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "kind": self.kind.value,
            "spec_path": self.spec_path,
            "recovery_action": self.recovery_action,
        }

    def __repr__(self) -> str:
        return f"ArchivalError(kind={self.kind.value}, spec_path={self.spec_path!r}, message={self.message!r})"
