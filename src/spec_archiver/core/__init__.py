"""Core archival operations for spec-archiver."""

from spec_archiver.core.errors import ArchivalError, ArchivalErrorKind

from spec_archiver.core.completion import (
    CompletionDetector,
    CompletionStatus,
    TaskCounts,
    TaskFormatReport,
)

from spec_archiver.core.archive_index import (
    ArchiveIndex,
    ArchiveIndexEntry,
    ArchiveIndexManager,
    ArchiveMetadata,
    ArchiveStats,
    RepairReport,
)

from spec_archiver.core.archival import (
    ArchivalEngine,
    ArchivalResult,
    ArchivalState,
    SafetyCheck,
    SpecInfo,
)

from spec_archiver.core.scanner import ScanReport, SpecScanner, SpecValidationResult

from spec_archiver.core.batch import (
    BatchOutcome,
    BatchReport,
    archive_completed_specs,
    should_archive_spec,
)

__all__ = [
    "ArchivalError",
    "ArchivalErrorKind",
    "CompletionDetector",
    "CompletionStatus",
    "TaskCounts",
    "TaskFormatReport",
    "ArchiveIndex",
    "ArchiveIndexEntry",
    "ArchiveIndexManager",
    "ArchiveMetadata",
    "ArchiveStats",
    "RepairReport",
    "ArchivalEngine",
    "ArchivalResult",
    "ArchivalState",
    "SafetyCheck",
    "SpecInfo",
    "ScanReport",
    "SpecScanner",
    "SpecValidationResult",
    "BatchOutcome",
    "BatchReport",
    "archive_completed_specs",
    "should_archive_spec",
]
