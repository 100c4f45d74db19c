"""
Batch archival of completed specs.

Visits every spec directory under a specs root, one at a time, and archives
those that are complete, safe to move and past the configured delay window.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from spec_archiver.config import ArchivalSettings, NotificationLevel
from spec_archiver.core.archival import ArchivalEngine
from spec_archiver.core.context import archival_context
from spec_archiver.core.errors import ArchivalError, ArchivalErrorKind

logger = logging.getLogger(__name__)


class BatchOutcome(str, Enum):
    """Per-spec outcome of a batch run."""

    ARCHIVED = "archived"
    SKIPPED_INCOMPLETE = "skipped-incomplete"
    SKIPPED_INVALID = "skipped-invalid"
    WOULD_ARCHIVE = "would-archive"
    PARTIAL = "partial"
    ERROR = "error"


@dataclass
class BatchEntry:
    """
    Outcome for one spec directory.
    """
    spec_path: str
    outcome: BatchOutcome
    reason: str = ""
    archive_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "spec_path": self.spec_path,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "archive_path": self.archive_path,
        }


@dataclass
class BatchReport:
    """
    Result of a batch run.
    """
    dry_run: bool = False
    enabled: bool = True
    entries: List[BatchEntry] = field(default_factory=list)

    @property
    def counts(self) -> Dict[str, int]:
        counts = {outcome.value: 0 for outcome in BatchOutcome}
        for entry in self.entries:
            counts[entry.outcome.value] += 1
        return counts

    @property
    def has_failures(self) -> bool:
        return any(
            entry.outcome in (BatchOutcome.ERROR, BatchOutcome.PARTIAL)
            for entry in self.entries
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "enabled": self.enabled,
            "counts": self.counts,
            "entries": [entry.to_dict() for entry in self.entries],
        }


def should_archive_spec(
    spec_path: Union[str, Path],
    engine: ArchivalEngine,
    settings: ArchivalSettings,
) -> Tuple[bool, str]:
    """
    Decide whether a spec should be archived now.

    Honours the enabled flag, completion, the delay window after the last
    edit of tasks.md, and the engine's safety check.

    Returns:
        Tuple of (should_archive, reason)
    """
    outcome, reason = _evaluate_spec(Path(spec_path), engine, settings)
    return outcome is None, reason


def archive_completed_specs(
    specs_dir: Union[str, Path],
    engine: ArchivalEngine,
    settings: ArchivalSettings,
    dry_run: bool = False,
) -> BatchReport:
    """
    Archive every eligible spec under specs_dir, sequentially.

    Specs judged unsafe are never modified. With dry_run, eligible specs are
    reported as would-archive and nothing is moved.

    Raises:
        ArchivalError: VALIDATION_FAILED if specs_dir cannot be listed
    """
    report = BatchReport(dry_run=dry_run, enabled=settings.enabled)

    if not settings.enabled:
        logger.info("Automatic archival is disabled; nothing to do")
        return report

    spec_dirs = engine.detector.iter_spec_dirs(specs_dir, exclude=[engine.archive_root])

    with archival_context():
        logger.debug("Checking %d spec(s) in %s", len(spec_dirs), specs_dir)

        for spec_dir in spec_dirs:
            entry = _process_spec(spec_dir, engine, settings, dry_run)
            report.entries.append(entry)
            _notify(settings, entry)

        counts = report.counts
        if settings.notification_level != NotificationLevel.NONE:
            logger.info(
                "Batch archival finished: %d archived, %d would archive, %d partial, %d errors",
                counts[BatchOutcome.ARCHIVED.value],
                counts[BatchOutcome.WOULD_ARCHIVE.value],
                counts[BatchOutcome.PARTIAL.value],
                counts[BatchOutcome.ERROR.value],
            )

    return report


def _process_spec(
    spec_dir: Path,
    engine: ArchivalEngine,
    settings: ArchivalSettings,
    dry_run: bool,
) -> BatchEntry:
    outcome, reason = _evaluate_spec(spec_dir, engine, settings)
    if outcome is not None:
        return BatchEntry(spec_path=str(spec_dir), outcome=outcome, reason=reason)

    if dry_run:
        return BatchEntry(
            spec_path=str(spec_dir),
            outcome=BatchOutcome.WOULD_ARCHIVE,
            reason=reason,
        )

    result = engine.archive_spec(spec_dir)
    if result.success:
        return BatchEntry(
            spec_path=str(spec_dir),
            outcome=BatchOutcome.ARCHIVED,
            archive_path=result.archive_path,
        )
    if result.is_partial:
        return BatchEntry(
            spec_path=str(spec_dir),
            outcome=BatchOutcome.PARTIAL,
            reason=result.error or "",
            archive_path=result.archive_path,
        )
    return BatchEntry(
        spec_path=str(spec_dir),
        outcome=BatchOutcome.ERROR,
        reason=result.error or "",
    )


def _evaluate_spec(
    spec_path: Path,
    engine: ArchivalEngine,
    settings: ArchivalSettings,
) -> Tuple[Optional[BatchOutcome], str]:
    """Skip outcome and reason, or (None, reason) when the spec may be archived."""
    if not settings.enabled:
        return BatchOutcome.SKIPPED_INVALID, "Automatic archival is disabled"

    try:
        status = engine.detector.check_spec_completion(spec_path)
    except ArchivalError as e:
        if e.kind is ArchivalErrorKind.SPEC_NOT_FOUND:
            return BatchOutcome.SKIPPED_INVALID, e.message
        return BatchOutcome.ERROR, e.message

    if not status.is_complete:
        return (
            BatchOutcome.SKIPPED_INCOMPLETE,
            f"{status.completed_tasks}/{status.total_tasks} tasks complete",
        )

    now = engine.clock()
    age_minutes = (now - status.last_modified).total_seconds() / 60
    if age_minutes < settings.delay_minutes:
        return (
            BatchOutcome.SKIPPED_INVALID,
            f"Completed {int(age_minutes)} minute(s) ago; waiting "
            f"{settings.delay_minutes} minute(s) before archiving",
        )

    archive_path = engine.generate_archive_path(spec_path.name, now)
    safety = engine.validate_archival_safety(spec_path, archive_path)
    if not safety.can_proceed:
        return BatchOutcome.SKIPPED_INVALID, "; ".join(safety.issues)

    return None, f"{status.completed_tasks}/{status.total_tasks} tasks complete"


def _notify(settings: ArchivalSettings, entry: BatchEntry) -> None:
    level = settings.notification_level
    if level == NotificationLevel.NONE:
        logger.debug("%s: %s %s", entry.spec_path, entry.outcome.value, entry.reason)
        return

    if entry.outcome in (BatchOutcome.ERROR, BatchOutcome.PARTIAL):
        logger.error("Failed to archive %s: %s", entry.spec_path, entry.reason)
    elif entry.outcome is BatchOutcome.ARCHIVED:
        logger.info("Archived %s to %s", entry.spec_path, entry.archive_path)
    elif entry.outcome is BatchOutcome.WOULD_ARCHIVE:
        logger.info("[DRY RUN] Would archive %s (%s)", entry.spec_path, entry.reason)
    elif level == NotificationLevel.VERBOSE:
        logger.info("Skipped %s (%s): %s", entry.spec_path, entry.outcome.value, entry.reason)
