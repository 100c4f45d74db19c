"""
Completion detection for spec directories.

Parses the checklist in a spec's tasks.md and reports how many items exist
and how many are checked off. A spec is complete when it has at least one
checklist item and every item is checked.

Checklist grammar (one item per line, anywhere in the document):
    - [ ] pending task
    - [x] done task
    - [X] 2.1 done task with numeric prefix
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

from spec_archiver.core.errors import ArchivalError, ArchivalErrorKind

logger = logging.getLogger(__name__)


# Constants

TASKS_FILE = "tasks.md"

DEFAULT_ARCHIVE_DIR_NAME = "archive"

# Marker, then an optional numeric prefix and title
TASK_LINE_PATTERN = re.compile(r"^[ \t]*-[ \t]*\[([ xX])\].*$", re.MULTILINE)

_ANY_MARKER_PATTERN = re.compile(r"^[ \t]*-[ \t]*\[[ xX]\]", re.MULTILINE)
_MALFORMED_MARKER_PATTERN = re.compile(r"^[ \t]*-[ \t]*\[[^ xX\]\r\n]\]", re.MULTILINE)
_UNLISTED_MARKER_PATTERN = re.compile(r"^[ \t]*\[[ xX]\]", re.MULTILINE)


# Data structures

@dataclass(frozen=True)
class TaskCounts:
    """Checklist item counts derived from tasks.md content."""

    total_tasks: int
    completed_tasks: int


@dataclass
class CompletionStatus:
    """
    Completion state of a spec directory.
    """
    is_complete: bool
    total_tasks: int
    completed_tasks: int
    last_modified: datetime

    @property
    def percentage(self) -> int:
        if self.total_tasks == 0:
            return 0
        return round(self.completed_tasks / self.total_tasks * 100)

    def to_dict(self) -> dict:
        return {
            "is_complete": self.is_complete,
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "percentage": self.percentage,
            "last_modified": self.last_modified.isoformat(),
        }


@dataclass
class TaskFormatReport:
    """
    Advisory structural checks for a tasks.md file.
    """
    is_valid: bool
    issues: List[str] = field(default_factory=list)


# Main detector

class CompletionDetector:
    """Reads tasks.md checklists and reports completion."""

    def __init__(self, archive_dir_name: str = DEFAULT_ARCHIVE_DIR_NAME):
        """
        Args:
            archive_dir_name: Directory name skipped when enumerating specs
        """
        self.archive_dir_name = archive_dir_name

    def check_spec_completion(self, spec_path: Union[str, Path]) -> CompletionStatus:
        """
        Check completion status of a spec directory.

        Args:
            spec_path: Path to the spec directory

        Returns:
            CompletionStatus for the spec

        Raises:
            ArchivalError: SPEC_NOT_FOUND when tasks.md is missing,
                VALIDATION_FAILED when it cannot be read
        """
        tasks_file = Path(spec_path) / TASKS_FILE

        try:
            stat = tasks_file.stat()
            content = tasks_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ArchivalError(
                f"Tasks file not found: {tasks_file}",
                ArchivalErrorKind.SPEC_NOT_FOUND,
                spec_path,
            )
        except (OSError, UnicodeDecodeError) as e:
            raise ArchivalError(
                f"Failed to read tasks file: {e}",
                ArchivalErrorKind.VALIDATION_FAILED,
                spec_path,
            )

        counts = self.parse_task_counts(content)

        return CompletionStatus(
            is_complete=_is_complete(counts),
            total_tasks=counts.total_tasks,
            completed_tasks=counts.completed_tasks,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    def parse_task_counts(self, content: str) -> TaskCounts:
        """
        Count checklist items in tasks.md content.

        Args:
            content: Content of a tasks.md file

        Returns:
            TaskCounts with total and completed item counts
        """
        markers = [m.group(1) for m in TASK_LINE_PATTERN.finditer(content)]
        completed = sum(1 for marker in markers if marker in ("x", "X"))
        return TaskCounts(total_tasks=len(markers), completed_tasks=completed)

    def is_tasks_file_complete(self, content: str) -> bool:
        """
        Check whether tasks.md content is complete.

        A file without checklist items is never complete, so malformed or
        unstarted specs are not archived by accident.
        """
        return _is_complete(self.parse_task_counts(content))

    def validate_tasks_format(self, content: str) -> TaskFormatReport:
        """
        Run advisory structural checks on tasks.md content.

        The result does not gate completion; it is surfaced to users so they
        can fix their checklists.
        """
        issues: List[str] = []

        if not content.strip():
            issues.append("Tasks file is empty")
            return TaskFormatReport(is_valid=False, issues=issues)

        if not _ANY_MARKER_PATTERN.search(content):
            issues.append("No valid task markers found (expected format: - [x] or - [ ])")

        malformed = [m.group(0).strip() for m in _MALFORMED_MARKER_PATTERN.finditer(content)]
        if malformed:
            issues.append(f"Found malformed task markers: {', '.join(malformed)}")

        if _UNLISTED_MARKER_PATTERN.search(content):
            issues.append('Found task markers without proper list formatting (missing "- " prefix)')

        return TaskFormatReport(is_valid=not issues, issues=issues)

    def get_all_completed_specs(self, base_dir: Union[str, Path]) -> List[Path]:
        """
        List complete spec directories directly under base_dir.

        Hidden directories and the archive directory are skipped, as are
        directories whose tasks.md cannot be read.

        Args:
            base_dir: Directory holding spec directories

        Returns:
            Sorted list of complete spec directory paths

        Raises:
            ArchivalError: VALIDATION_FAILED if base_dir cannot be listed
        """
        completed: List[Path] = []

        for spec_dir in self.iter_spec_dirs(base_dir):
            try:
                status = self.check_spec_completion(spec_dir)
            except ArchivalError as e:
                logger.debug("Skipping %s: %s", spec_dir, e.message)
                continue
            if status.is_complete:
                completed.append(spec_dir)

        return completed

    def get_completion_percentage(self, spec_path: Union[str, Path]) -> int:
        """Rounded completion percentage (0 when there are no tasks)."""
        return self.check_spec_completion(spec_path).percentage

    def iter_spec_dirs(
        self,
        base_dir: Union[str, Path],
        exclude: Optional[Iterable[Path]] = None,
    ) -> List[Path]:
        """
        Candidate spec directories under base_dir, sorted by name.

        Args:
            base_dir: Directory holding spec directories
            exclude: Extra directories to skip (e.g. an archive root that
                lives inside base_dir under a different name)
        """
        base = Path(base_dir)
        excluded = {p.resolve() for p in (exclude or [])}

        try:
            entries = sorted(base.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise ArchivalError(
                f"Failed to scan specs directory: {e}",
                ArchivalErrorKind.VALIDATION_FAILED,
                base,
            )

        return [
            entry
            for entry in entries
            if entry.is_dir()
            and not entry.name.startswith(".")
            and entry.name != self.archive_dir_name
            and entry.resolve() not in excluded
        ]


# Helper functions

def _is_complete(counts: TaskCounts) -> bool:
    return counts.total_tasks > 0 and counts.completed_tasks == counts.total_tasks
