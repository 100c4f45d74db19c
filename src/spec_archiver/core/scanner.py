"""
Spec discovery and structural validation.

Finds spec directories under a specs root, splits them into complete and
incomplete, and reports structural problems (blocking issues) and softer
hints (warnings) per spec.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from spec_archiver.core.archival import REQUIRED_FILES
from spec_archiver.core.completion import (
    DEFAULT_ARCHIVE_DIR_NAME,
    TASKS_FILE,
    CompletionDetector,
)
from spec_archiver.core.errors import ArchivalError

logger = logging.getLogger(__name__)


# Constants

OPTIONAL_FILES = ("notes.md", "testing.md")

MAX_REASONABLE_TASKS = 50

MIN_DOCUMENT_LENGTH = 100


# Data structures

@dataclass
class SpecValidationResult:
    """
    Structural validation of a single spec.
    """
    is_valid: bool
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class ScanReport:
    """
    Validation results for every spec under the specs root.
    """
    total_specs: int
    valid_specs: List[str] = field(default_factory=list)
    invalid_specs: List[str] = field(default_factory=list)
    issues: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class SpecStats:
    """
    Counts over the spec collection.
    """
    total: int
    completed: int
    incomplete: int
    valid: int
    invalid: int
    ready_for_archival: int


# Main scanner

class SpecScanner:
    """Scans and validates spec directories."""

    def __init__(
        self,
        specs_dir: Union[str, Path],
        archive_dir_name: str = DEFAULT_ARCHIVE_DIR_NAME,
        detector: Optional[CompletionDetector] = None,
        exclude: Optional[Iterable[Path]] = None,
    ):
        """
        Args:
            specs_dir: Directory holding spec directories
            archive_dir_name: Directory name skipped during discovery
            detector: Completion detector (created if not given)
            exclude: Extra directories to skip, such as an archive root
                configured inside specs_dir
        """
        self.specs_dir = Path(specs_dir)
        self.detector = detector or CompletionDetector(archive_dir_name=archive_dir_name)
        self.exclude = list(exclude or [])

    def get_all_specs(self) -> List[Path]:
        """
        Spec directories (sub-directories containing tasks.md), sorted.

        Raises:
            ArchivalError: VALIDATION_FAILED if specs_dir cannot be listed
        """
        return [
            spec_dir
            for spec_dir in self.detector.iter_spec_dirs(self.specs_dir, exclude=self.exclude)
            if (spec_dir / TASKS_FILE).is_file()
        ]

    def get_completed_specs(self) -> List[Path]:
        completed = []
        for spec_dir in self.get_all_specs():
            try:
                status = self.detector.check_spec_completion(spec_dir)
            except ArchivalError as e:
                logger.debug("Skipping %s: %s", spec_dir, e.message)
                continue
            if status.is_complete:
                completed.append(spec_dir)
        return completed

    def get_incomplete_specs(self) -> List[Path]:
        completed = set(self.get_completed_specs())
        return [spec_dir for spec_dir in self.get_all_specs() if spec_dir not in completed]

    def validate_spec(self, spec_path: Union[str, Path]) -> SpecValidationResult:
        """
        Validate the structure and content of a spec directory.

        Issues (missing, irregular or empty required files, tasks.md format
        problems) make the spec invalid. Warnings are informational.
        """
        spec_path = Path(spec_path)
        issues: List[str] = []
        warnings: List[str] = []

        if not spec_path.is_dir():
            issues.append(f"Spec path is not a directory: {spec_path}")
            return SpecValidationResult(is_valid=False, issues=issues, warnings=warnings)

        for name in REQUIRED_FILES:
            required = spec_path / name
            if not required.exists():
                issues.append(f"Missing required file: {name}")
            elif not required.is_file():
                issues.append(f"Required file is not a regular file: {name}")
            elif required.stat().st_size == 0:
                issues.append(f"Required file is empty: {name}")

        if not any(TASKS_FILE in issue for issue in issues):
            self._validate_tasks_file(spec_path, issues, warnings)

        self._check_unexpected_entries(spec_path, warnings)
        self._check_document_content(spec_path, warnings)

        return SpecValidationResult(is_valid=not issues, issues=issues, warnings=warnings)

    def scan_and_validate_all_specs(self) -> ScanReport:
        """Validate every spec; warnings are reported with a WARNING: prefix."""
        specs = self.get_all_specs()
        report = ScanReport(total_specs=len(specs))

        for spec_dir in specs:
            validation = self.validate_spec(spec_dir)
            if validation.is_valid:
                report.valid_specs.append(str(spec_dir))
            else:
                report.invalid_specs.append(str(spec_dir))

            messages = list(validation.issues)
            messages.extend(f"WARNING: {warning}" for warning in validation.warnings)
            if messages:
                report.issues[str(spec_dir)] = messages

        return report

    def get_specs_ready_for_archival(self) -> List[Path]:
        """Specs that are complete and structurally valid."""
        return [
            spec_dir
            for spec_dir in self.get_completed_specs()
            if self.validate_spec(spec_dir).is_valid
        ]

    def get_spec_stats(self) -> SpecStats:
        all_specs = self.get_all_specs()
        completed = self.get_completed_specs()
        report = self.scan_and_validate_all_specs()
        ready = self.get_specs_ready_for_archival()

        return SpecStats(
            total=len(all_specs),
            completed=len(completed),
            incomplete=len(all_specs) - len(completed),
            valid=len(report.valid_specs),
            invalid=len(report.invalid_specs),
            ready_for_archival=len(ready),
        )

    # Checks

    def _validate_tasks_file(self, spec_path: Path, issues: List[str], warnings: List[str]) -> None:
        try:
            content = (spec_path / TASKS_FILE).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            issues.append(f"Failed to validate tasks.md: {e}")
            return

        format_report = self.detector.validate_tasks_format(content)
        issues.extend(f"tasks.md: {issue}" for issue in format_report.issues)

        counts = self.detector.parse_task_counts(content)
        if counts.total_tasks == 0:
            warnings.append("tasks.md contains no tasks")
        elif counts.total_tasks > MAX_REASONABLE_TASKS:
            warnings.append(
                f"tasks.md contains many tasks ({counts.total_tasks}) - "
                "consider breaking into smaller specs"
            )

        if counts.total_tasks > 0 and counts.completed_tasks == counts.total_tasks:
            warnings.append("All tasks completed - spec may be ready for archival")

    def _check_unexpected_entries(self, spec_path: Path, warnings: List[str]) -> None:
        known = set(REQUIRED_FILES) | set(OPTIONAL_FILES)
        try:
            entries = sorted(spec_path.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.debug("Could not list %s: %s", spec_path, e)
            return

        for entry in entries:
            if entry.is_dir():
                warnings.append(f"Unexpected subdirectory found: {entry.name}")
            elif entry.is_file() and entry.name not in known and not entry.name.startswith("."):
                warnings.append(f"Unexpected file found: {entry.name}")

    def _check_document_content(self, spec_path: Path, warnings: List[str]) -> None:
        requirements = _read_optional(spec_path / "requirements.md")
        if requirements is not None:
            if len(requirements.strip()) < MIN_DOCUMENT_LENGTH:
                warnings.append("requirements.md is very short - may need more detail")
            if "requirement" not in requirements.lower():
                warnings.append("requirements.md may not contain actual requirements")

        design = _read_optional(spec_path / "design.md")
        if design is not None and len(design.strip()) < MIN_DOCUMENT_LENGTH:
            warnings.append("design.md is very short - may need more detail")


# Helper functions

def _read_optional(path: Path) -> Optional[str]:
    # Missing or unreadable files are already reported as issues
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
