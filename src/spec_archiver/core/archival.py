"""
Archival engine for completed specs.

Moves a spec directory into the archive in five steps:

    validate -> copy -> verify -> index -> delete original

Any failure before the delete step removes the partial archive and leaves
the original untouched. A failure during the delete step keeps the archive
(it is verified and indexed) and reports a partial result, which can be
finished later with ``retry_cleanup``.

Archive directories are named ``<YYYY-MM-DD>_<spec>``, falling back to
``<YYYY-MM-DD>_<HH-MM-SS>_<spec>`` and ``<YYYY-MM-DD>_<HH-MM-SS>_<N>_<spec>``
on collision. Dates are UTC.
"""

import logging
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from spec_archiver.core.archive_index import (
    METADATA_FILE_NAME,
    ArchiveIndexEntry,
    ArchiveIndexManager,
    ArchiveMetadata,
    ArchiveStats,
    RepairReport,
    format_timestamp,
    read_archive_metadata,
    write_archive_metadata,
)
from spec_archiver.core.completion import TASKS_FILE, CompletionDetector
from spec_archiver.core.context import archival_context
from spec_archiver.core.errors import ArchivalError, ArchivalErrorKind

logger = logging.getLogger(__name__)


# Constants

REQUIRED_FILES = ("requirements.md", "design.md", "tasks.md")

WRITE_PROBE_FILE = ".write-test"

DEFAULT_MODIFICATION_GUARD = timedelta(minutes=5)

RECENTLY_MODIFIED_ISSUE = "Spec was recently modified - wait before archiving to avoid conflicts"


# Data structures

class ArchivalState(str, Enum):
    """Progress of a single archival attempt."""

    PENDING = "pending"
    VALIDATING = "validating"
    COPYING = "copying"
    VERIFYING = "verifying"
    INDEXING = "indexing"
    CLEANING_UP = "cleaning_up"
    COMPLETE = "complete"
    FAILED_ROLLED_BACK = "failed_rolled_back"
    FAILED_PARTIAL = "failed_partial"


@dataclass
class SafetyCheck:
    """
    Pre-flight check result for an archival attempt.
    """
    is_safe: bool
    issues: List[str] = field(default_factory=list)
    can_proceed: bool = False


@dataclass
class SpecInfo:
    """
    Facts about a spec captured just before archival.
    """
    name: str
    path: Path
    completion_date: datetime
    total_tasks: int
    completed_tasks: int


@dataclass
class ArchivalResult:
    """
    Outcome of an archival attempt.
    """
    success: bool
    original_path: str
    timestamp: datetime
    state: ArchivalState
    archive_path: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ArchivalErrorKind] = None
    issues: List[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return self.state is ArchivalState.FAILED_PARTIAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "original_path": self.original_path,
            "archive_path": self.archive_path,
            "timestamp": format_timestamp(self.timestamp),
            "state": self.state.value,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "issues": list(self.issues),
        }


# Main engine

class ArchivalEngine:
    """
    Archives spec directories under a fixed archive root.

    The engine holds no state besides its configuration, so one instance can
    archive any number of specs in sequence. It does not check whether a spec
    is complete; callers decide what to archive.
    """

    def __init__(
        self,
        archive_root: Union[str, Path],
        detector: Optional[CompletionDetector] = None,
        index_manager: Optional[ArchiveIndexManager] = None,
        modification_guard: timedelta = DEFAULT_MODIFICATION_GUARD,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            archive_root: Directory that receives archive directories and the index
            detector: Task counter used for metadata
            index_manager: Index for archive_root (created if not given)
            modification_guard: Minimum age of tasks.md before archival
            clock: Returns the current UTC time
        """
        self.archive_root = Path(archive_root)
        self.detector = detector or CompletionDetector()
        self.index_manager = index_manager or ArchiveIndexManager(self.archive_root)
        self.modification_guard = modification_guard
        self.clock = clock or _utcnow

    # Archival

    def archive_spec(self, spec_path: Union[str, Path]) -> ArchivalResult:
        """
        Archive a spec directory.

        Failures are reported in the returned result, never raised.

        Args:
            spec_path: Path to the spec directory

        Returns:
            ArchivalResult with the final state of the attempt
        """
        spec_path = Path(spec_path)
        timestamp = self.clock()

        with archival_context(spec_path=str(spec_path)):
            state = self._transition(ArchivalState.PENDING, ArchivalState.VALIDATING)
            archive_path = self.generate_archive_path(spec_path.name, timestamp)

            safety = self.validate_archival_safety(spec_path, archive_path)
            if not safety.can_proceed:
                logger.warning("Archival of %s blocked: %s", spec_path, "; ".join(safety.issues))
                return ArchivalResult(
                    success=False,
                    original_path=str(spec_path),
                    timestamp=timestamp,
                    state=ArchivalState.FAILED_ROLLED_BACK,
                    error=f"Archival safety validation failed: {'; '.join(safety.issues)}",
                    error_kind=ArchivalErrorKind.VALIDATION_FAILED,
                    issues=list(safety.issues),
                )

            created = False
            try:
                self._ensure_archive_root()

                state = self._transition(state, ArchivalState.COPYING)
                self._create_destination(archive_path)
                created = True
                self._copy_contents(spec_path, archive_path)

                spec_info = self.get_spec_info(spec_path)
                metadata = self.create_archive_metadata(spec_info, archive_path, timestamp)

                state = self._transition(state, ArchivalState.VERIFYING)
                self.verify_archive_integrity(spec_path, archive_path)

                state = self._transition(state, ArchivalState.INDEXING)
                self.index_manager.add_archive_entry(metadata)
            except ArchivalError as e:
                logger.error("Archival failed during %s: %s", state.value, e.message)
                if created:
                    self._rollback(archive_path)
                self._transition(state, ArchivalState.FAILED_ROLLED_BACK)
                return ArchivalResult(
                    success=False,
                    original_path=str(spec_path),
                    timestamp=timestamp,
                    state=ArchivalState.FAILED_ROLLED_BACK,
                    error=e.message,
                    error_kind=e.kind,
                )

            state = self._transition(state, ArchivalState.CLEANING_UP)
            try:
                self._remove_original(spec_path)
            except ArchivalError as e:
                self._transition(state, ArchivalState.FAILED_PARTIAL)
                logger.error(
                    "Archive %s created but original was not removed: %s",
                    archive_path,
                    e.message,
                )
                return ArchivalResult(
                    success=False,
                    original_path=str(spec_path),
                    archive_path=str(archive_path),
                    timestamp=timestamp,
                    state=ArchivalState.FAILED_PARTIAL,
                    error=e.message,
                    error_kind=e.kind,
                )

            self._transition(state, ArchivalState.COMPLETE)
            logger.info("Archived %s to %s", spec_path, archive_path)

            return ArchivalResult(
                success=True,
                original_path=str(spec_path),
                archive_path=str(archive_path),
                timestamp=timestamp,
                state=ArchivalState.COMPLETE,
            )

    def retry_cleanup(self, result: ArchivalResult) -> ArchivalResult:
        """
        Retry removing the original after a partial archival.

        Results in any other state are returned unchanged. An original that
        is already gone counts as removed.
        """
        if result.state is not ArchivalState.FAILED_PARTIAL:
            return result

        spec_path = Path(result.original_path)

        with archival_context(spec_path=str(spec_path)):
            if spec_path.exists():
                try:
                    self._remove_original(spec_path)
                except ArchivalError as e:
                    logger.error("Cleanup retry failed for %s: %s", spec_path, e.message)
                    return ArchivalResult(
                        success=False,
                        original_path=result.original_path,
                        archive_path=result.archive_path,
                        timestamp=result.timestamp,
                        state=ArchivalState.FAILED_PARTIAL,
                        error=e.message,
                        error_kind=e.kind,
                    )

            logger.info("Removed original %s after partial archival", spec_path)

        return ArchivalResult(
            success=True,
            original_path=result.original_path,
            archive_path=result.archive_path,
            timestamp=result.timestamp,
            state=ArchivalState.COMPLETE,
        )

    def validate_archival_safety(
        self,
        spec_path: Union[str, Path],
        archive_path: Union[str, Path],
    ) -> SafetyCheck:
        """
        Check that a spec can be archived to archive_path.

        Checks the spec layout, that the destination is free, that the
        archive root is writable and that tasks.md was not edited within
        the modification guard. Only the archive root may be created here;
        the spec is never touched.
        """
        spec_path = Path(spec_path)
        archive_path = Path(archive_path)
        issues: List[str] = []

        if not spec_path.is_dir():
            issues.append(f"Spec path is not a directory: {spec_path}")
        else:
            for name in REQUIRED_FILES:
                required = spec_path / name
                if not required.exists():
                    issues.append(f"Missing required file: {name}")
                elif not required.is_file():
                    issues.append(f"Required file is not a regular file: {name}")

        if archive_path.exists():
            issues.append(f"Archive destination already exists: {archive_path}")

        if not self._archive_root_writable():
            issues.append(f"No write permission for archive location: {self.archive_root}")

        tasks_file = spec_path / TASKS_FILE
        if tasks_file.is_file():
            modified = datetime.fromtimestamp(tasks_file.stat().st_mtime, tz=timezone.utc)
            if self.clock() - modified < self.modification_guard:
                issues.append(RECENTLY_MODIFIED_ISSUE)

        is_safe = not issues
        return SafetyCheck(is_safe=is_safe, issues=issues, can_proceed=is_safe)

    def get_spec_info(self, spec_path: Union[str, Path]) -> SpecInfo:
        """
        Capture name, completion date and task counts of a spec.

        The completion date is the modification time of tasks.md.
        """
        spec_path = Path(spec_path)
        status = self.detector.check_spec_completion(spec_path)
        return SpecInfo(
            name=spec_path.name,
            path=spec_path,
            completion_date=status.last_modified,
            total_tasks=status.total_tasks,
            completed_tasks=status.completed_tasks,
        )

    def create_archive_metadata(
        self,
        spec_info: SpecInfo,
        archive_path: Union[str, Path],
        archival_date: Optional[datetime] = None,
    ) -> ArchiveMetadata:
        """
        Write the metadata file into an archive directory.

        Returns:
            The ArchiveMetadata that was written

        Raises:
            ArchivalError: COPY_FAILED if the file cannot be written
        """
        metadata = ArchiveMetadata(
            spec_name=spec_info.name,
            original_path=str(spec_info.path),
            archive_path=str(archive_path),
            completion_date=spec_info.completion_date,
            archival_date=archival_date or self.clock(),
            total_tasks=spec_info.total_tasks,
            completed_tasks=spec_info.completed_tasks,
        )
        write_archive_metadata(archive_path, metadata)
        return metadata

    def generate_archive_path(self, spec_name: str, timestamp: datetime) -> Path:
        """
        First unused archive directory name for spec_name at timestamp.
        """
        timestamp = timestamp.astimezone(timezone.utc)
        date_part = timestamp.strftime("%Y-%m-%d")
        time_part = timestamp.strftime("%H-%M-%S")

        candidate = self.archive_root / f"{date_part}_{spec_name}"
        if not candidate.exists():
            return candidate

        candidate = self.archive_root / f"{date_part}_{time_part}_{spec_name}"
        counter = 2
        while candidate.exists():
            candidate = self.archive_root / f"{date_part}_{time_part}_{counter}_{spec_name}"
            counter += 1
        return candidate

    def verify_archive_integrity(
        self,
        spec_path: Union[str, Path],
        archive_path: Union[str, Path],
    ) -> None:
        """
        Compare the archive against the original.

        Both trees must list the same relative paths with the same sizes
        (the metadata file is ignored) and the archive must contain every
        required file.

        Raises:
            ArchivalError: INTEGRITY_FAILED on any mismatch
        """
        spec_path = Path(spec_path)
        archive_path = Path(archive_path)

        try:
            original = _list_files(spec_path)
            archived = _list_files(archive_path)
        except OSError as e:
            raise ArchivalError(
                f"Failed to list files for verification: {e}",
                ArchivalErrorKind.INTEGRITY_FAILED,
                spec_path,
            )
        archived.pop(METADATA_FILE_NAME, None)

        if len(original) != len(archived):
            raise ArchivalError(
                f"File count mismatch: original has {len(original)} files, "
                f"archive has {len(archived)}",
                ArchivalErrorKind.INTEGRITY_FAILED,
                spec_path,
            )

        for name in REQUIRED_FILES:
            if not (archive_path / name).is_file():
                raise ArchivalError(
                    f"Required file missing from archive: {name}",
                    ArchivalErrorKind.INTEGRITY_FAILED,
                    spec_path,
                )

        for relative, size in original.items():
            if relative not in archived:
                raise ArchivalError(
                    f"File missing from archive: {relative}",
                    ArchivalErrorKind.INTEGRITY_FAILED,
                    spec_path,
                )
            if archived[relative] != size:
                raise ArchivalError(
                    f"Size mismatch for {relative}: original {size} bytes, "
                    f"archive {archived[relative]} bytes",
                    ArchivalErrorKind.INTEGRITY_FAILED,
                    spec_path,
                )

    # Queries

    def get_archived_specs(self) -> List[ArchiveIndexEntry]:
        return self.index_manager.get_all_archives()

    def search_archived_specs(self, search_term: str) -> List[ArchiveIndexEntry]:
        return self.index_manager.search_archives(search_term)

    def get_archive_stats(self) -> ArchiveStats:
        return self.index_manager.get_archive_stats()

    def validate_and_repair_archive_index(self) -> RepairReport:
        return self.index_manager.validate_and_repair_index()

    def remove_archived_spec(self, archive_path: Union[str, Path]) -> bool:
        """
        Delete an archive and its index entry.

        The entry is removed first. If the directory cannot be deleted an
        entry that was indexed is restored from the archive's metadata file
        (when readable) and CLEANUP_FAILED is raised, so a directory that is
        already gone ends up unindexed with an error.

        Returns:
            True when both the entry and the directory were removed

        Raises:
            ArchivalError: CLEANUP_FAILED if the directory could not be removed,
                CONFIG_ERROR if the index could not be updated
        """
        archive_path = Path(archive_path)

        with archival_context(spec_path=str(archive_path)):
            was_indexed = self.index_manager.remove_archive_entry(archive_path)

            try:
                shutil.rmtree(archive_path)
            except OSError as e:
                metadata = read_archive_metadata(archive_path) if was_indexed else None
                if metadata is not None:
                    metadata.archive_path = str(archive_path)
                    self.index_manager.add_archive_entry(metadata)
                    logger.warning("Restored index entry for %s", archive_path)
                raise ArchivalError(
                    f"Failed to remove archive directory: {e}",
                    ArchivalErrorKind.CLEANUP_FAILED,
                    archive_path,
                )

            logger.info("Removed archive %s", archive_path)
            return True

    # Steps

    def _transition(self, current: ArchivalState, target: ArchivalState) -> ArchivalState:
        logger.debug("Archival state %s -> %s", current.value, target.value)
        return target

    def _archive_root_writable(self) -> bool:
        probe = self.archive_root / WRITE_PROBE_FILE
        try:
            self.archive_root.mkdir(parents=True, exist_ok=True)
            probe.write_text("test", encoding="utf-8")
            probe.unlink()
        except OSError as e:
            logger.debug("Archive root %s is not writable: %s", self.archive_root, e)
            return False
        return True

    def _ensure_archive_root(self) -> None:
        try:
            self.archive_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchivalError(
                f"Failed to create archive directory: {e}",
                ArchivalErrorKind.CONFIG_ERROR,
                self.archive_root,
            )

    def _create_destination(self, archive_path: Path) -> None:
        try:
            archive_path.mkdir()
        except OSError as e:
            raise ArchivalError(
                f"Failed to create archive destination: {e}",
                ArchivalErrorKind.COPY_FAILED,
                archive_path,
            )

    def _copy_contents(self, source: Path, destination: Path) -> None:
        try:
            for entry in sorted(source.iterdir()):
                target = destination / entry.name
                # Links are followed so the archive holds the content itself
                if entry.is_dir():
                    target.mkdir()
                    self._copy_contents(entry, target)
                elif entry.is_file():
                    self._copy_file(entry, target)
                elif entry.is_symlink():
                    raise ArchivalError(
                        f"Broken symlink: {entry}",
                        ArchivalErrorKind.COPY_FAILED,
                        entry,
                    )
                else:
                    raise ArchivalError(
                        f"Unsupported file type: {entry}",
                        ArchivalErrorKind.COPY_FAILED,
                        entry,
                    )
            shutil.copystat(source, destination)
        except OSError as e:
            raise ArchivalError(
                f"Failed to copy {source}: {e}",
                ArchivalErrorKind.COPY_FAILED,
                source,
            )

    def _copy_file(self, source: Path, target: Path) -> None:
        # Streamed copy, then mode and atime/mtime from the source
        shutil.copyfile(source, target)
        shutil.copystat(source, target)

    def _remove_original(self, spec_path: Path) -> None:
        try:
            shutil.rmtree(spec_path)
        except OSError as e:
            raise ArchivalError(
                f"Failed to remove original spec directory: {e}",
                ArchivalErrorKind.CLEANUP_FAILED,
                spec_path,
            )

    def _rollback(self, archive_path: Path) -> None:
        try:
            shutil.rmtree(archive_path)
            logger.warning("Rolled back partial archive %s", archive_path)
        except OSError as e:
            logger.error("Failed to roll back partial archive %s: %s", archive_path, e)


# Helper functions

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _list_files(root: Path) -> Dict[str, int]:
    """Relative path -> size for every file under root, following symlinks."""
    files: Dict[str, int] = {}
    for dirpath, _dirnames, filenames in os.walk(root, followlinks=True):
        current = Path(dirpath)
        for name in filenames:
            path = current / name
            files[path.relative_to(root).as_posix()] = path.stat().st_size
    return files
