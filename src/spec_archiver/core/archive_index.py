"""
Archive index for archived specs.

The index is a single JSON file at the archive root listing every archived
spec, so archives can be listed, searched and summarised without opening each
archive's own metadata file.

File layout (.archive-index.json):

    {
        "version": "1.0",
        "lastUpdated": "2025-01-15T10:30:45.123456Z",
        "archives": [
            {
                "specName": "alpha",
                "archivePath": ".kiro/specs/archive/2025-01-15_alpha",
                "completionDate": "...",
                "archivalDate": "...",
                "totalTasks": 3
            }
        ]
    }

Every mutation rewrites the whole file through a temporary file and an atomic
rename. Every query re-reads the file, since archival may run from separate
process invocations. There is no locking: callers must not write the index
from two processes at once.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from spec_archiver.core.errors import ArchivalError, ArchivalErrorKind

logger = logging.getLogger(__name__)


# Constants

INDEX_FILE_NAME = ".archive-index.json"
INDEX_VERSION = "1.0"

METADATA_FILE_NAME = ".archive-metadata.json"
METADATA_VERSION = "1.0"


# Timestamp helpers

def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as ISO-8601 UTC with a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# Data structures

@dataclass
class ArchiveMetadata:
    """
    Metadata written once into each archive directory.
    """
    spec_name: str
    original_path: str
    archive_path: str
    completion_date: datetime
    archival_date: datetime
    total_tasks: int
    completed_tasks: int
    version: str = METADATA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "specName": self.spec_name,
            "originalPath": self.original_path,
            "archivePath": self.archive_path,
            "completionDate": format_timestamp(self.completion_date),
            "archivalDate": format_timestamp(self.archival_date),
            "totalTasks": self.total_tasks,
            "completedTasks": self.completed_tasks,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArchiveMetadata":
        """
        Build metadata from its on-disk form.

        Raises:
            KeyError, TypeError, ValueError: if required fields are missing
                or malformed
        """
        return cls(
            spec_name=str(data["specName"]),
            original_path=str(data.get("originalPath", "")),
            archive_path=str(data["archivePath"]),
            completion_date=parse_timestamp(data["completionDate"]),
            archival_date=parse_timestamp(data["archivalDate"]),
            total_tasks=int(data.get("totalTasks", 0)),
            completed_tasks=int(data.get("completedTasks", 0)),
            version=str(data.get("version", METADATA_VERSION)),
        )


@dataclass
class ArchiveIndexEntry:
    """
    Subset of ArchiveMetadata kept in the index.
    """
    spec_name: str
    archive_path: str
    completion_date: datetime
    archival_date: datetime
    total_tasks: int

    @classmethod
    def from_metadata(cls, metadata: ArchiveMetadata) -> "ArchiveIndexEntry":
        return cls(
            spec_name=metadata.spec_name,
            archive_path=metadata.archive_path,
            completion_date=metadata.completion_date,
            archival_date=metadata.archival_date,
            total_tasks=metadata.total_tasks,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "specName": self.spec_name,
            "archivePath": self.archive_path,
            "completionDate": format_timestamp(self.completion_date),
            "archivalDate": format_timestamp(self.archival_date),
            "totalTasks": self.total_tasks,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArchiveIndexEntry":
        now = datetime.now(timezone.utc)
        completion = data.get("completionDate")
        archival = data.get("archivalDate")
        return cls(
            spec_name=str(data.get("specName") or ""),
            archive_path=str(data.get("archivePath") or ""),
            completion_date=parse_timestamp(completion) if completion else now,
            archival_date=parse_timestamp(archival) if archival else now,
            total_tasks=int(data.get("totalTasks") or 0),
        )


@dataclass
class ArchiveIndex:
    """
    In-memory form of the index file.
    """
    version: str = INDEX_VERSION
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    archives: List[ArchiveIndexEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "lastUpdated": format_timestamp(self.last_updated),
            "archives": [entry.to_dict() for entry in self.archives],
        }

    def sort(self) -> None:
        """Most recently archived first."""
        self.archives.sort(key=lambda entry: entry.archival_date, reverse=True)


@dataclass
class ArchiveStats:
    """
    Summary statistics over the index.
    """
    total_archives: int
    total_tasks: int
    oldest_archive: Optional[datetime] = None
    newest_archive: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalArchives": self.total_archives,
            "totalTasks": self.total_tasks,
            "oldestArchive": format_timestamp(self.oldest_archive) if self.oldest_archive else None,
            "newestArchive": format_timestamp(self.newest_archive) if self.newest_archive else None,
        }


@dataclass
class RepairReport:
    """
    Outcome of an index validation/repair pass.
    """
    is_valid: bool
    repaired: bool
    issues: List[str] = field(default_factory=list)
    removed_entries: List[str] = field(default_factory=list)
    restored_entries: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "repaired": self.repaired,
            "issues": list(self.issues),
            "removedEntries": list(self.removed_entries),
            "restoredEntries": list(self.restored_entries),
        }


# Metadata file helpers

def read_archive_metadata(archive_dir: Union[str, Path]) -> Optional[ArchiveMetadata]:
    """
    Read the metadata file of an archive directory.

    Returns:
        ArchiveMetadata, or None if the file is missing or unreadable
    """
    metadata_file = Path(archive_dir) / METADATA_FILE_NAME
    try:
        with open(metadata_file, "r", encoding="utf-8") as f:
            data = json.load(f)
        return ArchiveMetadata.from_dict(data)
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        logger.debug("Unreadable archive metadata %s: %s", metadata_file, e)
        return None


def write_archive_metadata(archive_dir: Union[str, Path], metadata: ArchiveMetadata) -> Path:
    """
    Write the metadata file into an archive directory.

    Raises:
        ArchivalError: COPY_FAILED if the file cannot be written
    """
    metadata_file = Path(archive_dir) / METADATA_FILE_NAME
    try:
        with open(metadata_file, "w", encoding="utf-8") as f:
            json.dump(metadata.to_dict(), f, indent=2)
    except OSError as e:
        raise ArchivalError(
            f"Failed to write archive metadata: {e}",
            ArchivalErrorKind.COPY_FAILED,
            archive_dir,
        )
    return metadata_file


# Main index manager

class ArchiveIndexManager:
    """Durable catalog of archived specs stored at the archive root."""

    def __init__(self, archive_root: Union[str, Path]):
        self.archive_root = Path(archive_root)
        self.index_path = self.archive_root / INDEX_FILE_NAME

    # Mutations

    def add_archive_entry(self, metadata: ArchiveMetadata) -> ArchiveIndexEntry:
        """
        Add (or replace) the entry for an archive and persist the index.

        An existing entry with the same archive path is replaced.

        Raises:
            ArchivalError: CONFIG_ERROR if the index cannot be read or written
        """
        index = self._load_index()
        entry = ArchiveIndexEntry.from_metadata(metadata)
        key = _path_key(entry.archive_path)

        index.archives = [e for e in index.archives if _path_key(e.archive_path) != key]
        index.archives.append(entry)
        index.sort()
        index.last_updated = datetime.now(timezone.utc)

        self._save_index(index)
        logger.debug("Indexed archive %s", entry.archive_path)
        return entry

    def remove_archive_entry(self, archive_path: Union[str, Path]) -> bool:
        """
        Remove the entry for an archive path.

        Returns:
            True if an entry was removed, False if none matched

        Raises:
            ArchivalError: CONFIG_ERROR if the index cannot be read or written
        """
        index = self._load_index()
        key = _path_key(archive_path)
        remaining = [e for e in index.archives if _path_key(e.archive_path) != key]

        if len(remaining) == len(index.archives):
            return False

        index.archives = remaining
        index.last_updated = datetime.now(timezone.utc)
        self._save_index(index)
        logger.debug("Removed index entry %s", archive_path)
        return True

    # Queries

    def get_index(self) -> ArchiveIndex:
        """Current persisted index (re-read from disk)."""
        return self._load_index()

    def get_all_archives(self) -> List[ArchiveIndexEntry]:
        """All entries, most recently archived first."""
        return list(self._load_index().archives)

    def search_archives(self, search_term: str) -> List[ArchiveIndexEntry]:
        """Entries whose spec name contains search_term (case-insensitive)."""
        term = search_term.lower()
        return [e for e in self._load_index().archives if term in e.spec_name.lower()]

    def get_archive_by_spec_name(self, spec_name: str) -> Optional[ArchiveIndexEntry]:
        """Most recent entry with exactly this spec name."""
        for entry in self._load_index().archives:
            if entry.spec_name == spec_name:
                return entry
        return None

    def get_archive_by_path(self, archive_path: Union[str, Path]) -> Optional[ArchiveIndexEntry]:
        key = _path_key(archive_path)
        for entry in self._load_index().archives:
            if _path_key(entry.archive_path) == key:
                return entry
        return None

    def get_archive_stats(self) -> ArchiveStats:
        """Count, oldest/newest archival date and total archived tasks."""
        archives = self._load_index().archives

        if not archives:
            return ArchiveStats(total_archives=0, total_tasks=0)

        dates = [entry.archival_date for entry in archives]
        return ArchiveStats(
            total_archives=len(archives),
            total_tasks=sum(entry.total_tasks for entry in archives),
            oldest_archive=min(dates),
            newest_archive=max(dates),
        )

    # Repair

    def validate_and_repair_index(self) -> RepairReport:
        """
        Reconcile the index with the archive directories on disk.

        - duplicate entries for one archive path are collapsed
        - entries whose archive directory no longer exists are dropped
        - archive directories with readable metadata but no entry are
          re-indexed from their own metadata file

        Directories without readable metadata are reported and left alone.
        Problems are reported in the result; nothing is raised.
        """
        issues: List[str] = []
        removed: List[str] = []
        restored: List[str] = []

        try:
            index = self._load_index()
        except ArchivalError as e:
            return RepairReport(
                is_valid=False,
                repaired=False,
                issues=[f"Failed to load archive index: {e.message}"],
            )

        seen = set()
        kept: List[ArchiveIndexEntry] = []
        for entry in index.archives:
            # Path("") would resolve to the working directory
            if not entry.archive_path.strip():
                issues.append(f"Index entry has no archive path: {entry.spec_name or '<unnamed>'}")
                continue

            key = _path_key(entry.archive_path)
            if key in seen:
                issues.append(f"Duplicate entry for path: {entry.archive_path}")
                continue
            seen.add(key)

            if not Path(entry.archive_path).is_dir():
                issues.append(f"Archive directory not found: {entry.archive_path}")
                removed.append(entry.archive_path)
                continue

            kept.append(entry)

        indexed = {_path_key(entry.archive_path) for entry in kept}
        for archive_dir in self._iter_archive_dirs():
            if _path_key(archive_dir) in indexed:
                continue

            metadata = read_archive_metadata(archive_dir)
            if metadata is None:
                issues.append(f"Archive directory has no readable metadata: {archive_dir}")
                continue

            entry = ArchiveIndexEntry.from_metadata(metadata)
            entry.archive_path = str(archive_dir)
            kept.append(entry)
            restored.append(entry.archive_path)
            issues.append(f"Archive directory missing from index: {archive_dir}")

        changed = len(kept) != len(index.archives) or bool(restored)
        repaired = False

        if changed:
            index.archives = kept
            index.sort()
            index.last_updated = datetime.now(timezone.utc)
            try:
                self._save_index(index)
                repaired = True
            except ArchivalError as e:
                issues.append(f"Failed to save repaired index: {e.message}")

        if issues:
            logger.warning("Archive index had %d issue(s); repaired=%s", len(issues), repaired)

        return RepairReport(
            is_valid=not issues,
            repaired=repaired,
            issues=issues,
            removed_entries=removed,
            restored_entries=restored,
        )

    # Persistence

    def _load_index(self) -> ArchiveIndex:
        try:
            raw = self.index_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ArchiveIndex()
        except OSError as e:
            raise ArchivalError(
                f"Failed to load archive index: {e}",
                ArchivalErrorKind.CONFIG_ERROR,
                self.index_path,
            )

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ArchivalError(
                f"Archive index is not valid JSON: {e}",
                ArchivalErrorKind.CONFIG_ERROR,
                self.index_path,
            )

        return self._migrate_index(data)

    def _migrate_index(self, data: Any) -> ArchiveIndex:
        if not isinstance(data, dict):
            raise ArchivalError(
                "Invalid index format: not an object",
                ArchivalErrorKind.CONFIG_ERROR,
                self.index_path,
            )

        if data.get("version") != INDEX_VERSION:
            logger.info(
                "Migrating archive index from version %s to %s",
                data.get("version"),
                INDEX_VERSION,
            )

        raw_archives = data.get("archives")
        if not isinstance(raw_archives, list):
            raw_archives = []

        archives: List[ArchiveIndexEntry] = []
        for raw in raw_archives:
            if not isinstance(raw, dict):
                raise ArchivalError(
                    "Invalid archive entry format",
                    ArchivalErrorKind.CONFIG_ERROR,
                    self.index_path,
                )
            try:
                archives.append(ArchiveIndexEntry.from_dict(raw))
            except (TypeError, ValueError) as e:
                raise ArchivalError(
                    f"Invalid archive entry: {e}",
                    ArchivalErrorKind.CONFIG_ERROR,
                    self.index_path,
                )

        last_updated = datetime.now(timezone.utc)
        if isinstance(data.get("lastUpdated"), str):
            try:
                last_updated = parse_timestamp(data["lastUpdated"])
            except ValueError:
                pass

        return ArchiveIndex(version=INDEX_VERSION, last_updated=last_updated, archives=archives)

    def _save_index(self, index: ArchiveIndex) -> None:
        temp_file = self.index_path.with_suffix(".tmp")
        try:
            self.archive_root.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(index.to_dict(), f, indent=2)
            temp_file.replace(self.index_path)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise ArchivalError(
                f"Failed to save archive index: {e}",
                ArchivalErrorKind.CONFIG_ERROR,
                self.index_path,
            )

    def _iter_archive_dirs(self) -> List[Path]:
        if not self.archive_root.is_dir():
            return []
        return sorted(
            child
            for child in self.archive_root.iterdir()
            if child.is_dir() and not child.name.startswith(".")
        )


# Helper functions

def _path_key(path: Union[str, Path]) -> str:
    return str(Path(path).resolve())
