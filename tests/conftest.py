"""
Root pytest configuration and shared fixtures.

Provides spec directory builders and archival engine fixtures.
"""

import logging
import os
import time
from pathlib import Path
from typing import Dict, Optional

import pytest

from spec_archiver.core.archival import ArchivalEngine
from spec_archiver.core.logging_config import ROOT_LOGGER_NAME

REQUIREMENTS_TEXT = """# Requirements Document

## Requirement 1

As a developer I want finished specs moved out of the working area, so that
the active list stays short. The archive must keep every file intact.
"""

DESIGN_TEXT = """# Design Document

Archival copies the spec into a dated directory, verifies the copy, records
it in the index and only then removes the original directory.
"""

COMPLETE_TASKS = """# Implementation Plan

- [x] 1. Set up project structure
- [x] 2. Implement archival engine
  - [x] 2.1 Copy files
  - [X] 2.2 Verify integrity
"""

INCOMPLETE_TASKS = """# Implementation Plan

- [x] 1. Set up project structure
- [ ] 2. Implement archival engine
- [ ] 3. Write documentation
"""


def age_path(path: Path, minutes: float) -> None:
    """Set atime/mtime of path to `minutes` ago."""
    stamp = time.time() - minutes * 60
    os.utime(path, (stamp, stamp))


def write_spec(
    specs_dir: Path,
    name: str,
    tasks: Optional[str] = COMPLETE_TASKS,
    *,
    requirements: Optional[str] = REQUIREMENTS_TEXT,
    design: Optional[str] = DESIGN_TEXT,
    extra_files: Optional[Dict[str, str]] = None,
    age_minutes: float = 60,
) -> Path:
    """Create a spec directory.

    Passing None for a document leaves that file out. Every file is aged by
    age_minutes so the modification guard does not block archival.
    """
    spec_dir = specs_dir / name
    spec_dir.mkdir(parents=True)

    documents = {
        "requirements.md": requirements,
        "design.md": design,
        "tasks.md": tasks,
    }
    for file_name, content in documents.items():
        if content is not None:
            (spec_dir / file_name).write_text(content, encoding="utf-8")

    for relative, content in (extra_files or {}).items():
        target = spec_dir / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    for path in spec_dir.rglob("*"):
        age_path(path, age_minutes)

    return spec_dir


def snapshot_tree(root: Path) -> Dict[str, bytes]:
    """Relative path -> content for every file under root."""
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture
def specs_dir(tmp_path):
    """Create a temporary .kiro/specs directory."""
    path = tmp_path / ".kiro" / "specs"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def archive_root(specs_dir):
    """Archive directory inside the specs directory (not created)."""
    return specs_dir / "archive"


@pytest.fixture
def engine(archive_root):
    """Archival engine for the temporary archive root."""
    return ArchivalEngine(archive_root)


@pytest.fixture(autouse=True)
def reset_archiver_logging():
    """Drop handlers installed by CLI runs so streams do not leak between tests."""
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.handlers.clear()
    root.setLevel(logging.NOTSET)


@pytest.fixture
def make_spec(specs_dir):
    """Factory creating spec directories under specs_dir (see write_spec)."""

    def _make(name: str, tasks: Optional[str] = COMPLETE_TASKS, **kwargs) -> Path:
        return write_spec(specs_dir, name, tasks, **kwargs)

    return _make


@pytest.fixture
def incomplete_tasks():
    """tasks.md content with 1 of 3 tasks done."""
    return INCOMPLETE_TASKS


@pytest.fixture
def tree_snapshot():
    """Function returning relative path -> bytes for a directory tree."""
    return snapshot_tree
