"""
Unit tests for spec_archiver.core.completion module.

Tests checklist counting, completion status and format validation.
"""

import os
from datetime import datetime, timezone

import pytest

from spec_archiver.core.completion import (
    TASK_LINE_PATTERN,
    CompletionDetector,
    CompletionStatus,
    TaskCounts,
)
from spec_archiver.core.errors import ArchivalError, ArchivalErrorKind


@pytest.fixture
def detector():
    return CompletionDetector()


class TestParseTaskCounts:
    """Tests for parse_task_counts."""

    def test_counts_pending_and_done(self, detector):
        """Test counting a mix of pending and done items."""
        content = "- [x] 1. First\n- [ ] 2. Second\n- [x] 3. Third\n"
        assert detector.parse_task_counts(content) == TaskCounts(total_tasks=3, completed_tasks=2)

    def test_uppercase_marker_counts_as_done(self, detector):
        """Test that [X] is treated as done."""
        counts = detector.parse_task_counts("- [X] Done\n- [x] Also done\n")
        assert counts.completed_tasks == 2

    def test_nested_items_are_counted(self, detector):
        """Test that indentation does not matter."""
        content = "- [x] 1. Parent\n  - [ ] 1.1 Child\n\t- [x] 1.2 Tabbed child\n"
        counts = detector.parse_task_counts(content)
        assert counts.total_tasks == 3
        assert counts.completed_tasks == 2

    def test_items_found_anywhere_in_document(self, detector):
        """Test that items after headings and prose are counted."""
        content = (
            "# Plan\n\nSome intro text.\n\n## Phase 1\n- [x] 1. Done\n\n"
            "More prose.\n\n## Phase 2\n- [ ] 2. Pending\n"
        )
        assert detector.parse_task_counts(content).total_tasks == 2

    def test_non_checklist_lines_ignored(self, detector):
        """Test that plain bullets and prose are not tasks."""
        content = "- plain bullet\n* [x] star bullet\nText [x] inline\n[x] no dash\n"
        assert detector.parse_task_counts(content).total_tasks == 0

    def test_title_glued_to_marker_counts(self, detector):
        """Test that no separator is needed between marker and title."""
        counts = detector.parse_task_counts("- [x]Done\n- [ ]Todo\n")
        assert counts == TaskCounts(total_tasks=2, completed_tasks=1)
        assert detector.parse_task_counts("- [x]\n").total_tasks == 1

    def test_glued_items_can_complete_a_spec(self, detector):
        assert detector.is_tasks_file_complete("- [x]1. Setup\n- [X]2. Build\n")

    def test_dash_without_space_before_marker(self, detector):
        """Test that spaces between dash and marker are optional."""
        assert detector.parse_task_counts("-[x] tight\n").total_tasks == 1

    def test_crlf_line_endings(self, detector):
        """Test Windows line endings."""
        content = "- [x] 1. First\r\n- [ ] 2. Second\r\n- [x]\r\n"
        counts = detector.parse_task_counts(content)
        assert counts.total_tasks == 3
        assert counts.completed_tasks == 2

    def test_empty_content(self, detector):
        """Test empty content has no tasks."""
        assert detector.parse_task_counts("") == TaskCounts(total_tasks=0, completed_tasks=0)

    def test_pattern_captures_marker(self):
        """Test the captured group is the marker character."""
        match = TASK_LINE_PATTERN.search("  - [X] 2.1 Title")
        assert match is not None
        assert match.group(1) == "X"


class TestIsTasksFileComplete:
    """Tests for is_tasks_file_complete."""

    def test_all_done_is_complete(self, detector):
        assert detector.is_tasks_file_complete("- [x] a\n- [X] b\n")

    def test_one_pending_is_incomplete(self, detector):
        assert not detector.is_tasks_file_complete("- [x] a\n- [ ] b\n")

    def test_no_tasks_is_incomplete(self, detector):
        """Test that a file without items is never complete."""
        assert not detector.is_tasks_file_complete("# Plan\n\nNothing yet.\n")


class TestCheckSpecCompletion:
    """Tests for check_spec_completion."""

    def test_complete_spec(self, detector, make_spec):
        """Test status of a fully checked spec."""
        spec = make_spec("alpha")
        status = detector.check_spec_completion(spec)
        assert status.is_complete
        assert status.total_tasks == 4
        assert status.completed_tasks == 4

    def test_incomplete_spec(self, detector, make_spec, incomplete_tasks):
        """Test status of a partially checked spec."""
        spec = make_spec("beta", incomplete_tasks)
        status = detector.check_spec_completion(spec)
        assert not status.is_complete
        assert (status.completed_tasks, status.total_tasks) == (1, 3)

    def test_zero_tasks_does_not_fail(self, detector, make_spec):
        """Test that a spec without items reports incomplete instead of raising."""
        spec = make_spec("empty", "# Plan\n")
        status = detector.check_spec_completion(spec)
        assert not status.is_complete
        assert status.total_tasks == 0

    def test_last_modified_is_tasks_mtime(self, detector, make_spec):
        """Test last_modified comes from tasks.md in UTC."""
        spec = make_spec("alpha")
        os.utime(spec / "tasks.md", (1_700_000_000, 1_700_000_000))
        status = detector.check_spec_completion(spec)
        assert status.last_modified == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)

    def test_missing_tasks_file_raises_not_found(self, detector, make_spec):
        """Test SPEC_NOT_FOUND when tasks.md is absent."""
        spec = make_spec("no-tasks", None)
        with pytest.raises(ArchivalError) as exc_info:
            detector.check_spec_completion(spec)
        assert exc_info.value.kind is ArchivalErrorKind.SPEC_NOT_FOUND
        assert exc_info.value.spec_path == str(spec)

    def test_unreadable_tasks_file_raises_validation_failed(self, detector, make_spec):
        """Test VALIDATION_FAILED when tasks.md is not readable text."""
        spec = make_spec("binary")
        (spec / "tasks.md").write_bytes(b"\xff\xfe\x00bad")
        with pytest.raises(ArchivalError) as exc_info:
            detector.check_spec_completion(spec)
        assert exc_info.value.kind is ArchivalErrorKind.VALIDATION_FAILED

    def test_idempotent_without_changes(self, detector, make_spec):
        """Test repeated checks return equal results."""
        spec = make_spec("alpha")
        assert detector.check_spec_completion(spec) == detector.check_spec_completion(spec)

    def test_percentage(self, detector, make_spec, incomplete_tasks):
        """Test rounded completion percentage."""
        spec = make_spec("beta", incomplete_tasks)
        assert detector.get_completion_percentage(spec) == 33

    def test_status_to_dict(self):
        """Test CompletionStatus serialization."""
        status = CompletionStatus(
            is_complete=False,
            total_tasks=0,
            completed_tasks=0,
            last_modified=datetime(2025, 1, 15, tzinfo=timezone.utc),
        )
        data = status.to_dict()
        assert data["percentage"] == 0
        assert data["last_modified"].startswith("2025-01-15")


class TestValidateTasksFormat:
    """Tests for validate_tasks_format."""

    def test_valid_content(self, detector):
        report = detector.validate_tasks_format("- [x] 1. Done\n- [ ] 2. Pending\n")
        assert report.is_valid
        assert report.issues == []

    def test_empty_content(self, detector):
        report = detector.validate_tasks_format("   \n")
        assert not report.is_valid
        assert report.issues == ["Tasks file is empty"]

    def test_no_markers(self, detector):
        report = detector.validate_tasks_format("# Plan\n\nJust prose.\n")
        assert not report.is_valid
        assert any("No valid task markers found" in issue for issue in report.issues)

    def test_malformed_markers(self, detector):
        """Test that [y] and [-] markers are reported."""
        report = detector.validate_tasks_format("- [x] ok\n- [y] odd\n- [-] dash\n")
        assert not report.is_valid
        malformed = [issue for issue in report.issues if issue.startswith("Found malformed")]
        assert len(malformed) == 1
        assert "- [y]" in malformed[0]
        assert "- [-]" in malformed[0]

    def test_markers_without_list_prefix(self, detector):
        report = detector.validate_tasks_format("- [x] ok\n[ ] missing dash\n")
        assert not report.is_valid
        assert any("missing \"- \" prefix" in issue for issue in report.issues)

    def test_validation_does_not_affect_counts(self, detector):
        """Test that format problems are advisory only."""
        content = "- [x] ok\n- [y] odd\n"
        assert not detector.validate_tasks_format(content).is_valid
        assert detector.is_tasks_file_complete(content)


class TestGetAllCompletedSpecs:
    """Tests for get_all_completed_specs and iter_spec_dirs."""

    def test_lists_only_complete_specs(self, detector, specs_dir, make_spec, incomplete_tasks):
        make_spec("alpha")
        make_spec("beta", incomplete_tasks)
        make_spec("gamma")
        completed = detector.get_all_completed_specs(specs_dir)
        assert [p.name for p in completed] == ["alpha", "gamma"]

    def test_skips_archive_and_hidden_dirs(self, detector, specs_dir, make_spec):
        make_spec("alpha")
        make_spec("archive")
        make_spec(".hidden")
        completed = detector.get_all_completed_specs(specs_dir)
        assert [p.name for p in completed] == ["alpha"]

    def test_skips_dirs_without_tasks(self, detector, specs_dir, make_spec):
        make_spec("alpha")
        make_spec("notes-only", None)
        (specs_dir / "stray.md").write_text("not a dir")
        assert [p.name for p in detector.get_all_completed_specs(specs_dir)] == ["alpha"]

    def test_custom_archive_dir_name(self, specs_dir, make_spec):
        make_spec("alpha")
        make_spec("old")
        detector = CompletionDetector(archive_dir_name="old")
        assert [p.name for p in detector.get_all_completed_specs(specs_dir)] == ["alpha"]

    def test_exclude_paths(self, detector, specs_dir, make_spec):
        make_spec("alpha")
        stored = make_spec("stored")
        dirs = detector.iter_spec_dirs(specs_dir, exclude=[stored])
        assert [p.name for p in dirs] == ["alpha"]

    def test_missing_base_dir_raises(self, detector, tmp_path):
        with pytest.raises(ArchivalError) as exc_info:
            detector.get_all_completed_specs(tmp_path / "nope")
        assert exc_info.value.kind is ArchivalErrorKind.VALIDATION_FAILED
