"""
Property-based tests for completion detection and archive naming using Hypothesis.

Tests that task counting agrees with generated checklists, that arbitrary text
never crashes the parser, and that generated archive paths never collide.
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

from hypothesis import HealthCheck, given, settings, strategies as st

from spec_archiver.config import MAX_DELAY_MINUTES, ArchivalSettings
from spec_archiver.core.archival import ArchivalEngine
from spec_archiver.core.completion import CompletionDetector

detector = CompletionDetector()

NOISE_LINES = [
    "# Implementation Plan",
    "",
    "Some prose about the plan.",
    "* [x] star bullets are not tasks",
    "[ ] no dash",
    "- plain bullet",
    "  _Requirements: 1.1, 2.3_",
]


# Custom strategies

@st.composite
def task_line(draw):
    """Generate a checklist line and whether it is done."""
    indent = draw(st.text(alphabet=" \t", max_size=6))
    gap = draw(st.sampled_from(["", " ", "  "]))
    mark = draw(st.sampled_from([" ", "x", "X"]))
    title = draw(st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789 .-_", max_size=30))
    line = f"{indent}-{gap}[{mark}]"
    if title:
        line += f" {title}"
    return line, mark != " "


@st.composite
def tasks_document(draw):
    """Generate tasks.md content with known counts."""
    tasks = draw(st.lists(task_line(), max_size=30))
    lines = []
    for line, _ in tasks:
        lines.extend(draw(st.lists(st.sampled_from(NOISE_LINES), max_size=2)))
        lines.append(line)
    newline = draw(st.sampled_from(["\n", "\r\n"]))
    content = newline.join(lines)
    return content, len(tasks), sum(1 for _, done in tasks if done)


class TestTaskCountingProperties:
    """Property tests for parse_task_counts and is_tasks_file_complete."""

    @given(tasks_document())
    @settings(max_examples=200)
    def test_counts_match_generated_tasks(self, document):
        """Counts equal the number of generated task lines."""
        content, total, completed = document
        counts = detector.parse_task_counts(content)
        assert counts.total_tasks == total
        assert counts.completed_tasks == completed

    @given(tasks_document())
    def test_complete_iff_all_done_and_nonempty(self, document):
        content, total, completed = document
        assert detector.is_tasks_file_complete(content) == (total > 0 and completed == total)

    @given(st.text(max_size=2000))
    @settings(max_examples=200)
    def test_arbitrary_text_never_crashes(self, content):
        """Arbitrary text parses without error and keeps counts consistent."""
        counts = detector.parse_task_counts(content)
        assert 0 <= counts.completed_tasks <= counts.total_tasks
        report = detector.validate_tasks_format(content)
        assert report.is_valid == (not report.issues)

    @given(tasks_document(), st.text(alphabet="abc \n", max_size=50))
    def test_format_validation_does_not_change_counts(self, document, suffix):
        content, _, _ = document
        before = detector.parse_task_counts(content)
        detector.validate_tasks_format(content + suffix)
        assert detector.parse_task_counts(content) == before


class TestArchivePathProperties:
    """Property tests for generate_archive_path."""

    @given(
        name=st.text(alphabet="abcdefghijklmnopqrstuvwxyz-", min_size=1, max_size=20),
        existing=st.integers(min_value=0, max_value=6),
        timestamp=st.datetimes(
            min_value=datetime(2000, 1, 1),
            max_value=datetime(2099, 12, 31),
            timezones=st.just(timezone.utc),
        ),
    )
    @settings(max_examples=50, suppress_health_check=[HealthCheck.too_slow])
    def test_generated_path_is_unused(self, name, existing, timestamp):
        """Generated paths never point at an existing directory."""
        with tempfile.TemporaryDirectory() as tmp:
            engine = ArchivalEngine(Path(tmp))
            seen = set()
            for _ in range(existing + 1):
                path = engine.generate_archive_path(name, timestamp)
                assert not path.exists()
                assert path.parent == Path(tmp)
                assert path.name.startswith(timestamp.strftime("%Y-%m-%d"))
                assert path.name.endswith(f"_{name}")
                assert path not in seen
                seen.add(path)
                path.mkdir()


class TestSettingsProperties:
    """Property tests for archival settings normalization."""

    @given(st.one_of(st.integers(), st.text(max_size=10), st.booleans(), st.none()))
    def test_delay_always_in_range(self, value):
        archival = ArchivalSettings.from_toml_dict({"delay_minutes": value})
        assert 0 <= archival.delay_minutes <= MAX_DELAY_MINUTES

    @given(st.text(max_size=40))
    def test_archive_location_always_relative(self, value):
        location = ArchivalSettings.from_toml_dict({"archive_location": value}).archive_location
        path = Path(location)
        assert location.strip()
        assert not path.is_absolute()
        assert ".." not in path.parts
