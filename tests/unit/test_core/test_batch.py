"""
Unit tests for spec_archiver.core.batch module.

Tests eligibility decisions, dry runs and per-spec outcomes of batch archival.
"""

import logging
import os
import shutil

import pytest

from spec_archiver.config import ArchivalSettings, NotificationLevel
from spec_archiver.core.archival import ArchivalEngine
from spec_archiver.core.batch import (
    BatchOutcome,
    archive_completed_specs,
    should_archive_spec,
)


@pytest.fixture
def settings():
    return ArchivalSettings()


def outcomes(report):
    return {os.path.basename(e.spec_path): e.outcome for e in report.entries}


class TestShouldArchiveSpec:
    """Tests for should_archive_spec."""

    def test_complete_and_old_enough(self, engine, settings, make_spec):
        ok, reason = should_archive_spec(make_spec("alpha"), engine, settings)
        assert ok
        assert reason == "4/4 tasks complete"

    def test_incomplete(self, engine, settings, make_spec, incomplete_tasks):
        ok, reason = should_archive_spec(make_spec("beta", incomplete_tasks), engine, settings)
        assert not ok
        assert reason == "1/3 tasks complete"

    def test_within_delay_window(self, engine, make_spec):
        settings = ArchivalSettings(delay_minutes=30)
        ok, reason = should_archive_spec(make_spec("alpha", age_minutes=10), engine, settings)
        assert not ok
        assert "waiting 30 minute(s)" in reason

    def test_zero_delay_still_honours_guard(self, engine, make_spec):
        settings = ArchivalSettings(delay_minutes=0)
        ok, reason = should_archive_spec(make_spec("alpha", age_minutes=0), engine, settings)
        assert not ok
        assert "recently modified" in reason

    def test_disabled(self, engine, make_spec):
        ok, reason = should_archive_spec(make_spec("alpha"), engine, ArchivalSettings(enabled=False))
        assert not ok
        assert reason == "Automatic archival is disabled"

    def test_missing_tasks_file(self, engine, settings, make_spec):
        ok, reason = should_archive_spec(make_spec("notes", None), engine, settings)
        assert not ok
        assert "tasks.md" in reason


class TestArchiveCompletedSpecs:
    """Tests for archive_completed_specs."""

    def test_archives_only_eligible_specs(
        self, engine, settings, specs_dir, make_spec, incomplete_tasks, tree_snapshot
    ):
        make_spec("alpha")
        beta = make_spec("beta", incomplete_tasks)
        gamma = make_spec("gamma", design=None)
        make_spec("notes", None)
        beta_before = tree_snapshot(beta)
        gamma_before = tree_snapshot(gamma)

        report = archive_completed_specs(specs_dir, engine, settings)

        assert outcomes(report) == {
            "alpha": BatchOutcome.ARCHIVED,
            "beta": BatchOutcome.SKIPPED_INCOMPLETE,
            "gamma": BatchOutcome.SKIPPED_INVALID,
            "notes": BatchOutcome.SKIPPED_INVALID,
        }
        assert not (specs_dir / "alpha").exists()
        assert tree_snapshot(beta) == beta_before
        assert tree_snapshot(gamma) == gamma_before
        assert [e.spec_name for e in engine.get_archived_specs()] == ["alpha"]
        assert not report.has_failures
        assert report.counts["archived"] == 1

    def test_archive_root_not_revisited(self, engine, settings, specs_dir, make_spec):
        make_spec("alpha")
        archive_completed_specs(specs_dir, engine, settings)

        report = archive_completed_specs(specs_dir, engine, settings)

        assert report.entries == []

    def test_archive_root_with_custom_name_is_excluded(self, settings, specs_dir, make_spec):
        engine = ArchivalEngine(specs_dir / "done")
        make_spec("alpha")
        make_spec("beta")

        archive_completed_specs(specs_dir, engine, settings)
        report = archive_completed_specs(specs_dir, engine, settings)

        assert report.entries == []
        assert len(engine.get_archived_specs()) == 2

    def test_dry_run_moves_nothing(self, engine, settings, specs_dir, make_spec, tree_snapshot):
        alpha = make_spec("alpha")
        before = tree_snapshot(alpha)

        report = archive_completed_specs(specs_dir, engine, settings, dry_run=True)

        assert report.dry_run
        assert outcomes(report) == {"alpha": BatchOutcome.WOULD_ARCHIVE}
        assert tree_snapshot(alpha) == before
        assert engine.get_archived_specs() == []

    def test_disabled_does_nothing(self, engine, specs_dir, make_spec):
        make_spec("alpha")

        report = archive_completed_specs(specs_dir, engine, ArchivalSettings(enabled=False))

        assert not report.enabled
        assert report.entries == []
        assert (specs_dir / "alpha").exists()

    def test_partial_outcome(self, engine, settings, specs_dir, make_spec, monkeypatch):
        alpha = make_spec("alpha")
        real_rmtree = shutil.rmtree

        def guarded_rmtree(path, *args, **kwargs):
            if os.fspath(path) == os.fspath(alpha):
                raise PermissionError("Permission denied")
            return real_rmtree(path, *args, **kwargs)

        monkeypatch.setattr(shutil, "rmtree", guarded_rmtree)

        report = archive_completed_specs(specs_dir, engine, settings)

        entry = report.entries[0]
        assert entry.outcome is BatchOutcome.PARTIAL
        assert entry.archive_path is not None
        assert report.has_failures

    def test_error_outcome_for_unreadable_tasks(self, engine, settings, specs_dir, make_spec):
        spec = make_spec("broken")
        (spec / "tasks.md").write_bytes(b"\xff\xfe\x00")

        report = archive_completed_specs(specs_dir, engine, settings)

        assert outcomes(report) == {"broken": BatchOutcome.ERROR}
        assert report.has_failures

    def test_report_to_dict(self, engine, settings, specs_dir, make_spec):
        make_spec("alpha")
        data = archive_completed_specs(specs_dir, engine, settings, dry_run=True).to_dict()
        assert data["dry_run"] is True
        assert data["counts"]["would-archive"] == 1
        assert data["entries"][0]["outcome"] == "would-archive"

    def test_verbose_reports_skips(self, engine, specs_dir, make_spec, incomplete_tasks, caplog):
        make_spec("beta", incomplete_tasks)
        settings = ArchivalSettings(notification_level=NotificationLevel.VERBOSE)

        with caplog.at_level(logging.INFO, logger="spec_archiver"):
            archive_completed_specs(specs_dir, engine, settings)

        assert any("Skipped" in record.getMessage() for record in caplog.records)

    def test_none_level_is_quiet(self, engine, specs_dir, make_spec, caplog):
        make_spec("alpha")
        settings = ArchivalSettings(notification_level=NotificationLevel.NONE)

        with caplog.at_level(logging.INFO, logger="spec_archiver.core.batch"):
            archive_completed_specs(specs_dir, engine, settings)

        assert [r for r in caplog.records if r.name == "spec_archiver.core.batch"] == []
