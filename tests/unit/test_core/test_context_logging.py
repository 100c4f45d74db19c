"""
Unit tests for operation context and structured logging.

Tests spec_archiver.core.context and spec_archiver.core.logging_config.
"""

import io
import json
import logging
import re

from spec_archiver.core.context import (
    archival_context,
    generate_operation_id,
    get_current_context,
    get_operation_id,
    get_spec_path,
)
from spec_archiver.core.logging_config import (
    ROOT_LOGGER_NAME,
    ContextFilter,
    HumanReadableFormatter,
    StructuredFormatter,
    configure_logging,
    get_logger,
)


def make_record(message="hello", name="spec_archiver.core.archival", level=logging.INFO):
    return logging.LogRecord(name, level, __file__, 10, message, None, None)


class TestOperationContext:
    """Tests for archival_context."""

    def test_generate_operation_id(self):
        assert re.fullmatch(r"arc_[0-9a-f]{12}", generate_operation_id())
        assert generate_operation_id("cli").startswith("cli_")
        assert generate_operation_id() != generate_operation_id()

    def test_values_set_and_reset(self):
        assert get_operation_id() == ""

        with archival_context(spec_path="specs/alpha") as ctx:
            assert get_operation_id() == ctx.operation_id
            assert get_spec_path() == "specs/alpha"

        assert get_operation_id() == ""
        assert get_spec_path() == ""

    def test_nested_context_keeps_outer_id(self):
        with archival_context() as outer:
            with archival_context(spec_path="specs/alpha") as inner:
                assert inner.operation_id == outer.operation_id
                assert inner.spec_path == "specs/alpha"
            assert get_spec_path() == ""

    def test_explicit_operation_id(self):
        with archival_context(operation_id="cli_123"):
            with archival_context(spec_path="x") as inner:
                assert inner.operation_id == "cli_123"

    def test_current_context_snapshot(self):
        with archival_context(spec_path="specs/beta"):
            snapshot = get_current_context()
            data = snapshot.to_dict()
        assert data["spec_path"] == "specs/beta"
        assert data["elapsed_ms"] >= 0


class TestFormatters:
    """Tests for the log formatters and context filter."""

    def test_context_filter_injects_fields(self):
        record = make_record()
        with archival_context(spec_path="specs/alpha") as ctx:
            ContextFilter().filter(record)
        assert record.operation_id == ctx.operation_id
        assert record.spec_path == "specs/alpha"

    def test_context_filter_outside_operation(self):
        record = make_record()
        ContextFilter().filter(record)
        assert record.operation_id == "-"
        assert record.elapsed_ms == 0.0

    def test_structured_formatter(self):
        record = make_record("Archived %s")
        record.args = ("alpha",)
        record.archive_path = "archive/2025-01-15_alpha"
        ContextFilter().filter(record)

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["message"] == "Archived alpha"
        assert entry["logger"] == "spec_archiver.core.archival"
        assert entry["operation_id"] == "-"
        assert entry["extra"] == {"archive_path": "archive/2025-01-15_alpha"}

    def test_human_formatter(self):
        record = make_record("Copying files")
        with archival_context(operation_id="arc_abc"):
            ContextFilter().filter(record)

        line = HumanReadableFormatter(include_timestamp=False).format(record)

        assert line == "[INFO] [arc_abc] core.archival: Copying files"

    def test_human_formatter_appends_spec_path(self):
        record = make_record("Copying files")
        with archival_context(operation_id="arc_abc", spec_path="specs/alpha"):
            ContextFilter().filter(record)

        line = HumanReadableFormatter(include_timestamp=False).format(record)

        assert line == "[INFO] [arc_abc] core.archival: Copying files (specs/alpha)"

    def test_structured_timestamp_is_utc_z(self):
        record = make_record()
        record.created = 1_736_937_045.5
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["timestamp"] == "2025-01-15T10:30:45.500Z"
        assert "extra" not in entry


class TestConfigureLogging:
    """Tests for configure_logging and get_logger."""

    def test_structured_output_to_stream(self):
        stream = io.StringIO()
        configure_logging(level="DEBUG", stream=stream)

        with archival_context(spec_path="specs/alpha") as ctx:
            get_logger("core.archival").info("Archived")

        entry = json.loads(stream.getvalue().strip())
        assert entry["operation_id"] == ctx.operation_id
        assert entry["spec_path"] == "specs/alpha"

    def test_level_filters_records(self):
        stream = io.StringIO()
        configure_logging(level="ERROR", format="human", stream=stream)

        get_logger(__name__).info("quiet")
        get_logger(__name__).error("loud")

        output = stream.getvalue()
        assert "quiet" not in output
        assert "loud" in output

    def test_reconfigure_replaces_handler(self):
        configure_logging(stream=io.StringIO())
        configure_logging(stream=io.StringIO())
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1

    def test_get_logger_namespacing(self):
        assert get_logger("cli").name == "spec_archiver.cli"
        assert get_logger("spec_archiver.core").name == "spec_archiver.core"
