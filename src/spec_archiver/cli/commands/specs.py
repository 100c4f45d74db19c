"""Spec discovery commands for the spec-archiver CLI.

Provides commands for inspecting completion and structure of active specs.
"""

import click

from spec_archiver.cli.logging import cli_command
from spec_archiver.cli.output import (
    OUTPUT_FORMATS,
    emit_archival_error,
    emit_error,
    emit_success,
    emit_table,
)
from spec_archiver.cli.registry import get_context
from spec_archiver.core.completion import TASKS_FILE
from spec_archiver.core.errors import ArchivalError


@click.group("specs")
def specs() -> None:
    """Active spec discovery and validation commands."""
    pass


@specs.command("status")
@click.argument("spec")
@click.pass_context
@cli_command("specs-status")
def status_cmd(ctx: click.Context, spec: str) -> None:
    """Show completion status of a spec.

    SPEC is a spec directory path or a spec name under the specs directory.
    """
    cli_ctx = get_context(ctx)
    spec_path = cli_ctx.resolve_spec(spec)
    detector = cli_ctx.create_detector()

    try:
        status = detector.check_spec_completion(spec_path)
        content = (spec_path / TASKS_FILE).read_text(encoding="utf-8")
    except ArchivalError as e:
        emit_archival_error(e)
    except (OSError, UnicodeDecodeError) as e:
        emit_error(
            f"Failed to read tasks file: {e}",
            code="VALIDATION_ERROR",
            error_type="validation",
            details={"spec_path": str(spec_path)},
        )

    format_report = detector.validate_tasks_format(content)

    emit_success(
        {
            "spec_path": str(spec_path),
            "spec_name": spec_path.name,
            **status.to_dict(),
            "format_valid": format_report.is_valid,
        },
        warnings=format_report.issues or None,
    )


@specs.command("completed")
@click.pass_context
@cli_command("specs-completed")
def completed_cmd(ctx: click.Context) -> None:
    """List specs whose tasks are all complete."""
    cli_ctx = get_context(ctx)

    try:
        specs_dir = cli_ctx.require_specs_dir()
    except FileNotFoundError as e:
        emit_error(
            str(e),
            code="NOT_FOUND",
            error_type="not_found",
            remediation="Use --specs-dir option or set SPEC_ARCHIVER_SPECS_DIR",
        )

    try:
        completed = cli_ctx.create_detector().get_all_completed_specs(specs_dir)
    except ArchivalError as e:
        emit_archival_error(e)

    emit_success(
        {
            "specs_dir": str(specs_dir),
            "specs": [str(path) for path in completed],
            "count": len(completed),
        }
    )


@specs.command("scan")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default="json",
    show_default=True,
    help="Output format.",
)
@click.pass_context
@cli_command("specs-scan")
def scan_cmd(ctx: click.Context, output_format: str) -> None:
    """Validate every spec and summarise the collection."""
    cli_ctx = get_context(ctx)

    try:
        cli_ctx.require_specs_dir()
    except FileNotFoundError as e:
        emit_error(
            str(e),
            code="NOT_FOUND",
            error_type="not_found",
            remediation="Use --specs-dir option or set SPEC_ARCHIVER_SPECS_DIR",
        )

    scanner = cli_ctx.create_scanner()
    try:
        report = scanner.scan_and_validate_all_specs()
        stats = scanner.get_spec_stats()
        ready = scanner.get_specs_ready_for_archival()
    except ArchivalError as e:
        emit_archival_error(e)

    if output_format == "table":
        valid = set(report.valid_specs)
        rows = [
            {
                "spec": spec_path,
                "valid": spec_path in valid,
                "messages": len(report.issues.get(spec_path, [])),
            }
            for spec_path in report.valid_specs + report.invalid_specs
        ]
        emit_table(rows, ["spec", "valid", "messages"], title="Specs")
        return

    emit_success(
        {
            "total_specs": report.total_specs,
            "valid_specs": report.valid_specs,
            "invalid_specs": report.invalid_specs,
            "issues": report.issues,
            "ready_for_archival": [str(path) for path in ready],
            "stats": {
                "total": stats.total,
                "completed": stats.completed,
                "incomplete": stats.incomplete,
                "valid": stats.valid,
                "invalid": stats.invalid,
                "ready_for_archival": stats.ready_for_archival,
            },
        }
    )


@specs.command("validate")
@click.argument("spec")
@click.pass_context
@cli_command("specs-validate")
def validate_cmd(ctx: click.Context, spec: str) -> None:
    """Validate the structure of a single spec.

    SPEC is a spec directory path or a spec name under the specs directory.
    """
    cli_ctx = get_context(ctx)
    spec_path = cli_ctx.resolve_spec(spec)

    result = cli_ctx.create_scanner().validate_spec(spec_path)

    emit_success(
        {
            "spec_path": str(spec_path),
            "is_valid": result.is_valid,
            "issues": result.issues,
        },
        warnings=result.warnings or None,
    )
