"""Archive commands for the spec-archiver CLI.

Provides commands for archiving specs and querying or repairing the archive.
"""

import click

from spec_archiver.cli.logging import cli_command, get_cli_logger
from spec_archiver.cli.output import (
    OUTPUT_FORMATS,
    emit_archival_error,
    emit_error,
    emit_kind_error,
    emit_success,
    emit_table,
)
from spec_archiver.cli.registry import get_context
from spec_archiver.core.archive_index import format_timestamp
from spec_archiver.core.batch import archive_completed_specs
from spec_archiver.core.errors import ArchivalError

logger = get_cli_logger()

_ENTRY_COLUMNS = ["specName", "archivalDate", "totalTasks", "archivePath"]


@click.group("archive")
def archive() -> None:
    """Archival and archive index commands."""
    pass


@archive.command("spec")
@click.argument("spec")
@click.pass_context
@cli_command("archive-spec")
def archive_spec_cmd(ctx: click.Context, spec: str) -> None:
    """Archive a single spec.

    SPEC is a spec directory path or a spec name under the specs directory.
    Completion is not checked; use `archive batch` to archive only
    completed specs.
    """
    cli_ctx = get_context(ctx)
    spec_path = cli_ctx.resolve_spec(spec)
    engine = cli_ctx.create_engine()

    result = engine.archive_spec(spec_path)

    if not result.success:
        logger.warning("Archival failed", spec=str(spec_path), state=result.state.value)
        emit_kind_error(
            result.error or "Archival failed",
            result.error_kind,
            details={
                "spec_path": result.original_path,
                "archive_path": result.archive_path,
                "state": result.state.value,
                "issues": result.issues,
            },
        )

    emit_success(result.to_dict())


@archive.command("batch")
@click.option("--dry-run", is_flag=True, help="Report what would be archived without moving anything.")
@click.pass_context
@cli_command("archive-batch")
def archive_batch_cmd(ctx: click.Context, dry_run: bool) -> None:
    """Archive every completed spec that is safe to move."""
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
        report = archive_completed_specs(
            specs_dir,
            cli_ctx.create_engine(),
            cli_ctx.settings,
            dry_run=dry_run,
        )
    except ArchivalError as e:
        emit_archival_error(e)

    warnings = [
        f"{entry.spec_path}: {entry.reason}"
        for entry in report.entries
        if entry.outcome.value in ("error", "partial")
    ]
    if not report.enabled:
        warnings.append("Automatic archival is disabled in configuration")

    emit_success(report.to_dict(), warnings=warnings or None)


@archive.command("list")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default="json",
    show_default=True,
    help="Output format.",
)
@click.pass_context
@cli_command("archive-list")
def archive_list_cmd(ctx: click.Context, output_format: str) -> None:
    """List archived specs, most recent first."""
    engine = get_context(ctx).create_engine()

    try:
        entries = [entry.to_dict() for entry in engine.get_archived_specs()]
    except ArchivalError as e:
        emit_archival_error(e)

    if output_format == "table":
        emit_table(entries, _ENTRY_COLUMNS, title="Archived specs")
        return

    emit_success({"archives": entries, "count": len(entries)})


@archive.command("search")
@click.argument("term")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default="json",
    show_default=True,
    help="Output format.",
)
@click.pass_context
@cli_command("archive-search")
def archive_search_cmd(ctx: click.Context, term: str, output_format: str) -> None:
    """Search archived specs by name (case-insensitive substring).

    TERM is the text to look for in spec names.
    """
    engine = get_context(ctx).create_engine()

    try:
        entries = [entry.to_dict() for entry in engine.search_archived_specs(term)]
    except ArchivalError as e:
        emit_archival_error(e)

    if output_format == "table":
        emit_table(entries, _ENTRY_COLUMNS, title=f"Archived specs matching '{term}'")
        return

    emit_success({"term": term, "archives": entries, "count": len(entries)})


@archive.command("stats")
@click.pass_context
@cli_command("archive-stats")
def archive_stats_cmd(ctx: click.Context) -> None:
    """Show archive statistics."""
    engine = get_context(ctx).create_engine()

    try:
        stats = engine.get_archive_stats()
    except ArchivalError as e:
        emit_archival_error(e)

    emit_success(stats.to_dict())


@archive.command("repair")
@click.pass_context
@cli_command("archive-repair")
def archive_repair_cmd(ctx: click.Context) -> None:
    """Reconcile the archive index with archive directories on disk."""
    engine = get_context(ctx).create_engine()
    report = engine.validate_and_repair_archive_index()

    emit_success(report.to_dict(), warnings=report.issues or None)


@archive.command("remove")
@click.argument("archive_path", type=click.Path(exists=False))
@click.pass_context
@cli_command("archive-remove")
def archive_remove_cmd(ctx: click.Context, archive_path: str) -> None:
    """Delete an archived spec and its index entry.

    ARCHIVE_PATH is the archive directory to delete.
    """
    engine = get_context(ctx).create_engine()

    try:
        engine.remove_archived_spec(archive_path)
    except ArchivalError as e:
        emit_archival_error(e)

    emit_success(
        {
            "archive_path": archive_path,
            "removed": True,
            "timestamp": format_timestamp(engine.clock()),
        }
    )
