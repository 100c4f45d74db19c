"""Command registry for the spec-archiver CLI.

Centralized registration of all command groups.
"""

from typing import Optional

import click

from spec_archiver.cli.config import CLIContext
from spec_archiver.cli.logging import cli_command

# Module-level storage for CLI context (for testing)
_cli_context: Optional[CLIContext] = None


def set_context(ctx: CLIContext) -> None:
    """Set the CLI context at module level.

    Primarily used for testing when not using Click's context.
    """
    global _cli_context
    _cli_context = ctx


def get_context(ctx: Optional[click.Context] = None) -> CLIContext:
    """Get CLI context from Click context or module-level storage.

    Args:
        ctx: Optional Click context with cli_context stored in obj.
             If None, returns module-level context.

    Raises:
        RuntimeError: If no context is available.
    """
    if ctx is not None:
        return ctx.obj["cli_context"]

    if _cli_context is not None:
        return _cli_context

    raise RuntimeError("No CLI context available. Call set_context() first.")


def register_all_commands(cli: click.Group) -> None:
    """Register all command groups with the CLI.

    Args:
        cli: The main Click group to register commands with.
    """
    from spec_archiver.cli.commands import archive, specs

    cli.add_command(specs)
    cli.add_command(archive)

    @cli.command("version")
    @click.pass_context
    @cli_command("version")
    def version(ctx: click.Context) -> None:
        """Show CLI version information."""
        from spec_archiver import __version__
        from spec_archiver.cli.output import emit_success

        cli_ctx = get_context(ctx)
        emit_success(
            {
                "version": __version__,
                "name": "spec-archiver",
                "specs_dir": str(cli_ctx.specs_dir),
                "archive_dir": str(cli_ctx.archive_root),
            }
        )
