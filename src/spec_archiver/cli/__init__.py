"""spec-archiver CLI - command-line interface for spec archival.

Commands emit JSON envelopes to stdout (errors to stderr) for reliable
parsing by scripts and editor hooks.
"""

from spec_archiver.cli.config import CLIContext, create_context
from spec_archiver.cli.logging import cli_command, get_cli_logger
from spec_archiver.cli.main import cli
from spec_archiver.cli.output import emit, emit_error, emit_success
from spec_archiver.cli.registry import get_context, set_context

__all__ = [
    # Entry point
    "cli",
    # Context
    "CLIContext",
    "create_context",
    "get_context",
    "set_context",
    # Output
    "emit",
    "emit_error",
    "emit_success",
    # Logging
    "cli_command",
    "get_cli_logger",
]
