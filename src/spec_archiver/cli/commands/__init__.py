"""CLI command groups.

The CLI is organized into two groups: `specs` for active specs and
`archive` for archival and the archive index.
"""

from spec_archiver.cli.commands.archive import archive
from spec_archiver.cli.commands.specs import specs

__all__ = [
    "archive",
    "specs",
]
