"""spec-archiver CLI module entry point.

Enables running the CLI via: python -m spec_archiver.cli
"""

from spec_archiver.cli.main import cli

if __name__ == "__main__":
    cli()
