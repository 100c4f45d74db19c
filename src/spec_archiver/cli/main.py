"""spec-archiver CLI entry point.

JSON output by default, for scripts and editor hooks.
"""

import click

from spec_archiver.cli.config import create_context
from spec_archiver.cli.registry import register_all_commands
from spec_archiver.config import ArchiverConfig, set_config


@click.group()
@click.option(
    "--specs-dir",
    envvar="SPEC_ARCHIVER_SPECS_DIR",
    type=click.Path(exists=False),
    help="Override specs directory path",
)
@click.option(
    "--archive-dir",
    type=click.Path(exists=False),
    help="Override archive directory path",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=False),
    help="Path to a spec-archiver.toml config file",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Override log level",
)
@click.pass_context
def cli(
    ctx: click.Context,
    specs_dir: str | None,
    archive_dir: str | None,
    config_file: str | None,
    log_level: str | None,
) -> None:
    """spec-archiver - archive completed specs with rollback and an index.

    All commands output JSON envelopes unless stated otherwise.
    """
    config = ArchiverConfig.from_env(config_file)
    if log_level:
        config.log_level = log_level.upper()
    config.setup_logging()
    set_config(config)

    ctx.ensure_object(dict)
    ctx.obj["cli_context"] = create_context(
        specs_dir=specs_dir,
        archive_dir=archive_dir,
        config=config,
    )


# Register all command groups
register_all_commands(cli)


if __name__ == "__main__":
    cli()
