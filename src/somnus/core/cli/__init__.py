"""Somnus CLI: run the engine over YAML/JSON documents and print JSON."""

import click

from somnus import __version__


@click.group()
@click.version_option(version=__version__, package_name="somnus")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), help="YAML/JSON config file.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.pass_context
def main(ctx: click.Context, config_file: str | None, log_level: str) -> None:
    """Somnus — sleep hypnogram and scoring engine."""
    from somnus.core.cli.common import load_settings
    from somnus.core.utils.logging import setup_logging

    setup_logging(level=log_level.upper())
    ctx.obj = load_settings(config_file)


# Register subcommands (lazy imports keep startup fast)
from .cycles_cmd import distribute
from .hypnogram_cmd import coalesce, geometry
from .score_cmd import score

main.add_command(coalesce)
main.add_command(geometry)
main.add_command(distribute)
main.add_command(score)
