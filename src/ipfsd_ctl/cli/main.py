"""Main CLI entry point for ipfsd-ctl.

Defines the CLI group and registers all subcommands.

Commands:
    config   - Read and write a stopped repository's config (get, set)
    init     - Initialize a repository
    run      - Spawn a daemon in the foreground until interrupted
    version  - Show the version of a backend

Subcommand help:
    ipfsd-ctl COMMAND -h       Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli"]

import sys

import click

from ipfsd_ctl import __version__

from .commands.config import config
from .commands.init import init
from .commands.run import run
from .commands.version import version


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", "show_version", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, show_version: bool) -> None:
    """ipfsd-ctl: spawn and control content-addressed network daemons."""
    if show_version:
        click.echo(f"ipfsd-ctl {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(config)
cli.add_command(init)
cli.add_command(run)
cli.add_command(version)


def main() -> None:
    """CLI entry point."""
    cli()
