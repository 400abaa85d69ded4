"""Version command for ipfsd-ctl CLI."""

from __future__ import annotations

__all__ = ["version"]

import click

from ipfsd_ctl.exceptions import IpfsdCtlError

from ..helpers import backend_options, build_factory, exit_with_error


@click.command()
@backend_options
def version(backend_type: str, exec_ref: str | None) -> None:
    """Show the version of a backend without spawning it.

    Examples:
        ipfsd-ctl version --type native --exec /usr/local/bin/ipfs
        ipfsd-ctl version --type library --exec mynode:Node
    """
    try:
        click.echo(build_factory(backend_type, exec_ref).version())
    except IpfsdCtlError as e:
        exit_with_error(e)
