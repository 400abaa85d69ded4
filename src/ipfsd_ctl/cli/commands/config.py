"""Config command group for ipfsd-ctl CLI.

Reads and writes the config document of a stopped repository. Values are
shown in the backend's native shape (string-encoded for native).
"""

from __future__ import annotations

__all__ = ["config"]

from pathlib import Path

import click

from ipfsd_ctl.controller import Daemon
from ipfsd_ctl.exceptions import IpfsdCtlError

from ..helpers import backend_options, build_factory, exit_with_error, format_value
from ..styling import style_success

_repo_option = click.option(
    "--repo",
    "repo_path",
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Repository directory",
)


def _stopped_daemon(backend_type: str, exec_ref: str | None, repo_path: Path) -> Daemon:
    return build_factory(backend_type, exec_ref).create_daemon(
        disposable=False,
        repo_path=repo_path,
        init=False,
        start=False,
    )


@click.group()
def config() -> None:
    """Repository config commands (get, set)."""
    pass


@config.command("get")
@backend_options
@_repo_option
@click.argument("key", required=False)
def config_get(backend_type: str, exec_ref: str | None, repo_path: Path, key: str | None) -> None:
    """Print the whole document, or the value at a dotted KEY.

    Examples:
        ipfsd-ctl config get --repo ./node1 Addresses.Swarm
    """
    try:
        value = _stopped_daemon(backend_type, exec_ref, repo_path).get_config(key)
    except IpfsdCtlError as e:
        exit_with_error(e)
    click.echo(format_value(value))


@config.command("set")
@backend_options
@_repo_option
@click.argument("key")
@click.argument("value")
def config_set(backend_type: str, exec_ref: str | None, repo_path: Path, key: str, value: str) -> None:
    """Set the value at a dotted KEY.

    For the native backend VALUE is parsed as JSON when it is valid JSON,
    otherwise stored as a plain string. The library and handle backends
    store VALUE as given, always a string.

    Examples:
        ipfsd-ctl config set --repo ./node1 Bootstrap '[]'
        ipfsd-ctl config set --repo ./node1 Addresses.API /ip4/127.0.0.1/tcp/5011
    """
    try:
        _stopped_daemon(backend_type, exec_ref, repo_path).set_config(key, value)
    except IpfsdCtlError as e:
        exit_with_error(e)
    click.echo(style_success(f"Set {key}"))
