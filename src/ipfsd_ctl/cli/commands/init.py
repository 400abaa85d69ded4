"""Init command for ipfsd-ctl CLI.

Initializes a persistent repository without starting a daemon.
"""

from __future__ import annotations

__all__ = ["init"]

from pathlib import Path

import click

from ipfsd_ctl.constants import DEFAULT_KEY_BITS
from ipfsd_ctl.exceptions import IpfsdCtlError
from ipfsd_ctl.utils.file_helpers import read_json_document

from ..helpers import backend_options, build_factory, exit_with_error
from ..styling import style_label, style_success


@click.command()
@backend_options
@click.option(
    "--repo",
    "repo_path",
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Repository directory (created if missing)",
)
@click.option("--bits", type=int, default=DEFAULT_KEY_BITS, show_default=True, help="RSA key size")
@click.option("--default-addrs", is_flag=True, help="Use the backend's default swarm addresses")
@click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON config overlay merged over the defaults",
)
@click.option("--force", is_flag=True, help="Reinitialize an existing repository")
def init(
    backend_type: str,
    exec_ref: str | None,
    repo_path: Path,
    bits: int,
    default_addrs: bool,
    config_file: Path | None,
    force: bool,
) -> None:
    """Initialize a repository.

    Examples:
        ipfsd-ctl init --type library --exec mynode:Node --repo ./node1
        ipfsd-ctl init --repo ./node2 --bits 1024 --config-file overlay.json
    """
    overlay = {}
    if config_file is not None:
        try:
            overlay = read_json_document(config_file)
        except (OSError, ValueError) as e:
            raise click.BadParameter(str(e), param_hint="--config-file") from e

    try:
        daemon = build_factory(backend_type, exec_ref).create_daemon(
            disposable=False,
            repo_path=repo_path,
            init_options={"bits": bits, "default_addrs": default_addrs, "config": overlay},
        )
        document = daemon.init(force=force)
    except IpfsdCtlError as e:
        exit_with_error(e)

    click.echo(style_success(f"Initialized {backend_type} repository at {daemon.repo_path}"))
    peer_id = document.get("Identity", {}).get("PeerID")
    if peer_id:
        click.echo(f"  {style_label('PeerID')} {peer_id}")
