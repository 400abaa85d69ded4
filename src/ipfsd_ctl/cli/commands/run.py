"""Run command for ipfsd-ctl CLI.

Spawns a daemon and keeps it running in the foreground until interrupted
(Ctrl+C or SIGTERM), then stops it and removes disposable repositories.
"""

from __future__ import annotations

__all__ = ["run"]

import signal
import threading
from pathlib import Path

import click

from ipfsd_ctl.constants import DEFAULT_KEY_BITS
from ipfsd_ctl.exceptions import IpfsdCtlError

from ..helpers import backend_options, build_factory, exit_with_error
from ..styling import style_dim, style_label, style_success


@click.command()
@backend_options
@click.option(
    "--repo",
    "repo_path",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Persistent repository directory (default: fresh temporary one)",
)
@click.option("--bits", type=int, default=DEFAULT_KEY_BITS, show_default=True, help="RSA key size")
@click.option("--default-addrs", is_flag=True, help="Use the backend's default swarm addresses")
@click.option("--arg", "args", multiple=True, help="Startup flag for the daemon (repeatable)")
def run(
    backend_type: str,
    exec_ref: str | None,
    repo_path: Path | None,
    bits: int,
    default_addrs: bool,
    args: tuple[str, ...],
) -> None:
    """Spawn a daemon in the foreground until interrupted.

    Without --repo the repository is temporary and removed on exit.

    Examples:
        ipfsd-ctl run --bits 1024
        ipfsd-ctl run --repo ./node1 --arg --enable-pubsub-experiment
    """
    disposable = repo_path is None
    try:
        node = build_factory(backend_type, exec_ref).spawn(
            disposable=disposable,
            repo_path=repo_path,
            args=args,
            init_options={"bits": bits, "default_addrs": default_addrs},
        )
    except IpfsdCtlError as e:
        exit_with_error(e)

    click.echo(style_success(f"{backend_type} daemon running"))
    click.echo(f"  {style_label('Repository')} {node.repo_path}")
    if node.api_addr:
        click.echo(f"  {style_label('API')} {node.api_addr}")
    if node.gateway_addr:
        click.echo(f"  {style_label('Gateway')} {node.gateway_addr}")
    if node.pid:
        click.echo(f"  {style_label('PID')} {node.pid}")
    click.echo(style_dim("Press Ctrl+C to stop."))

    stop_requested = threading.Event()
    previous = signal.signal(signal.SIGTERM, lambda signum, frame: stop_requested.set())
    try:
        stop_requested.wait()
    except KeyboardInterrupt:
        pass
    finally:
        signal.signal(signal.SIGTERM, previous)
        try:
            node.stop()
            if disposable:
                node.cleanup()
        except IpfsdCtlError as e:
            exit_with_error(e)
    click.echo(style_success("Daemon stopped"))
