"""Shared helpers for CLI commands.

- Common --type / --exec options
- Settings loading and file logging setup
- Uniform error exit for controller errors
"""

from __future__ import annotations

__all__ = [
    "backend_options",
    "build_factory",
    "exit_with_error",
    "format_value",
]

import json
import sys
from typing import Any, Callable, NoReturn, TypeVar

import click

from ipfsd_ctl.backends.library import import_object
from ipfsd_ctl.config import load_ctl_settings
from ipfsd_ctl.constants import BACKEND_TYPES
from ipfsd_ctl.exceptions import IpfsdCtlError
from ipfsd_ctl.factory import Factory, create
from ipfsd_ctl.utils.logging.log_config import configure_file_logging

from .styling import style_error

F = TypeVar("F", bound=Callable[..., Any])


def backend_options(func: F) -> F:
    """Add --type and --exec to a command."""
    func = click.option(
        "--exec",
        "exec_ref",
        default=None,
        help="Executable path (native) or 'module:attr' (library, handle)",
    )(func)
    func = click.option(
        "--type",
        "-t",
        "backend_type",
        type=click.Choice(list(BACKEND_TYPES)),
        default="native",
        show_default=True,
        help="Backend type",
    )(func)
    return func


def build_factory(backend_type: str, exec_ref: str | None) -> Factory:
    """Create a factory using the user's settings file.

    For the handle backend, exec names the handle object to import.
    """
    settings = load_ctl_settings()
    log_path = settings.get_log_path()
    if log_path is not None:
        configure_file_logging(log_path, settings.log_level)

    resolved: Any = exec_ref
    if backend_type == "handle" and exec_ref is not None:
        resolved = import_object(exec_ref)
    return create(backend_type, resolved, settings=settings)


def exit_with_error(error: IpfsdCtlError) -> NoReturn:
    """Print a controller error and exit with status 1."""
    click.echo(style_error(f"Error: {error}"), err=True)
    sys.exit(1)


def format_value(value: Any) -> str:
    """Render a config value for terminal output."""
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2)
