"""Command-line interface for ipfsd-ctl.

Provides commands for querying backend versions, initializing and
configuring repositories, and running a daemon in the foreground.
"""

from .main import cli, main

__all__ = ["cli", "main"]
