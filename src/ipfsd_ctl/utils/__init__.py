"""Shared utilities for ipfsd-ctl.

- file_helpers: App directory, validated JSON loading, atomic writes, file locks
- net: Multiaddr parsing and port probing
- logging: Structured event logging
"""

__all__: list[str] = []
