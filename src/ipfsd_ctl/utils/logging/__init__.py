"""Logging utilities and helpers.

This package provides logging infrastructure for ipfsd-ctl:
- iso_formatter: ISO 8601 timestamp formatting for JSONL logs
- log_config: Shared daemon logger, handlers and log_event()

Import directly from submodules to avoid circular imports:
    from ipfsd_ctl.utils.logging.log_config import log_event
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
