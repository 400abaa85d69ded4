"""Daemon logging configuration.

Owns the controller logger configuration (handlers, formatters).
Other modules get their own logger reference via:
    _logger = logging.getLogger(f"{APP_NAME}.daemon")

Python loggers are singletons by name, so all modules share the same
logger instance. This module owns the configuration; others just call
log_event().

Logging strategy:
- Console (stderr): INFO and above, human-readable
- File (optional JSONL): level from settings, added via configure_file_logging()
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "configure_file_logging",
    "get_daemon_logger",
    "log_event",
    "reset_logging",
]

import logging
from pathlib import Path

from ipfsd_ctl.constants import APP_NAME
from ipfsd_ctl.models import DaemonSystemEvent
from ipfsd_ctl.utils.logging.iso_formatter import ISO8601Formatter

# Get module logger - initially with stderr only
# File handler added via configure_file_logging() once settings are known
_logger = logging.getLogger(f"{APP_NAME}.daemon")
_logger.setLevel(logging.DEBUG)
_logger.propagate = False

# Track the configured file handler so reconfiguration replaces it
_file_handler: logging.FileHandler | None = None


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages for cleaner stderr output.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        # Use getMessage() to substitute %s placeholders with args
        return f"{record.levelname}: {record.getMessage()}"


def _add_console_handler() -> None:
    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(logging.INFO)
    stderr_handler.setFormatter(ConsoleFormatter())
    _logger.addHandler(stderr_handler)


# Initialize with stderr-only until settings are loaded
if not _logger.handlers:
    _add_console_handler()


def get_daemon_logger() -> logging.Logger:
    """Get the shared daemon logger."""
    return _logger


def configure_file_logging(log_path: Path, level: str = "INFO") -> bool:
    """Add (or replace) the JSONL file handler.

    Args:
        log_path: Path of the JSONL log file; parent directories are created.
        level: "DEBUG" or "INFO" - minimum level written to the file.

    Returns:
        True if the file handler is active, False if it could not be opened
        (stderr logging keeps working).
    """
    global _file_handler

    if _file_handler is not None:
        _logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    except OSError as e:
        log_event(
            logging.WARNING,
            DaemonSystemEvent(
                event="file_logging_failed",
                message="Failed to configure file logging",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )
        return False

    file_handler.setLevel(logging.DEBUG if level == "DEBUG" else logging.INFO)
    file_handler.setFormatter(ISO8601Formatter())
    _logger.addHandler(file_handler)
    _file_handler = file_handler
    return True


def reset_logging() -> None:
    """Close all handlers and restore the stderr-only configuration."""
    global _file_handler

    for handler in list(_logger.handlers):
        handler.close()
        _logger.removeHandler(handler)
    _file_handler = None
    _add_console_handler()


def log_event(level: int, event: DaemonSystemEvent) -> None:
    """Log a DaemonSystemEvent at the specified level.

    Serializes the event to a dict (excluding None values) and logs it.
    The ISO8601Formatter adds the timestamp during serialization.

    Args:
        level: Logging level (e.g., logging.INFO, logging.WARNING).
        event: The event to log.
    """
    _logger.log(level, event.model_dump(exclude_none=True))
