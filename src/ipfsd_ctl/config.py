"""Controller settings for ipfsd-ctl.

Defines the settings model for timeouts, logging and repository allocation.
Settings are stored at the OS-appropriate location (via click.get_app_dir)
and are optional: every field has a default.

Example usage:
    # Load from the default location (defaults if the file is missing)
    settings = load_ctl_settings()

    # Load from an explicit file
    settings = CtlSettings.load_from_file(path)

    # Save configuration
    settings.save_to_file(path)
"""

from __future__ import annotations

__all__ = [
    "CtlSettings",
    "get_settings_path",
    "load_ctl_settings",
]

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from ipfsd_ctl.constants import (
    DEFAULT_API_TIMEOUT_SECONDS,
    DEFAULT_KILL_TIMEOUT_SECONDS,
    DEFAULT_READINESS_TIMEOUT_SECONDS,
    DEFAULT_STOP_TIMEOUT_SECONDS,
    DEFAULT_VERSION_TIMEOUT_SECONDS,
    MAX_READINESS_TIMEOUT_SECONDS,
    MIN_READINESS_TIMEOUT_SECONDS,
)
from ipfsd_ctl.models import DaemonSystemEvent
from ipfsd_ctl.utils.file_helpers import (
    get_app_dir,
    load_validated_json,
    write_json_atomic,
)
from ipfsd_ctl.utils.logging.log_config import log_event

# Settings file name inside the app directory
SETTINGS_FILENAME = "settings.json"


class CtlSettings(BaseModel):
    """Controller settings.

    Attributes:
        readiness_timeout_seconds: Bound on spawn() waiting for readiness.
        stop_timeout_seconds: Grace period after SIGTERM before SIGKILL.
        kill_timeout_seconds: Bound on waiting for exit after SIGKILL.
        version_timeout_seconds: Bound on `<exec> version` / `<exec> init`.
        api_timeout_seconds: Bound on one HTTP RPC API round trip.
        log_level: File log level ("DEBUG" includes node output lines).
        log_dir: Directory for the JSONL system log. None disables file logging.
        tmp_root: Parent directory for disposable repositories. None uses the
            system temp directory.
    """

    readiness_timeout_seconds: float = Field(
        default=DEFAULT_READINESS_TIMEOUT_SECONDS,
        ge=MIN_READINESS_TIMEOUT_SECONDS,
        le=MAX_READINESS_TIMEOUT_SECONDS,
        description="Seconds spawn() waits for the backend to report readiness",
    )
    stop_timeout_seconds: float = Field(
        default=DEFAULT_STOP_TIMEOUT_SECONDS,
        gt=0,
        le=300,
        description="Seconds between graceful termination and forced kill",
    )
    kill_timeout_seconds: float = Field(
        default=DEFAULT_KILL_TIMEOUT_SECONDS,
        gt=0,
        le=60,
        description="Seconds to wait for exit after forced kill",
    )
    version_timeout_seconds: float = Field(
        default=DEFAULT_VERSION_TIMEOUT_SECONDS,
        gt=0,
        le=600,
        description="Seconds allowed for one-shot executable commands",
    )
    api_timeout_seconds: float = Field(
        default=DEFAULT_API_TIMEOUT_SECONDS,
        gt=0,
        le=300,
        description="Seconds allowed for one HTTP RPC API round trip",
    )
    log_level: Literal["DEBUG", "INFO"] = Field(
        default="INFO",
        description="Minimum level written to the JSONL log file",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for system.jsonl; None disables file logging",
    )
    tmp_root: str | None = Field(
        default=None,
        description="Parent directory for disposable repositories",
    )

    model_config = {"extra": "ignore"}  # Ignore unknown fields for forward compat

    @classmethod
    def load_from_file(cls, path: Path) -> "CtlSettings":
        """Load and validate settings from a JSON file.

        Args:
            path: Settings file path.

        Returns:
            Validated settings.

        Raises:
            ValueError: If the file cannot be read or fails validation.
        """
        return load_validated_json(path, cls, file_type="settings")

    def save_to_file(self, path: Path) -> None:
        """Write settings as JSON, creating parent directories.

        Args:
            path: Destination path.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        write_json_atomic(path, self.model_dump())

    def get_log_path(self) -> Path | None:
        """Get the JSONL system log path, or None when file logging is off."""
        if self.log_dir is None:
            return None
        return Path(self.log_dir).expanduser() / "system.jsonl"


def get_settings_path() -> Path:
    """Get the full path to the settings file.

    Returns:
        Path to settings.json in the app directory.
    """
    return get_app_dir() / SETTINGS_FILENAME


def load_ctl_settings(path: Path | None = None) -> CtlSettings:
    """Load settings from file.

    If the file doesn't exist, returns default settings.
    Invalid content returns defaults with a warning.

    Args:
        path: Settings file; defaults to get_settings_path().

    Returns:
        CtlSettings: Loaded or default settings.
    """
    settings_path = path or get_settings_path()

    if not settings_path.exists():
        return CtlSettings()

    try:
        return CtlSettings.load_from_file(settings_path)
    except ValueError as e:
        log_event(
            logging.WARNING,
            DaemonSystemEvent(
                event="settings_invalid",
                message=f"Invalid settings file, using defaults: {e}",
                error_type=type(e).__name__,
                error_message=str(e),
                details={"settings_path": str(settings_path)},
            ),
        )
        return CtlSettings()
