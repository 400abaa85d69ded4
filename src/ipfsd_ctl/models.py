"""Pydantic models for ipfsd-ctl.

This module contains three categories of models:

Input Models (FrozenModel-based):
- FrozenModel: Base class for immutable models
- InitOptions: Repository initialization parameters
- DaemonSpec: Everything needed to create one daemon instance

Lifecycle:
- BackendType: Backend type tag
- DaemonState: Controller state machine states

Logging Models:
- DaemonSystemEvent: System log entries for daemon lifecycle events
"""

from __future__ import annotations

__all__ = [
    # Input Models
    "ConfigDocument",
    "DaemonSpec",
    "FrozenModel",
    "InitOptions",
    # Lifecycle
    "BackendType",
    "DaemonState",
    # Logging Models
    "DaemonSystemEvent",
]

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ipfsd_ctl.constants import DEFAULT_KEY_BITS

# Type alias for a nested configuration document
ConfigDocument = dict[str, Any]


# =============================================================================
# Lifecycle
# =============================================================================


class BackendType(str, Enum):
    """Backend type tags recognized by the factory."""

    NATIVE = "native"
    LIBRARY = "library"
    HANDLE = "handle"


class DaemonState(str, Enum):
    """States of a daemon controller.

    stopped -> initializing -> starting -> running -> stopping -> stopped,
    plus the terminal cleaned state, reachable only from stopped.
    """

    STOPPED = "stopped"
    INITIALIZING = "initializing"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    CLEANED = "cleaned"


# =============================================================================
# Input Models
# =============================================================================


class FrozenModel(BaseModel):
    """Base class for immutable Pydantic models."""

    model_config = ConfigDict(frozen=True)


class InitOptions(FrozenModel):
    """Repository initialization parameters.

    Attributes:
        bits: RSA key size in bits for the node identity.
        default_addrs: Use the backend's default swarm addresses instead of
            ephemeral loopback ones.
        config: Config overlay; its keys win over backend defaults.
    """

    bits: int = Field(default=DEFAULT_KEY_BITS, gt=0)
    default_addrs: bool = False
    config: ConfigDocument = Field(default_factory=dict)


class DaemonSpec(FrozenModel):
    """Immutable description of one daemon instance.

    Attributes:
        type: Backend type tag.
        exec: Executable path (native), node class or "module:attr" string
            (library), or execution object (handle).
        repo_path: Explicit repository path, None to allocate one.
        disposable: Allocate a fresh temporary repository when repo_path is
            not given.
        init: Initialize the repository on spawn when it is absent.
        start: Start the backend on spawn.
        init_options: Key size, default-address toggle and config overlay.
        args: Startup flags passed to the backend, in order.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type: BackendType
    exec: Any = None
    repo_path: Path | None = None
    disposable: bool = True
    init: bool = True
    start: bool = True
    init_options: InitOptions = Field(default_factory=InitOptions)
    args: tuple[str, ...] = ()


# =============================================================================
# Logging Models
# =============================================================================


class DaemonSystemEvent(BaseModel):
    """One daemon system log entry.

    Used for INFO, WARNING, ERROR, and CRITICAL events related to daemon
    lifecycle operations (spawn, stop, cleanup, config writes).

    Note: 'time' is None when created, populated by ISO8601Formatter during logging.
    """

    # --- core ---
    time: Optional[str] = Field(
        None,
        description="ISO 8601 timestamp (UTC), added by formatter during serialization",
    )
    event: str = Field(
        description="Machine-friendly event name, e.g. 'daemon_started', 'repo_initialized'",
    )
    message: str = Field(description="Human-readable log message")

    # --- instance context ---
    backend: Optional[str] = Field(
        None,
        description="Backend type tag, e.g. 'native'",
    )
    repo_path: Optional[str] = Field(
        None,
        description="Repository directory of the instance",
    )
    state: Optional[str] = Field(
        None,
        description="Lifecycle state after the event, e.g. 'running'",
    )
    pid: Optional[int] = Field(
        None,
        description="OS process id (native backend only)",
    )
    api_addr: Optional[str] = Field(
        None,
        description="API multiaddr reported by the node",
    )
    config_path: Optional[str] = Field(
        None,
        description="Dotted config path for config events",
    )
    duration_ms: Optional[float] = Field(
        None,
        description="Operation duration in milliseconds",
    )

    # --- errors ---
    error_type: Optional[str] = Field(
        None,
        description="Exception class name, e.g. 'SpawnError'",
    )
    error_message: Optional[str] = Field(
        None,
        description="Exception message",
    )

    # --- additional structured details ---
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional structured data",
    )

    model_config = ConfigDict(extra="forbid")
