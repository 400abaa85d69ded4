"""Custom exceptions for ipfsd-ctl.

This module contains all custom exceptions used throughout the package.
Every error is reported to the immediate caller of the failing operation;
nothing is retried automatically.

Lifecycle Errors:
    - UnsupportedBackend: Unknown backend type tag
    - InitError: Repository could not be initialized
    - SpawnError: Backend could not be started
    - ReadinessTimeout: Backend did not report readiness in time
    - StopError: Backend failed while shutting down
    - StopTimeout: Backend did not terminate, even after forced kill
    - CleanupError: Repository directory could not be removed
    - DaemonStateError: Operation not legal in the current lifecycle state

Configuration Errors:
    - ConfigPathNotFound: Dotted path does not resolve
    - ConfigWriteRejected: Backend validated and rejected a write

Transport Errors:
    - NodeApiError: HTTP RPC API round trip failed

Usage:
    from ipfsd_ctl.exceptions import SpawnError, ConfigWriteRejected
"""

from __future__ import annotations

__all__ = [
    "CleanupError",
    "ConfigPathNotFound",
    "ConfigWriteRejected",
    "DaemonStateError",
    "InitError",
    "IpfsdCtlError",
    "NodeApiError",
    "ReadinessTimeout",
    "SpawnError",
    "StopError",
    "StopTimeout",
    "UnsupportedBackend",
]

from ipfsd_ctl.constants import BACKEND_TYPES


class IpfsdCtlError(Exception):
    """Base exception for all ipfsd-ctl failures.

    Attributes:
        failure_type: Category string used in structured log events.
    """

    failure_type: str = "unknown"


# =============================================================================
# Lifecycle Errors
# =============================================================================


class UnsupportedBackend(IpfsdCtlError):
    """Backend type tag is not one of the recognized values.

    Attributes:
        backend_type: The rejected tag.
    """

    failure_type = "unsupported_backend"

    def __init__(self, backend_type: object) -> None:
        self.backend_type = backend_type
        valid = ", ".join(BACKEND_TYPES)
        super().__init__(f"Unsupported backend type: {backend_type!r}. Valid types: {valid}")


class InitError(IpfsdCtlError):
    """Repository initialization failed.

    Raised when:
    - The repository is already initialized and force was not given
    - The key size is invalid
    - The repository directory cannot be created or written
    - The backend's own init step fails
    """

    failure_type = "init_failure"


class SpawnError(IpfsdCtlError):
    """Backend could not be started.

    Raised when:
    - The node executable or node class cannot be found
    - The configured API port is already in use
    - The backend exits or raises during startup (e.g. rejected config)

    Attributes:
        output: Startup error text captured from the backend, verbatim.
    """

    failure_type = "spawn_failure"

    def __init__(self, message: str, *, output: str | None = None) -> None:
        self.output = output
        if output:
            message = f"{message}: {output.strip()}"
        super().__init__(message)


class ReadinessTimeout(IpfsdCtlError):
    """Backend did not report readiness within the configured bound.

    The backend is terminated before this is raised.

    Attributes:
        timeout_seconds: The bound that was exceeded.
    """

    failure_type = "readiness_timeout"

    def __init__(self, timeout_seconds: float, *, output: str | None = None) -> None:
        self.timeout_seconds = timeout_seconds
        self.output = output
        super().__init__(f"Daemon was not ready within {timeout_seconds:g}s")


class StopError(IpfsdCtlError):
    """Backend failed while shutting down.

    The instance stays running so stop() can be retried.
    """

    failure_type = "stop_failure"


class StopTimeout(StopError):
    """Backend did not terminate in time.

    The graceful-shutdown timeout is recovered locally by escalating to a
    forced kill; this is only raised when the forced kill also fails.
    """

    failure_type = "stop_timeout"


class CleanupError(IpfsdCtlError):
    """Repository directory could not be removed.

    In-memory state is left untouched so cleanup can be retried.
    """

    failure_type = "cleanup_failure"


class DaemonStateError(IpfsdCtlError):
    """Operation is not legal in the daemon's current lifecycle state.

    Examples: cleanup() while running, any operation after cleanup().
    """

    failure_type = "invalid_state"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigPathNotFound(IpfsdCtlError, KeyError):
    """Dotted config path does not resolve in the document.

    Attributes:
        path: The dotted path that failed to resolve.
    """

    failure_type = "config_path_not_found"

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Config path not found: {path!r}")

    def __str__(self) -> str:
        # KeyError would repr() the message
        return str(self.args[0])


class ConfigWriteRejected(IpfsdCtlError):
    """Backend validated a config write and rejected it.

    Attributes:
        path: The dotted path that was written.
        detail: Rejection detail as reported by the backend.
    """

    failure_type = "config_write_rejected"

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"failed to set config value {path!r}: {detail}")


# =============================================================================
# Transport Errors
# =============================================================================


class NodeApiError(IpfsdCtlError):
    """HTTP RPC API call to a running node failed.

    Attributes:
        status_code: HTTP status, None for transport-level failures.
        message: Error message reported by the node (or transport).
    """

    failure_type = "api_failure"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message)
