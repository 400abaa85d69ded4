"""Daemon controller: one node instance's lifecycle, end to end.

State machine:

    stopped -> initializing -> stopped            init()
    stopped -> starting -> running                start()
    running -> stopping -> stopped                stop()
    stopped -> cleaned                            cleanup()

spawn() chains init() (when the repository is absent) and start().
Lifecycle operations on one instance are serialized by an instance lock,
so transitional states are never observed by another operation; a failed
transition returns the instance to stopped.

Config access follows the state: running instances go through the backend's
live surface, stopped ones read and rewrite the on-disk document.
"""

from __future__ import annotations

__all__ = [
    "Daemon",
]

import logging
import threading
import time
from pathlib import Path
from typing import Any

from ipfsd_ctl.backends.base import BackendAdapter
from ipfsd_ctl.config import CtlSettings
from ipfsd_ctl.exceptions import DaemonStateError, SpawnError
from ipfsd_ctl.models import ConfigDocument, DaemonSpec, DaemonState, DaemonSystemEvent
from ipfsd_ctl.repository import RepositoryManager
from ipfsd_ctl.utils.logging.log_config import log_event


class Daemon:
    """Controller for a single daemon instance.

    Bound to one repository path and one backend adapter for its whole life.
    Usually obtained from Factory.spawn().

    Args:
        spec: Immutable description of the instance.
        adapter: Backend adapter owned by this instance.
        settings: Controller settings (readiness timeout).
        repository: Repository manager; defaults to one using settings.tmp_root.

    Example:
        with factory.spawn() as node:
            node.set_config("Bootstrap", "[]")
            peer_id = node.get_config("Identity.PeerID")
    """

    def __init__(
        self,
        spec: DaemonSpec,
        adapter: BackendAdapter,
        *,
        settings: CtlSettings | None = None,
        repository: RepositoryManager | None = None,
    ) -> None:
        self.spec = spec
        self._adapter = adapter
        self._settings = settings or CtlSettings()
        self._repository = repository or RepositoryManager(self._settings.tmp_root)
        self._lock = threading.Lock()
        self._state = DaemonState.STOPPED
        self._repo_path: Path | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def spawn(self) -> "Daemon":
        """Initialize (when needed) and start, as spec.init and spec.start direct.

        Returns:
            self, running unless spec.start is False.

        Raises:
            InitError: Repository allocation or initialization failed.
            SpawnError: The backend could not start, or the repository is
                uninitialized while init is disabled.
            ReadinessTimeout: The backend did not become ready in time.
            DaemonStateError: The instance is not stopped.
        """
        with self._lock:
            self._require_state(DaemonState.STOPPED, "spawn")
            path = self._ensure_repo_path()
            if not self._repository.is_initialized(path):
                if not self.spec.init:
                    raise SpawnError(f"Repository {path} is not initialized and init is disabled")
                self._do_init(force=False)
            if self.spec.start:
                self._do_start()
        return self

    def init(self, force: bool = False) -> ConfigDocument:
        """Initialize the repository.

        Args:
            force: Reinitialize an already initialized repository.

        Returns:
            The initial config document.

        Raises:
            InitError: Already initialized (without force) or init failed.
            DaemonStateError: The instance is not stopped.
        """
        with self._lock:
            self._require_state(DaemonState.STOPPED, "init")
            self._ensure_repo_path()
            return self._do_init(force=force)

    def start(self) -> "Daemon":
        """Start the backend on the initialized repository.

        Raises:
            SpawnError: Not initialized, or the backend could not start.
            ReadinessTimeout: The backend did not become ready in time.
            DaemonStateError: The instance is not stopped.
        """
        with self._lock:
            self._require_state(DaemonState.STOPPED, "start")
            path = self._ensure_repo_path()
            if not self._repository.is_initialized(path):
                raise SpawnError(f"Repository {path} is not initialized")
            self._do_start()
        return self

    def stop(self) -> None:
        """Stop the backend. No-op when already stopped.

        Raises:
            StopError: The backend failed to shut down (StopTimeout when
                the process survived a forced kill); the instance stays
                running.
            DaemonStateError: The instance was cleaned up.
        """
        with self._lock:
            self._require_not_cleaned("stop")
            if self._state == DaemonState.STOPPED:
                return

            self._state = DaemonState.STOPPING
            pid = self._adapter.pid
            start = time.perf_counter()
            try:
                self._adapter.stop()
            except Exception as e:
                self._state = DaemonState.RUNNING
                self._log_failure("daemon_stop_failed", "Daemon could not be stopped", e)
                raise
            self._state = DaemonState.STOPPED
            self._log(
                logging.INFO,
                "daemon_stopped",
                f"Stopped {self.spec.type.value} daemon",
                pid=pid,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )

    def cleanup(self) -> None:
        """Remove the repository directory and retire the instance.

        Raises:
            DaemonStateError: The instance is not stopped.
            CleanupError: The directory could not be removed; the instance
                stays stopped and cleanup may be retried.
        """
        with self._lock:
            self._require_state(DaemonState.STOPPED, "cleanup")
            if self._repo_path is not None:
                self._repository.remove(self._repo_path)
            self._state = DaemonState.CLEANED
            self._log(logging.INFO, "daemon_cleaned", f"Cleaned up {self.spec.type.value} daemon")

    # =========================================================================
    # Config
    # =========================================================================

    def get_config(self, path: str | None = None) -> Any:
        """Read the whole config document or the value at a dotted path.

        Values are in the backend's native shape: strings for the native
        backend, structured values otherwise.

        Raises:
            ConfigPathNotFound: The path does not resolve.
            DaemonStateError: Stopped with an uninitialized repository, or
                cleaned up.
        """
        with self._lock:
            self._require_not_cleaned("get_config")
            if self._state == DaemonState.RUNNING:
                return self._adapter.read_config(path)
            document = self._repository.read_config(self._ensure_repo_path())
            return self._adapter.accessor.get(document, path)

    def set_config(self, path: str, value: Any) -> None:
        """Write a value at a dotted path.

        Running: through the live API, subject to the backend's validation.
        Stopped: validated by the adapter, then written to disk.

        Raises:
            ConfigWriteRejected: The backend rejected the value.
            DaemonStateError: Stopped with an uninitialized repository, or
                cleaned up.
        """
        with self._lock:
            self._require_not_cleaned("set_config")
            try:
                if self._state == DaemonState.RUNNING:
                    self._adapter.write_config(path, value)
                else:
                    repo_path = self._ensure_repo_path()
                    document = self._repository.read_config(repo_path)
                    updated = self._adapter.accessor.set(document, path, value)
                    self._adapter.validate_config(path, updated)
                    self._repository.write_config(repo_path, updated)
            except Exception as e:
                self._log_failure("config_set_failed", f"Failed to set config {path}", e, config_path=path)
                raise
            self._log(logging.INFO, "config_set", f"Set config {path}", config_path=path)

    def replace_config(self, document: ConfigDocument) -> None:
        """Replace the whole config document (live when running).

        Raises:
            ConfigWriteRejected: The document is invalid for the backend.
        """
        with self._lock:
            self._require_not_cleaned("replace_config")
            if self._state == DaemonState.RUNNING:
                self._adapter.replace_config(document)
            else:
                repo_path = self._ensure_repo_path()
                if not self._repository.is_initialized(repo_path):
                    raise DaemonStateError(f"Repository is not initialized: {repo_path}")
                self._adapter.validate_config("config", document)
                self._repository.write_config(repo_path, document)
            self._log(logging.INFO, "config_replaced", "Replaced config document")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> DaemonState:
        return self._state

    @property
    def repo_path(self) -> Path | None:
        """Repository directory, None until first allocated."""
        return self._repo_path

    @property
    def tmp_dir(self) -> Path | None:
        """Alias of repo_path."""
        return self._repo_path

    @property
    def disposable(self) -> bool:
        return self.spec.disposable

    @property
    def initialized(self) -> bool:
        return self._repo_path is not None and self._repository.is_initialized(self._repo_path)

    @property
    def started(self) -> bool:
        return self._state == DaemonState.RUNNING

    @property
    def api(self) -> Any:
        """Live API surface (NodeApiClient for native, the node object
        otherwise), None unless running."""
        return self._adapter.api if self.started else None

    @property
    def api_addr(self) -> str | None:
        return self._adapter.api_addr if self.started else None

    @property
    def gateway_addr(self) -> str | None:
        return self._adapter.gateway_addr if self.started else None

    @property
    def pid(self) -> int | None:
        """OS process id (native backend only)."""
        return self._adapter.pid if self.started else None

    # =========================================================================
    # Context manager
    # =========================================================================

    def __enter__(self) -> "Daemon":
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._state == DaemonState.CLEANED:
            return
        self.stop()
        if self.disposable:
            self.cleanup()

    def __repr__(self) -> str:
        return f"Daemon(type={self.spec.type.value!r}, state={self._state.value!r}, repo_path={self._repo_path!s})"

    # =========================================================================
    # Internals (caller holds the lock)
    # =========================================================================

    def _ensure_repo_path(self) -> Path:
        if self._repo_path is None:
            explicit = self.spec.repo_path
            if explicit is None and not self.spec.disposable:
                explicit = self._repository.default_repo_path(self.spec.type.value)
            self._repo_path = self._repository.allocate(explicit)
        return self._repo_path

    def _do_init(self, force: bool) -> ConfigDocument:
        self._state = DaemonState.INITIALIZING
        try:
            return self._adapter.init_repo(
                self._repository,
                self._ensure_repo_path(),
                self.spec.init_options,
                force=force,
            )
        except Exception as e:
            self._log_failure("repo_init_failed", "Repository initialization failed", e)
            raise
        finally:
            self._state = DaemonState.STOPPED

    def _do_start(self) -> None:
        self._state = DaemonState.STARTING
        start = time.perf_counter()
        try:
            self._adapter.start(self._ensure_repo_path(), self.spec.args)
            self._adapter.await_ready(self._settings.readiness_timeout_seconds)
        except Exception as e:
            self._state = DaemonState.STOPPED
            self._log_failure("daemon_start_failed", "Daemon failed to start", e)
            raise

        self._state = DaemonState.RUNNING
        self._log(
            logging.INFO,
            "daemon_started",
            f"Started {self.spec.type.value} daemon",
            pid=self._adapter.pid,
            api_addr=self._adapter.api_addr,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )

    def _require_not_cleaned(self, operation: str) -> None:
        if self._state == DaemonState.CLEANED:
            raise DaemonStateError(f"Cannot {operation}: daemon has been cleaned up")

    def _require_state(self, expected: DaemonState, operation: str) -> None:
        self._require_not_cleaned(operation)
        if self._state != expected:
            raise DaemonStateError(
                f"Cannot {operation}: daemon is {self._state.value}, expected {expected.value}"
            )

    def _log(self, level: int, event: str, message: str, **fields: Any) -> None:
        log_event(
            level,
            DaemonSystemEvent(
                event=event,
                message=message,
                backend=self.spec.type.value,
                repo_path=str(self._repo_path) if self._repo_path else None,
                state=self._state.value,
                **fields,
            ),
        )

    def _log_failure(self, event: str, message: str, error: Exception, **fields: Any) -> None:
        self._log(
            logging.ERROR,
            event,
            f"{message}: {error}",
            error_type=type(error).__name__,
            error_message=str(error),
            **fields,
        )
