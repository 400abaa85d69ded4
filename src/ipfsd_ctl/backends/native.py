"""Native process backend.

Drives an externally compiled node executable as a child process:

- version: `<exec> version`
- init:    `<exec> init --bits N` with IPFS_PATH=<repo>, after which the
           controller layers addresses and the overlay onto the generated
           config
- start:   `<exec> daemon <args>`; readiness is the "Daemon is ready" line
- stop:    SIGTERM, bounded wait, SIGKILL escalation
- config:  HTTP RPC API while running (string-encoded values); on-disk
           writes are validated against the known config sections

Executable resolution order: explicit exec, $IPFS_GO_EXEC, `ipfs` on PATH.
"""

from __future__ import annotations

__all__ = [
    "NativeConfigSchema",
    "NativeProcessBackend",
]

import json
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from ipfsd_ctl.accessor import ConfigAccessor, get_value
from ipfsd_ctl.backends.base import BackendAdapter
from ipfsd_ctl.backends.http_api import NodeApiClient
from ipfsd_ctl.backends.stream_watcher import StreamWatcher
from ipfsd_ctl.constants import (
    DEFAULT_SWARM_ADDRS,
    EPHEMERAL_ADDRESSES,
    NATIVE_EXEC_ENV,
    NATIVE_EXEC_NAME,
    REPO_PATH_ENV,
)
from ipfsd_ctl.exceptions import (
    ConfigPathNotFound,
    ConfigWriteRejected,
    InitError,
    NodeApiError,
    ReadinessTimeout,
    SpawnError,
    StopTimeout,
)
from ipfsd_ctl.models import BackendType, ConfigDocument, DaemonSystemEvent
from ipfsd_ctl.repository import RepoProfile, RepositoryManager
from ipfsd_ctl.utils.logging.log_config import log_event
from ipfsd_ctl.utils.net import is_port_in_use, parse_tcp_multiaddr

# =============================================================================
# Config validation schema
# =============================================================================

_AddrValue = Union[str, list[str], None]


class _Section(BaseModel):
    model_config = ConfigDict(extra="allow", strict=True)


class _IdentitySection(_Section):
    PeerID: Optional[str] = None
    PrivKey: Optional[str] = None


class _AddressesSection(_Section):
    Swarm: Optional[list[str]] = None
    API: _AddrValue = None
    Gateway: _AddrValue = None
    Announce: Optional[list[str]] = None
    NoAnnounce: Optional[list[str]] = None


class NativeConfigSchema(_Section):
    """Shape of the well-known sections of a native node's config.

    Unknown sections and keys are accepted; known ones must have the type the
    node itself would decode them into.
    """

    Identity: Optional[_IdentitySection] = None
    Addresses: Optional[_AddressesSection] = None
    Bootstrap: Optional[list[str]] = None
    Discovery: Optional[dict[str, Any]] = None
    Datastore: Optional[dict[str, Any]] = None
    API: Optional[dict[str, Any]] = None
    Gateway: Optional[dict[str, Any]] = None
    Swarm: Optional[dict[str, Any]] = None


def _validation_detail(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        parts.append(f"{loc}: {item['msg']}")
    return "; ".join(parts)


# =============================================================================
# Backend
# =============================================================================


class NativeProcessBackend(BackendAdapter):
    """Backend running the node executable as a child process."""

    backend_type: ClassVar[BackendType] = BackendType.NATIVE
    accessor: ClassVar[ConfigAccessor] = ConfigAccessor("string")

    def __init__(self, exec_ref: Any = None, **kwargs: Any) -> None:
        super().__init__(exec_ref, **kwargs)
        self._process: subprocess.Popen | None = None
        self._watcher: StreamWatcher | None = None
        self._api: NodeApiClient | None = None
        self._repo_path: Path | None = None

    # -------------------------------------------------------------------------
    # Executable
    # -------------------------------------------------------------------------

    def executable(self) -> str:
        """Resolve the node executable.

        Raises:
            SpawnError: If no executable can be found.
        """
        candidate = self.exec_ref or os.environ.get(NATIVE_EXEC_ENV) or NATIVE_EXEC_NAME
        resolved = shutil.which(str(candidate))
        if resolved is None:
            raise SpawnError(
                f"Node executable not found: {candidate!r}. "
                f"Pass exec or set {NATIVE_EXEC_ENV}"
            )
        return resolved

    def _env(self, repo_path: Path) -> dict[str, str]:
        env = os.environ.copy()
        env[REPO_PATH_ENV] = str(repo_path)
        return env

    def query_version(self) -> str:
        executable = self.executable()
        try:
            result = subprocess.run(
                [executable, "version"],
                capture_output=True,
                text=True,
                timeout=self.settings.version_timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise SpawnError(f"'{executable} version' timed out") from e
        except OSError as e:
            raise SpawnError(f"Failed to run '{executable} version': {e}") from e

        if result.returncode != 0:
            raise SpawnError(f"'{executable} version' failed", output=result.stderr)
        return result.stdout.strip()

    # -------------------------------------------------------------------------
    # Repository
    # -------------------------------------------------------------------------

    def profile(self) -> RepoProfile:
        return RepoProfile(
            backend=self.backend_type.value,
            default_swarm=DEFAULT_SWARM_ADDRS["native"],
            ephemeral_addresses=EPHEMERAL_ADDRESSES["native"],
            generate=self._run_init,
            owns_layout=False,
        )

    def _run_init(self, repo_path: Path, bits: int) -> ConfigDocument:
        try:
            executable = self.executable()
        except SpawnError as e:
            raise InitError(str(e)) from e

        try:
            result = subprocess.run(
                [executable, "init", "--bits", str(bits)],
                capture_output=True,
                text=True,
                env=self._env(repo_path),
                timeout=self.settings.version_timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise InitError(f"'{executable} init' timed out") from e

        if result.returncode != 0:
            raise InitError(f"'{executable} init' failed: {result.stderr.strip()}")
        return RepositoryManager().read_config(repo_path)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _check_api_port(self, repo_path: Path) -> None:
        try:
            document = RepositoryManager().read_config(repo_path)
            api_addr = get_value(document, "Addresses.API")
        except (ConfigPathNotFound, InitError):
            return
        if isinstance(api_addr, list):
            api_addr = api_addr[0] if api_addr else None
        if not isinstance(api_addr, str):
            return
        try:
            target = parse_tcp_multiaddr(api_addr)
        except ValueError:
            return
        if target.port and is_port_in_use(target.port, target.host):
            raise SpawnError(f"API address {api_addr} is already in use")

    def start(self, repo_path: Path, args: tuple[str, ...]) -> None:
        executable = self.executable()
        self._check_api_port(repo_path)

        try:
            process = subprocess.Popen(
                [executable, "daemon", *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=self._env(repo_path),
            )
        except OSError as e:
            raise SpawnError(f"Failed to launch '{executable} daemon': {e}") from e

        self._process = process
        self._repo_path = repo_path
        self._watcher = StreamWatcher(process, repo_path=str(repo_path))

    def await_ready(self, timeout: float) -> None:
        if self._process is None or self._watcher is None:
            raise SpawnError("Daemon process was not started")

        outcome = self._watcher.wait(timeout)
        if outcome == "ready":
            if self._watcher.api_addr is None:
                self._terminate()
                raise SpawnError("Daemon became ready without announcing its API address")
            self._api = NodeApiClient(
                self._watcher.api_addr,
                timeout=self.settings.api_timeout_seconds,
            )
            return

        if outcome == "exited":
            stderr = self._watcher.stderr_text
            self._terminate()
            raise SpawnError("Daemon exited before becoming ready", output=stderr)

        stderr = self._watcher.stderr_text
        self._terminate()
        raise ReadinessTimeout(timeout, output=stderr)

    def stop(self) -> None:
        # The API client stays usable if the process survives SIGKILL
        self._terminate()
        if self._api is not None:
            self._api.close()
            self._api = None

    def _terminate(self) -> None:
        """SIGTERM, wait, then SIGKILL; clears the process on success.

        Raises:
            StopTimeout: If the process survived SIGKILL.
        """
        process = self._process
        if process is None:
            return

        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=self.settings.stop_timeout_seconds)
            except subprocess.TimeoutExpired:
                log_event(
                    logging.WARNING,
                    DaemonSystemEvent(
                        event="stop_timeout",
                        message=(
                            f"Daemon did not exit within {self.settings.stop_timeout_seconds:g}s "
                            "of SIGTERM, killing"
                        ),
                        backend=self.backend_type.value,
                        repo_path=str(self._repo_path),
                        pid=process.pid,
                        error_type=StopTimeout.__name__,
                    ),
                )
                process.kill()
                try:
                    process.wait(timeout=self.settings.kill_timeout_seconds)
                except subprocess.TimeoutExpired as e:
                    raise StopTimeout(f"Daemon (pid {process.pid}) did not exit after SIGKILL") from e

        if self._watcher is not None:
            self._watcher.join(self.settings.kill_timeout_seconds)
        for stream in (process.stdout, process.stderr):
            if stream is not None:
                stream.close()
        self._process = None
        self._watcher = None

    # -------------------------------------------------------------------------
    # Config
    # -------------------------------------------------------------------------

    def _require_api(self) -> NodeApiClient:
        if self._api is None:
            raise SpawnError("Daemon API is not available: daemon is not running")
        return self._api

    def read_config(self, path: str | None = None) -> Any:
        api = self._require_api()
        if path is None:
            return self.accessor.encode(api.config_show())
        try:
            value = api.config_get(path)
        except NodeApiError as e:
            if e.status_code is None:
                raise
            raise ConfigPathNotFound(path) from e
        return self.accessor.encode(value)

    def write_config(self, path: str, value: Any) -> None:
        api = self._require_api()
        decoded = self.accessor.decode(value)
        try:
            if isinstance(decoded, str):
                api.config_set(path, decoded)
            else:
                api.config_set(path, json.dumps(decoded), as_json=True)
        except NodeApiError as e:
            if e.status_code is None:
                raise
            raise ConfigWriteRejected(path, e.message) from e

    def replace_config(self, document: ConfigDocument) -> None:
        self._require_api().config_replace(document)

    def validate_config(self, path: str, document: ConfigDocument) -> None:
        try:
            NativeConfigSchema.model_validate(document)
        except ValidationError as e:
            raise ConfigWriteRejected(path, _validation_detail(e)) from e

    # -------------------------------------------------------------------------
    # Runtime info
    # -------------------------------------------------------------------------

    @property
    def api(self) -> NodeApiClient | None:
        return self._api

    @property
    def api_addr(self) -> str | None:
        return self._watcher.api_addr if self._watcher else None

    @property
    def gateway_addr(self) -> str | None:
        return self._watcher.gateway_addr if self._watcher else None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None
