"""Common backend adapter interface.

Each backend variant implements the same capability set so the controller
never branches on the backend type:

- profile / init_repo: backend defaults for repository initialization
- start / await_ready: launch the node and block until it is usable
- stop: terminate the node
- query_version: version string, without a repository or instance
- read_config / write_config / replace_config: live config access
- validate_config: check a stopped-state write before it reaches disk

Values crossing read_config/write_config are in the backend's native shape
(see ConfigAccessor).
"""

from __future__ import annotations

__all__ = [
    "BackendAdapter",
    "InProcessBackend",
    "call_with_timeout",
]

import concurrent.futures
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, ClassVar, TypeVar

from ipfsd_ctl.accessor import ConfigAccessor
from ipfsd_ctl.config import CtlSettings
from ipfsd_ctl.exceptions import (
    ConfigWriteRejected,
    ReadinessTimeout,
    SpawnError,
    StopError,
)
from ipfsd_ctl.models import BackendType, ConfigDocument, InitOptions
from ipfsd_ctl.repository import RepoProfile, RepositoryManager

R = TypeVar("R")


class BackendAdapter(ABC):
    """Base class for the three backend variants.

    One adapter instance drives exactly one daemon instance.

    Args:
        exec_ref: Backend-specific reference (executable path, node class,
            or execution object).
        settings: Controller settings (timeouts).
        version: Pre-resolved version string, if the caller has one.
    """

    backend_type: ClassVar[BackendType]
    accessor: ClassVar[ConfigAccessor]

    def __init__(
        self,
        exec_ref: Any = None,
        *,
        settings: CtlSettings | None = None,
        version: str | None = None,
    ) -> None:
        self.exec_ref = exec_ref
        self.settings = settings or CtlSettings()
        self.version_override = version

    # -------------------------------------------------------------------------
    # Repository
    # -------------------------------------------------------------------------

    @abstractmethod
    def profile(self) -> RepoProfile:
        """Backend defaults used when initializing a repository."""

    def init_repo(
        self,
        manager: RepositoryManager,
        repo_path: Path,
        options: InitOptions,
        *,
        force: bool = False,
    ) -> ConfigDocument:
        """Initialize repo_path with this backend's defaults."""
        return manager.init(
            repo_path,
            options.bits,
            options.config,
            options.default_addrs,
            self.profile(),
            force=force,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @abstractmethod
    def start(self, repo_path: Path, args: tuple[str, ...]) -> None:
        """Launch the node on an initialized repository.

        Raises:
            SpawnError: If the node cannot be launched.
        """

    @abstractmethod
    def await_ready(self, timeout: float) -> None:
        """Block until the launched node is usable.

        Raises:
            SpawnError: If the node failed during startup.
            ReadinessTimeout: If timeout elapsed; the node is stopped first.
        """

    @abstractmethod
    def stop(self) -> None:
        """Terminate the node. No-op when it is not running.

        Raises:
            StopError: If the node failed to shut down; it is still tracked
                as running.
        """

    @abstractmethod
    def query_version(self) -> str:
        """Version string of the backend.

        Raises:
            SpawnError: If the backend cannot be resolved or queried.
        """

    # -------------------------------------------------------------------------
    # Live config
    # -------------------------------------------------------------------------

    @abstractmethod
    def read_config(self, path: str | None = None) -> Any:
        """Read from the running node, encoded for this backend."""

    @abstractmethod
    def write_config(self, path: str, value: Any) -> None:
        """Write to the running node."""

    @abstractmethod
    def replace_config(self, document: ConfigDocument) -> None:
        """Replace the running node's whole document."""

    def validate_config(self, path: str, document: ConfigDocument) -> None:
        """Check a stopped-state document after writing path.

        The default accepts everything.

        Raises:
            ConfigWriteRejected: If the document is invalid.
        """

    # -------------------------------------------------------------------------
    # Runtime info
    # -------------------------------------------------------------------------

    @property
    def api(self) -> Any:
        """Live API surface, None when not running."""
        return None

    @property
    def api_addr(self) -> str | None:
        return None

    @property
    def gateway_addr(self) -> str | None:
        return None

    @property
    def pid(self) -> int | None:
        return None


def call_with_timeout(func: Callable[[], R], timeout: float, name: str) -> R:
    """Run func on a worker thread, bounded by timeout.

    Raises:
        concurrent.futures.TimeoutError: If func did not return in time.
        Exception: Whatever func raised.
    """
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
    try:
        return executor.submit(func).result(timeout=timeout)
    finally:
        executor.shutdown(wait=False)


class InProcessBackend(BackendAdapter):
    """Shared behavior of the library and handle backends.

    Both drive a node object living in this process, exposing id(), stop()
    and a config surface with get() / set(path, value) / replace(document).
    Writes are handed to the node unvalidated.
    """

    accessor: ClassVar[ConfigAccessor] = ConfigAccessor("structured")

    def __init__(self, exec_ref: Any = None, **kwargs: Any) -> None:
        super().__init__(exec_ref, **kwargs)
        self._node: Any = None

    def await_ready(self, timeout: float) -> None:
        node = self._require_node()
        try:
            identity = call_with_timeout(node.id, timeout, f"ipfsd-{self.backend_type.value}-ready")
        except concurrent.futures.TimeoutError:
            self.stop()
            raise ReadinessTimeout(timeout) from None
        except Exception as e:
            self.stop()
            raise SpawnError("Node failed to report its identity", output=str(e)) from e
        if not identity:
            self.stop()
            raise SpawnError("Node reported an empty identity")

    def stop(self) -> None:
        node = self._node
        if node is None:
            return
        # _node survives a failed stop so a retry reaches the same node
        try:
            node.stop()
        except Exception as e:
            raise StopError(f"{self.backend_type.value} node failed to stop: {e}") from e
        self._node = None

    def read_config(self, path: str | None = None) -> Any:
        document = self._require_node().config.get()
        return self.accessor.get(document, path)

    def write_config(self, path: str, value: Any) -> None:
        try:
            self._require_node().config.set(path, self.accessor.decode(value))
        except (TypeError, ValueError) as e:
            raise ConfigWriteRejected(path, str(e)) from e

    def replace_config(self, document: ConfigDocument) -> None:
        self._require_node().config.replace(document)

    def _require_node(self) -> Any:
        if self._node is None:
            raise SpawnError(f"{self.backend_type.value} node is not running")
        return self._node

    @property
    def api(self) -> Any:
        return self._node

    @property
    def api_addr(self) -> str | None:
        return getattr(self._node, "api_addr", None)

    @property
    def gateway_addr(self) -> str | None:
        return getattr(self._node, "gateway_addr", None)

