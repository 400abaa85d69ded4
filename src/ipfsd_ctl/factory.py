"""Factory: the entry point for spawning daemons.

A Factory is bound to one backend type (and optionally an exec reference)
and produces any number of independent Daemon controllers.

Example usage:
    factory = create("native")
    print(factory.version())          # "ipfs version 0.4.13"

    node = factory.spawn(init_options={"bits": 1024})
    try:
        node.get_config("Addresses.Swarm")
    finally:
        node.stop()
        node.cleanup()
"""

from __future__ import annotations

__all__ = [
    "Factory",
    "create",
    "version",
]

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ipfsd_ctl.backends import select_backend
from ipfsd_ctl.backends.base import BackendAdapter
from ipfsd_ctl.config import CtlSettings
from ipfsd_ctl.controller import Daemon
from ipfsd_ctl.exceptions import CleanupError, InitError
from ipfsd_ctl.models import DaemonSpec, DaemonSystemEvent, InitOptions
from ipfsd_ctl.repository import RepositoryManager
from ipfsd_ctl.utils.logging.log_config import log_event


class Factory:
    """Creates Daemon controllers for one backend type.

    Args:
        backend_type: "native", "library" or "handle".
        exec_ref: Executable path (native), node class or "module:attr"
            (library), execution object (handle).
        version: Pre-resolved version string (handle backend).
        settings: Controller settings; defaults apply when omitted.

    Raises:
        UnsupportedBackend: If backend_type is not recognized.
    """

    def __init__(
        self,
        backend_type: Any,
        exec_ref: Any = None,
        *,
        version: str | None = None,
        settings: CtlSettings | None = None,
    ) -> None:
        self.adapter_class = select_backend(backend_type)
        self.backend_type = self.adapter_class.backend_type
        self.exec_ref = exec_ref
        self.version_override = version
        self.settings = settings or CtlSettings()
        self.repository = RepositoryManager(self.settings.tmp_root)

    def _adapter(self) -> BackendAdapter:
        return self.adapter_class(
            self.exec_ref,
            settings=self.settings,
            version=self.version_override,
        )

    def version(self) -> str:
        """Version string of the backend, without spawning anything.

        Raises:
            SpawnError: If the executable / node class cannot be resolved.
        """
        return self._adapter().query_version()

    def tmp_dir(self) -> Path:
        """Allocate a fresh, collision-free repository directory."""
        return self.repository.allocate()

    def create_daemon(
        self,
        *,
        disposable: bool = True,
        init: bool = True,
        start: bool = True,
        repo_path: Path | str | None = None,
        args: list[str] | tuple[str, ...] = (),
        init_options: InitOptions | dict[str, Any] | None = None,
    ) -> Daemon:
        """Create a Daemon without spawning it.

        Takes the same options as spawn(). Used to drive init()/start()
        separately or to access a stopped repository.

        Raises:
            InitError: Invalid options.
        """
        try:
            spec = DaemonSpec(
                type=self.backend_type,
                exec=self.exec_ref,
                repo_path=Path(repo_path) if repo_path is not None else None,
                disposable=disposable,
                init=init,
                start=start,
                init_options=init_options if init_options is not None else InitOptions(),
                args=tuple(args),
            )
        except ValidationError as e:
            raise InitError(f"Invalid spawn options: {e}") from e
        return Daemon(spec, self._adapter(), settings=self.settings, repository=self.repository)

    def spawn(self, **options: Any) -> Daemon:
        """Create a Daemon and spawn it.

        Args:
            **options: disposable (fresh temporary repository when repo_path
                is not given, a persistent default path otherwise), init,
                start, repo_path, args (startup flags, in order) and
                init_options ({"bits", "default_addrs", "config"}).

        Returns:
            The spawned Daemon.

        Raises:
            InitError: Invalid options, or repository initialization failed.
            SpawnError: The backend could not be started.
            ReadinessTimeout: The backend did not become ready in time.
        """
        daemon = self.create_daemon(**options)
        spec = daemon.spec
        try:
            daemon.spawn()
        except Exception:
            # A fresh temporary repository must not outlive a failed spawn
            if spec.disposable and spec.repo_path is None and daemon.repo_path is not None:
                self._discard(daemon.repo_path)
            raise
        return daemon

    def _discard(self, path: Path) -> None:
        try:
            self.repository.remove(path)
        except CleanupError as e:
            log_event(
                logging.WARNING,
                DaemonSystemEvent(
                    event="repo_discard_failed",
                    message=f"Could not remove repository after failed spawn: {e}",
                    backend=self.backend_type.value,
                    repo_path=str(path),
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
            )

    def __repr__(self) -> str:
        return f"Factory(type={self.backend_type.value!r}, exec={self.exec_ref!r})"


def create(
    backend_type: Any,
    exec_ref: Any = None,
    *,
    version: str | None = None,
    settings: CtlSettings | None = None,
) -> Factory:
    """Create a Factory for a backend type.

    Raises:
        UnsupportedBackend: If backend_type is not recognized.
    """
    return Factory(backend_type, exec_ref, version=version, settings=settings)


def version(backend_type: Any, exec_ref: Any = None, *, settings: CtlSettings | None = None) -> str:
    """Version string of a backend, without a repository or instance."""
    return create(backend_type, exec_ref, settings=settings).version()
