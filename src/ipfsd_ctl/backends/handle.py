"""Precompiled handle backend.

Wraps an execution object the caller already constructed. The handle is
expected to provide:
    handle.start(repo_path: str, args: tuple[str, ...])   # returns when ready
    handle.stop()
    handle.id() -> dict
    handle.config                    # get() / set(path, value) / replace(doc)
    handle.version() -> str | dict   # optional
"""

from __future__ import annotations

__all__ = [
    "PrecompiledHandleBackend",
]

from pathlib import Path
from typing import Any, ClassVar

from ipfsd_ctl.backends.base import InProcessBackend
from ipfsd_ctl.constants import DEFAULT_SWARM_ADDRS, EPHEMERAL_ADDRESSES
from ipfsd_ctl.exceptions import IpfsdCtlError, SpawnError
from ipfsd_ctl.models import BackendType, ConfigDocument
from ipfsd_ctl.repository import RepoProfile, default_node_config, generate_identity


class PrecompiledHandleBackend(InProcessBackend):
    """Backend passing lifecycle calls through to a caller-supplied handle."""

    backend_type: ClassVar[BackendType] = BackendType.HANDLE

    def handle(self) -> Any:
        if self.exec_ref is None:
            raise SpawnError("The handle backend requires an execution object (exec)")
        return self.exec_ref

    def query_version(self) -> str:
        if self.version_override:
            return self.version_override

        version_fn = getattr(self.handle(), "version", None)
        if not callable(version_fn):
            raise IpfsdCtlError("Handle exposes no version() and no version string was given")
        version = version_fn()
        if isinstance(version, dict):
            version = version.get("version") or version.get("Version")
        if not version:
            raise IpfsdCtlError("Handle version() did not report a version")
        return str(version)

    def profile(self) -> RepoProfile:
        return RepoProfile(
            backend=self.backend_type.value,
            default_swarm=DEFAULT_SWARM_ADDRS["handle"],
            ephemeral_addresses=EPHEMERAL_ADDRESSES["handle"],
            generate=self._generate,
        )

    @staticmethod
    def _generate(repo_path: Path, bits: int) -> ConfigDocument:
        return default_node_config(generate_identity(bits), DEFAULT_SWARM_ADDRS["handle"])

    def start(self, repo_path: Path, args: tuple[str, ...]) -> None:
        handle = self.handle()
        try:
            handle.start(str(repo_path), tuple(args))
        except Exception as e:
            raise SpawnError("Handle failed to start", output=str(e)) from e
        self._node = handle

    def await_ready(self, timeout: float) -> None:
        # start() returning is the readiness signal
        self._require_node()
