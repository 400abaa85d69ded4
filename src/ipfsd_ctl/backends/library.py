"""Embedded library backend.

Constructs a node class in this process. The class is given directly, as a
"module:attr" import string, or through $IPFSD_LIBRARY_NODE.

A node class is expected to provide:
    NodeClass(repo_path: str, args: tuple[str, ...])
    node.id() -> dict            # non-empty once the node is usable
    node.stop() -> None
    node.config.get() -> dict    # whole document
    node.config.set(path, value)
    node.config.replace(document)
and optionally the attributes api_addr / gateway_addr, and node_name /
__version__ on the class for version reporting.
"""

from __future__ import annotations

__all__ = [
    "EmbeddedLibraryBackend",
    "import_object",
    "resolve_node_class",
]

import importlib
import importlib.metadata
import os
from pathlib import Path
from typing import Any, ClassVar

from ipfsd_ctl.backends.base import InProcessBackend
from ipfsd_ctl.constants import (
    DEFAULT_SWARM_ADDRS,
    EPHEMERAL_ADDRESSES,
    LIBRARY_NODE_ENV,
)
from ipfsd_ctl.exceptions import SpawnError
from ipfsd_ctl.models import BackendType, ConfigDocument
from ipfsd_ctl.repository import RepoProfile, default_node_config, generate_identity


def resolve_node_class(ref: Any) -> type:
    """Resolve a node class reference.

    Args:
        ref: A class, a "module:attr" string, or None for $IPFSD_LIBRARY_NODE.

    Returns:
        The node class.

    Raises:
        SpawnError: If the reference is missing or cannot be imported.
    """
    if ref is None:
        ref = os.environ.get(LIBRARY_NODE_ENV)
        if not ref:
            raise SpawnError(f"No library node class given. Pass exec or set {LIBRARY_NODE_ENV}")

    if isinstance(ref, type):
        return ref
    return import_object(ref)


def import_object(ref: Any) -> Any:
    """Import the object named by a "module:attr" reference.

    Raises:
        SpawnError: If the reference is malformed or cannot be imported.
    """
    if not isinstance(ref, str) or ":" not in ref:
        raise SpawnError(f"Invalid object reference {ref!r}, expected 'module:attr'")

    module_name, _, attr = ref.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise SpawnError(f"Cannot import module {module_name!r}: {e}") from e

    obj = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise SpawnError(f"Module {module_name!r} has no attribute {attr!r}") from e
    return obj


def _library_version(node_cls: type) -> tuple[str, str | None]:
    """(name, version) of the distribution providing node_cls."""
    top_level = node_cls.__module__.split(".")[0]
    name = getattr(node_cls, "node_name", None) or top_level

    version = getattr(node_cls, "__version__", None)
    if version is None:
        module = importlib.import_module(node_cls.__module__)
        version = getattr(module, "__version__", None)
    if version is None:
        try:
            version = importlib.metadata.version(top_level)
        except importlib.metadata.PackageNotFoundError:
            version = None
    return name, version


class EmbeddedLibraryBackend(InProcessBackend):
    """Backend constructing a node class in-process."""

    backend_type: ClassVar[BackendType] = BackendType.LIBRARY

    def node_class(self) -> type:
        return resolve_node_class(self.exec_ref)

    def query_version(self) -> str:
        name, version = _library_version(self.node_class())
        if version is None:
            raise SpawnError(f"Cannot determine the version of library node {name!r}")
        return f"{name} version: {version}"

    def profile(self) -> RepoProfile:
        return RepoProfile(
            backend=self.backend_type.value,
            default_swarm=DEFAULT_SWARM_ADDRS["library"],
            ephemeral_addresses=EPHEMERAL_ADDRESSES["library"],
            generate=self._generate,
        )

    @staticmethod
    def _generate(repo_path: Path, bits: int) -> ConfigDocument:
        return default_node_config(generate_identity(bits), DEFAULT_SWARM_ADDRS["library"])

    def start(self, repo_path: Path, args: tuple[str, ...]) -> None:
        node_cls = self.node_class()
        try:
            self._node = node_cls(str(repo_path), args=tuple(args))
        except Exception as e:
            raise SpawnError(f"Library node {node_cls.__name__} failed to start", output=str(e)) from e
