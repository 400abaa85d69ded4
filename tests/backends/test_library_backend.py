"""Tests for the embedded library backend."""

import json
import sys
import textwrap
from pathlib import Path

import pytest

from ipfsd_ctl.backends.library import EmbeddedLibraryBackend, resolve_node_class
from ipfsd_ctl.config import CtlSettings
from ipfsd_ctl.exceptions import ConfigPathNotFound, ReadinessTimeout, SpawnError
from ipfsd_ctl.models import InitOptions
from ipfsd_ctl.repository import RepositoryManager


@pytest.fixture
def manager(settings: CtlSettings) -> RepositoryManager:
    return RepositoryManager(settings.tmp_root)


@pytest.fixture
def backend(library_node_class: type, settings: CtlSettings) -> EmbeddedLibraryBackend:
    return EmbeddedLibraryBackend(library_node_class, settings=settings)


@pytest.fixture
def repo(backend: EmbeddedLibraryBackend, manager: RepositoryManager) -> Path:
    path = manager.allocate()
    backend.init_repo(manager, path, InitOptions(bits=1024))
    return path


@pytest.fixture
def node_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Importable module defining a node class; returns its module name."""
    source = textwrap.dedent(
        """
        __version__ = "1.2.3"

        class Node:
            def __init__(self, repo_path, args=()):
                self.repo_path = repo_path

            def id(self):
                return {"id": "QmModule"}

            def stop(self):
                pass
        """
    )
    (tmp_path / "fake_node_pkg.py").write_text(source)
    monkeypatch.syspath_prepend(str(tmp_path))
    yield "fake_node_pkg"
    sys.modules.pop("fake_node_pkg", None)


class TestResolveNodeClass:
    def test_class_passes_through(self, library_node_class: type):
        assert resolve_node_class(library_node_class) is library_node_class

    def test_import_string(self, node_module: str):
        assert resolve_node_class(f"{node_module}:Node").__name__ == "Node"

    def test_environment_variable(self, node_module: str, monkeypatch: pytest.MonkeyPatch):
        # Arrange
        monkeypatch.setenv("IPFSD_LIBRARY_NODE", f"{node_module}:Node")

        # Act & Assert
        assert resolve_node_class(None).__name__ == "Node"

    def test_missing_reference(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("IPFSD_LIBRARY_NODE", raising=False)
        with pytest.raises(SpawnError, match="IPFSD_LIBRARY_NODE"):
            resolve_node_class(None)

    @pytest.mark.parametrize("ref", ["no_colon", "definitely_not_a_module_xyz:Node", "json:NoSuchNode"])
    def test_bad_references(self, ref: str):
        with pytest.raises(SpawnError):
            resolve_node_class(ref)


class TestVersion:
    def test_uses_class_metadata(self, backend: EmbeddedLibraryBackend):
        assert backend.query_version() == "js-ipfs version: 0.27.0"

    def test_falls_back_to_module_version(self, node_module: str):
        # Act
        version = EmbeddedLibraryBackend(f"{node_module}:Node").query_version()

        # Assert
        assert version == "fake_node_pkg version: 1.2.3"


class TestLifecycle:
    def test_init_writes_library_layout(self, repo: Path):
        # Act
        doc = json.loads((repo / "config").read_text())

        # Assert
        assert doc["Identity"]["PeerID"].startswith("Qm")
        assert doc["Addresses"]["Swarm"] == ["/ip4/127.0.0.1/tcp/0", "/ip4/127.0.0.1/tcp/0/ws"]
        assert (repo / "version").read_text().strip() == "7"

    def test_default_swarm(self, backend: EmbeddedLibraryBackend, manager: RepositoryManager):
        doc = backend.init_repo(manager, manager.allocate(), InitOptions(bits=1024, default_addrs=True))
        assert doc["Addresses"]["Swarm"] == ["/ip4/0.0.0.0/tcp/4002", "/ip4/127.0.0.1/tcp/4003/ws"]

    def test_start_constructs_node_with_args(self, backend: EmbeddedLibraryBackend, repo: Path, library_node_class: type):
        # Act
        backend.start(repo, ("--pass", "x"))
        backend.await_ready(5)

        # Assert
        node = library_node_class.instances[0]
        assert node.repo_path == str(repo)
        assert node.args == ("--pass", "x")
        assert backend.api is node
        assert backend.api_addr == "/ip4/127.0.0.1/tcp/5002"

    def test_constructor_failure_raises_spawn_error(self, backend: EmbeddedLibraryBackend, repo: Path):
        with pytest.raises(SpawnError, match="repo is locked"):
            backend.start(repo, ("--fail",))

    def test_empty_identity_is_not_ready(self, backend: EmbeddedLibraryBackend, repo: Path, monkeypatch: pytest.MonkeyPatch):
        # Arrange
        backend.start(repo, ())
        node = backend.api
        monkeypatch.setattr(node, "id", lambda: {})

        # Act & Assert
        with pytest.raises(SpawnError, match="empty identity"):
            backend.await_ready(5)
        assert node.running is False

    def test_slow_identity_times_out(self, backend: EmbeddedLibraryBackend, repo: Path, monkeypatch: pytest.MonkeyPatch):
        # Arrange
        import threading

        release = threading.Event()
        backend.start(repo, ())
        node = backend.api
        monkeypatch.setattr(node, "id", lambda: release.wait(5))

        # Act & Assert
        try:
            with pytest.raises(ReadinessTimeout):
                backend.await_ready(0.2)
        finally:
            release.set()
        assert backend.api is None

    def test_stop_calls_node_stop(self, backend: EmbeddedLibraryBackend, repo: Path):
        # Arrange
        backend.start(repo, ())
        node = backend.api

        # Act
        backend.stop()
        backend.stop()

        # Assert
        assert node.running is False
        assert backend.api is None


class TestLiveConfig:
    @pytest.fixture
    def running(self, backend: EmbeddedLibraryBackend, repo: Path):
        backend.start(repo, ())
        backend.await_ready(5)
        yield backend
        backend.stop()

    def test_structured_values(self, running: EmbeddedLibraryBackend):
        assert running.read_config("Addresses.Swarm") == ["/ip4/127.0.0.1/tcp/0", "/ip4/127.0.0.1/tcp/0/ws"]

    def test_set_then_get(self, running: EmbeddedLibraryBackend):
        # Act
        running.write_config("Bootstrap", "null")

        # Assert
        assert running.read_config("Bootstrap") == "null"

    def test_invalid_values_accepted_without_validation(self, running: EmbeddedLibraryBackend):
        # Act
        running.write_config("Bootstrap", True)

        # Assert
        assert running.read_config("Bootstrap") is True

    def test_missing_path(self, running: EmbeddedLibraryBackend):
        with pytest.raises(ConfigPathNotFound):
            running.read_config("Nope")
