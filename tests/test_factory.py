"""Tests for the Factory entry point."""

import os
from pathlib import Path

import pytest

import ipfsd_ctl
from ipfsd_ctl.config import CtlSettings
from ipfsd_ctl.exceptions import CleanupError, InitError, SpawnError, UnsupportedBackend
from ipfsd_ctl.factory import Factory, create, version
from ipfsd_ctl.models import BackendType, DaemonState


class TestCreate:
    def test_unknown_type(self):
        with pytest.raises(UnsupportedBackend, match="Valid types: native, library, handle"):
            create("go")

    @pytest.mark.parametrize("tag", ["native", "library", "handle"])
    def test_known_types(self, tag: str, settings: CtlSettings):
        factory = create(tag, settings=settings)
        assert factory.backend_type == BackendType(tag)
        assert tag in repr(factory)

    def test_package_exports(self):
        assert ipfsd_ctl.create is create
        assert ipfsd_ctl.Factory is Factory


class TestVersion:
    def test_native_version_without_spawn(self, fake_ipfs: Path, settings: CtlSettings):
        assert version("native", str(fake_ipfs), settings=settings) == "ipfs version 0.4.13"

    def test_library_version(self, library_node_class: type):
        assert create("library", library_node_class).version() == "js-ipfs version: 0.27.0"

    def test_handle_version_override(self, fake_handle):
        assert create("handle", fake_handle, version="0.30.0").version() == "0.30.0"

    def test_missing_executable(self, tmp_path: Path, settings: CtlSettings):
        with pytest.raises(SpawnError, match="not found"):
            version("native", str(tmp_path / "nope"), settings=settings)


class TestTmpDir:
    def test_fresh_directories(self, settings: CtlSettings):
        # Arrange
        factory = create("library", settings=settings)

        # Act
        first, second = factory.tmp_dir(), factory.tmp_dir()

        # Assert
        assert first != second
        assert first.is_dir() and second.is_dir()
        assert first.parent == Path(settings.tmp_root)
        assert os.listdir(first) == []


class TestSpawn:
    def test_failed_spawn_removes_temporary_repo(self, library_node_class: type, settings: CtlSettings):
        # Arrange
        factory = create("library", library_node_class, settings=settings)

        # Act
        with pytest.raises(SpawnError):
            factory.spawn(args=["--fail"], init_options={"bits": 1024})

        # Assert
        assert list(Path(settings.tmp_root).iterdir()) == []

    def test_failed_spawn_keeps_explicit_repo(
        self, library_node_class: type, settings: CtlSettings, tmp_path: Path
    ):
        # Arrange
        factory = create("library", library_node_class, settings=settings)
        repo = tmp_path / "explicit"

        # Act
        with pytest.raises(SpawnError):
            factory.spawn(repo_path=repo, args=["--fail"], init_options={"bits": 1024})

        # Assert
        assert (repo / "config").exists()

    def test_discard_failure_is_logged_not_raised(
        self, library_node_class: type, settings: CtlSettings, monkeypatch: pytest.MonkeyPatch
    ):
        # Arrange
        factory = create("library", library_node_class, settings=settings)

        def broken_remove(path: Path) -> None:
            raise CleanupError(f"Cannot remove {path}")

        monkeypatch.setattr(factory.repository, "remove", broken_remove)

        # Act & Assert
        with pytest.raises(SpawnError):
            factory.spawn(args=["--fail"], init_options={"bits": 1024})

    def test_invalid_options(self, settings: CtlSettings):
        with pytest.raises(InitError, match="Invalid spawn options"):
            create("library", settings=settings).spawn(init_options={"bits": "many"})

    def test_instances_are_independent(self, library_node_class: type, settings: CtlSettings):
        # Arrange
        factory = create("library", library_node_class, settings=settings)

        # Act
        first = factory.spawn(init_options={"bits": 1024})
        second = factory.spawn(init_options={"bits": 1024})

        # Assert
        assert first.repo_path != second.repo_path
        assert first.get_config("Identity.PeerID") != second.get_config("Identity.PeerID")
        first.stop()
        first.cleanup()
        assert second.state == DaemonState.RUNNING
        second.stop()
        second.cleanup()

    @pytest.mark.parametrize(
        "tag, expected",
        [
            ("library", ["/ip4/0.0.0.0/tcp/4002", "/ip4/127.0.0.1/tcp/4003/ws"]),
            ("handle", ["/ip4/0.0.0.0/tcp/4002", "/ip4/127.0.0.1/tcp/4003/ws"]),
        ],
    )
    def test_default_addrs_per_backend(
        self, tag: str, expected: list, library_node_class: type, fake_handle, settings: CtlSettings
    ):
        # Arrange
        exec_ref = library_node_class if tag == "library" else fake_handle
        factory = create(tag, exec_ref, settings=settings)

        # Act
        node = factory.spawn(start=False, init_options={"bits": 1024, "default_addrs": True})

        # Assert
        assert node.get_config("Addresses.Swarm") == expected
        node.cleanup()

    def test_native_default_addrs(self, fake_ipfs: Path, settings: CtlSettings):
        # Act
        node = create("native", str(fake_ipfs), settings=settings).spawn(
            start=False, init_options={"bits": 1024, "default_addrs": True}
        )

        # Assert
        assert node.get_config("Addresses.Swarm") == '[\n  "/ip4/0.0.0.0/tcp/4001",\n  "/ip6/::/tcp/4001"\n]'
        node.cleanup()
