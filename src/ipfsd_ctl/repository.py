"""Repository allocation, initialization and removal.

A repository is the directory holding one node's on-disk state. This module
allocates it (fresh temp directory or validated explicit path), initializes
it exactly once (unless forced), and removes it on cleanup.

Initialization layers three sources, later ones winning:
1. The backend's base document (RepoProfile.generate)
2. Addresses: ephemeral loopback ones, or the backend's default swarm
   addresses when requested
3. The caller's config overlay

Identity generation for the library/handle backends lives here as well:
an RSA key pair whose PeerID is the base58btc sha2-256 multihash of the
protobuf-wrapped public key, matching what the native executable writes.
"""

from __future__ import annotations

__all__ = [
    "NodeIdentity",
    "RepoProfile",
    "RepositoryManager",
    "default_node_config",
    "generate_identity",
]

import base64
import hashlib
import logging
import os
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from platformdirs import user_data_dir

from ipfsd_ctl.accessor import deep_merge, get_value
from ipfsd_ctl.constants import (
    APP_NAME,
    DEFAULT_BOOTSTRAP,
    MIN_KEY_BITS,
    REPO_CONFIG_FILENAME,
    REPO_LOCK_FILENAME,
    REPO_TMP_PREFIX,
    REPO_VERSION,
    REPO_VERSION_FILENAME,
)
from ipfsd_ctl.exceptions import (
    CleanupError,
    ConfigPathNotFound,
    DaemonStateError,
    InitError,
)
from ipfsd_ctl.models import ConfigDocument, DaemonSystemEvent
from ipfsd_ctl.utils.file_helpers import (
    file_lock,
    read_json_document,
    write_json_atomic,
)
from ipfsd_ctl.utils.logging.log_config import log_event

# libp2p key type tag for RSA in the protobuf key envelope
_KEY_TYPE_RSA = 0

# multihash prefix: sha2-256, 32-byte digest
_MULTIHASH_SHA256 = b"\x12\x20"

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


# =============================================================================
# Identity
# =============================================================================


@dataclass(frozen=True)
class NodeIdentity:
    """Node identity as stored under the Identity config section."""

    peer_id: str
    private_key: str  # base64 of the protobuf-wrapped PKCS#1 DER key


def _varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _key_envelope(key_type: int, data: bytes) -> bytes:
    # protobuf: field 1 (varint) = type, field 2 (bytes) = data
    return b"\x08" + _varint(key_type) + b"\x12" + _varint(len(data)) + data


def _base58btc(data: bytes) -> str:
    number = int.from_bytes(data, "big")
    encoded = ""
    while number:
        number, rem = divmod(number, 58)
        encoded = _BASE58_ALPHABET[rem] + encoded
    pad = len(data) - len(data.lstrip(b"\x00"))
    return _BASE58_ALPHABET[0] * pad + encoded


def generate_identity(bits: int) -> NodeIdentity:
    """Generate an RSA node identity.

    Args:
        bits: RSA modulus size.

    Returns:
        NodeIdentity with a "Qm..." PeerID.

    Raises:
        InitError: If bits is below MIN_KEY_BITS.
    """
    if bits < MIN_KEY_BITS:
        raise InitError(f"Key size {bits} is too small, minimum is {MIN_KEY_BITS} bits")

    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    public_der = key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    private_der = key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )

    digest = hashlib.sha256(_key_envelope(_KEY_TYPE_RSA, public_der)).digest()
    return NodeIdentity(
        peer_id=_base58btc(_MULTIHASH_SHA256 + digest),
        private_key=base64.b64encode(_key_envelope(_KEY_TYPE_RSA, private_der)).decode("ascii"),
    )


def default_node_config(identity: NodeIdentity, swarm: list[str]) -> ConfigDocument:
    """Base document for repositories initialized by the controller itself."""
    return {
        "Identity": {
            "PeerID": identity.peer_id,
            "PrivKey": identity.private_key,
        },
        "Addresses": {
            "Swarm": list(swarm),
            "API": "/ip4/127.0.0.1/tcp/5002",
            "Gateway": "/ip4/127.0.0.1/tcp/9090",
            "Announce": [],
            "NoAnnounce": [],
        },
        "Bootstrap": list(DEFAULT_BOOTSTRAP),
        "Discovery": {
            "MDNS": {"Enabled": True, "Interval": 10},
            "webRTCStar": {"Enabled": True},
        },
        "Datastore": {
            "StorageMax": "10GB",
            "GCPeriod": "1h",
        },
        "API": {"HTTPHeaders": {}},
    }


# =============================================================================
# Repository Manager
# =============================================================================


@dataclass(frozen=True)
class RepoProfile:
    """Backend-specific initialization defaults.

    Attributes:
        backend: Backend type tag.
        default_swarm: Swarm addresses applied when default addresses are
            requested.
        ephemeral_addresses: Addresses section applied otherwise.
        generate: Produces the base document for (repo_path, bits).
        owns_layout: True when the controller writes the whole layout
            (config + version file); False when the backend's own init step
            does and the controller only rewrites config.
    """

    backend: str
    default_swarm: list[str]
    ephemeral_addresses: dict
    generate: Callable[[Path, int], ConfigDocument]
    owns_layout: bool = True


class RepositoryManager:
    """Allocates, initializes, reads and removes repositories.

    Args:
        tmp_root: Parent directory for disposable repositories; None uses
            the system temp directory.
    """

    def __init__(self, tmp_root: Path | str | None = None) -> None:
        self.tmp_root = Path(tmp_root).expanduser() if tmp_root else None

    # -------------------------------------------------------------------------
    # Allocation
    # -------------------------------------------------------------------------

    def allocate(self, explicit: Path | str | None = None) -> Path:
        """Allocate a fresh directory or validate an explicit one.

        Args:
            explicit: Caller-chosen path. Created if missing.

        Returns:
            Absolute repository path.

        Raises:
            InitError: If the directory cannot be created or is not writable.
        """
        if explicit is None:
            try:
                if self.tmp_root is not None:
                    self.tmp_root.mkdir(parents=True, exist_ok=True)
                return Path(tempfile.mkdtemp(prefix=REPO_TMP_PREFIX, dir=self.tmp_root))
            except OSError as e:
                raise InitError(f"Failed to allocate repository directory: {e}") from e

        path = Path(explicit).expanduser().absolute()
        if path.exists() and not path.is_dir():
            raise InitError(f"Repository path is not a directory: {path}")
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InitError(f"Failed to create repository directory {path}: {e}") from e
        if not os.access(path, os.W_OK | os.X_OK):
            raise InitError(f"Repository directory is not writable: {path}")
        return path

    @staticmethod
    def default_repo_path(backend: str) -> Path:
        """Persistent repository location used for non-disposable instances."""
        return Path(user_data_dir(APP_NAME)) / "repos" / backend

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    @staticmethod
    def is_initialized(path: Path) -> bool:
        """Check whether the repository holds a config document."""
        return (path / REPO_CONFIG_FILENAME).is_file()

    def init(
        self,
        path: Path,
        bits: int,
        overlay: ConfigDocument,
        use_default_swarm_addrs: bool,
        profile: RepoProfile,
        *,
        force: bool = False,
    ) -> ConfigDocument:
        """Initialize a repository.

        Args:
            path: Allocated repository directory.
            bits: RSA key size.
            overlay: Caller config; its keys win over everything else.
            use_default_swarm_addrs: Apply the profile's default swarm
                addresses instead of ephemeral loopback ones.
            profile: Backend defaults and base-document generator.
            force: Reinitialize an already initialized repository.

        Returns:
            The document written to <repo>/config.

        Raises:
            InitError: If already initialized (without force), bits is too
                small, or any step of generation or writing fails.
        """
        if bits < MIN_KEY_BITS:
            raise InitError(f"Key size {bits} is too small, minimum is {MIN_KEY_BITS} bits")

        start = time.perf_counter()
        lock_path = path / REPO_LOCK_FILENAME
        try:
            with file_lock(lock_path):
                if self.is_initialized(path):
                    if not force:
                        raise InitError(f"Repository already initialized: {path}")
                    self._reset(path)

                base = profile.generate(path, bits)
                document = deep_merge(base, {"Addresses": self._addresses(profile, overlay, use_default_swarm_addrs)})
                document = deep_merge(document, overlay)

                self.write_config(path, document)
                if profile.owns_layout:
                    (path / REPO_VERSION_FILENAME).write_text(f"{REPO_VERSION}\n", encoding="utf-8")
        except OSError as e:
            raise InitError(f"Failed to initialize repository {path}: {e}") from e
        finally:
            lock_path.unlink(missing_ok=True)

        log_event(
            logging.INFO,
            DaemonSystemEvent(
                event="repo_initialized",
                message=f"Initialized {profile.backend} repository at {path}",
                backend=profile.backend,
                repo_path=str(path),
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                details={"bits": bits, "default_addrs": use_default_swarm_addrs, "forced": force},
            ),
        )
        return document

    @staticmethod
    def _addresses(profile: RepoProfile, overlay: ConfigDocument, use_default: bool) -> dict:
        try:
            get_value(overlay, "Addresses.Swarm")
            explicit_swarm = True
        except ConfigPathNotFound:
            explicit_swarm = False

        if use_default:
            # Explicit overlay swarm addresses are applied by the overlay merge
            return {} if explicit_swarm else {"Swarm": list(profile.default_swarm)}
        return dict(profile.ephemeral_addresses)

    @staticmethod
    def _reset(path: Path) -> None:
        for entry in path.iterdir():
            if entry.name == REPO_LOCK_FILENAME:
                continue
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()

    # -------------------------------------------------------------------------
    # Config document I/O
    # -------------------------------------------------------------------------

    def read_config(self, path: Path) -> ConfigDocument:
        """Read <repo>/config.

        Raises:
            DaemonStateError: If the repository is not initialized.
            InitError: If the document cannot be read or parsed.
        """
        if not self.is_initialized(path):
            raise DaemonStateError(f"Repository is not initialized: {path}")
        try:
            return read_json_document(path / REPO_CONFIG_FILENAME)
        except (OSError, ValueError) as e:
            raise InitError(f"Could not read repository config in {path}: {e}") from e

    def write_config(self, path: Path, document: ConfigDocument) -> None:
        """Atomically replace <repo>/config (owner-only permissions).

        Raises:
            OSError: If the file cannot be written.
        """
        write_json_atomic(path / REPO_CONFIG_FILENAME, document)

    # -------------------------------------------------------------------------
    # Removal
    # -------------------------------------------------------------------------

    def remove(self, path: Path) -> None:
        """Delete the repository directory tree.

        A directory that is already gone counts as removed.

        Raises:
            CleanupError: If the tree cannot be removed.
        """
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise CleanupError(f"Failed to remove repository {path}: {e}") from e

        log_event(
            logging.INFO,
            DaemonSystemEvent(
                event="repo_removed",
                message=f"Removed repository {path}",
                repo_path=str(path),
            ),
        )

