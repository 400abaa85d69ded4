"""Application-wide constants for ipfsd-ctl.

Constants that define controller behavior.
For user-configurable settings (timeouts, logging), see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # Backend type tags
    "BACKEND_TYPES",
    # Executable / node class resolution
    "NATIVE_EXEC_ENV",
    "NATIVE_EXEC_NAME",
    "LIBRARY_NODE_ENV",
    "REPO_PATH_ENV",
    # Repository layout
    "REPO_CONFIG_FILENAME",
    "REPO_VERSION_FILENAME",
    "REPO_LOCK_FILENAME",
    "REPO_VERSION",
    "REPO_TMP_PREFIX",
    # Keys
    "DEFAULT_KEY_BITS",
    "MIN_KEY_BITS",
    # Addresses
    "DEFAULT_SWARM_ADDRS",
    "EPHEMERAL_ADDRESSES",
    "DEFAULT_BOOTSTRAP",
    # Timeouts
    "DEFAULT_READINESS_TIMEOUT_SECONDS",
    "MIN_READINESS_TIMEOUT_SECONDS",
    "MAX_READINESS_TIMEOUT_SECONDS",
    "DEFAULT_STOP_TIMEOUT_SECONDS",
    "DEFAULT_KILL_TIMEOUT_SECONDS",
    "DEFAULT_VERSION_TIMEOUT_SECONDS",
    "DEFAULT_API_TIMEOUT_SECONDS",
    "SOCKET_CONNECT_TIMEOUT_SECONDS",
    # Native process output markers
    "API_LISTENING_MARKER",
    "GATEWAY_LISTENING_MARKER",
    "DAEMON_READY_MARKER",
    # HTTP RPC API
    "API_PATH_PREFIX",
]

from typing import Any

# ============================================================================
# Application Identity
# ============================================================================

# Used for logger names, the CLI program name and the settings directory
APP_NAME: str = "ipfsd-ctl"

# ============================================================================
# Backend Type Tags
# ============================================================================

# - native: externally compiled node executable run as a child process
# - library: node class constructed in-process
# - handle: caller-supplied, already-constructed execution object
BACKEND_TYPES: tuple[str, ...] = ("native", "library", "handle")

# ============================================================================
# Executable / Node Class Resolution
# ============================================================================

# Environment variable naming the native node executable
NATIVE_EXEC_ENV: str = "IPFS_GO_EXEC"

# Executable looked up on PATH when neither exec nor NATIVE_EXEC_ENV is given
NATIVE_EXEC_NAME: str = "ipfs"

# Environment variable naming the library node class ("module:attr")
LIBRARY_NODE_ENV: str = "IPFSD_LIBRARY_NODE"

# Environment variable the native executable reads its repository from
REPO_PATH_ENV: str = "IPFS_PATH"

# ============================================================================
# Repository Layout
# ============================================================================

REPO_CONFIG_FILENAME: str = "config"
REPO_VERSION_FILENAME: str = "version"
REPO_LOCK_FILENAME: str = ".ipfsd-init.lock"

# Repository format version written for library/handle repositories
REPO_VERSION: int = 7

# Prefix for disposable repository directories
REPO_TMP_PREFIX: str = "ipfsd-"

# ============================================================================
# Keys
# ============================================================================

DEFAULT_KEY_BITS: int = 2048

# RSA keys below this size are rejected by the key generator
MIN_KEY_BITS: int = 1024

# ============================================================================
# Addresses
# ============================================================================

# Swarm addresses applied when default_addrs is requested
DEFAULT_SWARM_ADDRS: dict[str, list[str]] = {
    "native": [
        "/ip4/0.0.0.0/tcp/4001",
        "/ip6/::/tcp/4001",
    ],
    "library": [
        "/ip4/0.0.0.0/tcp/4002",
        "/ip4/127.0.0.1/tcp/4003/ws",
    ],
    "handle": [
        "/ip4/0.0.0.0/tcp/4002",
        "/ip4/127.0.0.1/tcp/4003/ws",
    ],
}

# Loopback addresses on OS-assigned ports, used when default_addrs is off so
# concurrent test nodes never collide
EPHEMERAL_ADDRESSES: dict[str, dict[str, Any]] = {
    "native": {
        "Swarm": ["/ip4/127.0.0.1/tcp/0"],
        "API": "/ip4/127.0.0.1/tcp/0",
        "Gateway": "/ip4/127.0.0.1/tcp/0",
    },
    "library": {
        "Swarm": ["/ip4/127.0.0.1/tcp/0", "/ip4/127.0.0.1/tcp/0/ws"],
        "API": "/ip4/127.0.0.1/tcp/0",
        "Gateway": "/ip4/127.0.0.1/tcp/0",
    },
    "handle": {
        "Swarm": ["/ip4/127.0.0.1/tcp/0", "/ip4/127.0.0.1/tcp/0/ws"],
        "API": "/ip4/127.0.0.1/tcp/0",
        "Gateway": "/ip4/127.0.0.1/tcp/0",
    },
}

# Bootstrap peers written into freshly generated library/handle configs
DEFAULT_BOOTSTRAP: list[str] = [
    "/dnsaddr/bootstrap.libp2p.io/p2p/QmNnooDu7bfjPFoTZYxMNLWUQJyrVwtbZg5gBMjTezGAJN",
    "/dnsaddr/bootstrap.libp2p.io/p2p/QmQCU2EcMqAqQPR2i9bChDtGNJchTbq5TbXJJ16u19uLTa",
    "/dnsaddr/bootstrap.libp2p.io/p2p/QmbLHAnMoJPWSCR5Zhtx6BHJX9KiKNN6tpvbUcqanj75Nb",
]

# ============================================================================
# Timeouts
# ============================================================================

# How long spawn() waits for the backend to report readiness (seconds)
DEFAULT_READINESS_TIMEOUT_SECONDS: float = 30.0
MIN_READINESS_TIMEOUT_SECONDS: float = 0.1
MAX_READINESS_TIMEOUT_SECONDS: float = 600.0

# Grace period between SIGTERM and SIGKILL (seconds)
DEFAULT_STOP_TIMEOUT_SECONDS: float = 10.0

# How long to wait for the process to die after SIGKILL (seconds)
DEFAULT_KILL_TIMEOUT_SECONDS: float = 5.0

# Timeout for `<exec> version` and `<exec> init` (seconds)
DEFAULT_VERSION_TIMEOUT_SECONDS: float = 30.0

# Timeout for a single HTTP RPC API round trip (seconds)
DEFAULT_API_TIMEOUT_SECONDS: float = 10.0

# Timeout for the port-in-use probe before starting (seconds)
SOCKET_CONNECT_TIMEOUT_SECONDS: float = 0.5

# ============================================================================
# Native Process Output Markers
# ============================================================================

API_LISTENING_MARKER: str = "API server listening on"
GATEWAY_LISTENING_MARKER: str = "Gateway (readonly) server listening on"
DAEMON_READY_MARKER: str = "Daemon is ready"

# ============================================================================
# HTTP RPC API
# ============================================================================

API_PATH_PREFIX: str = "/api/v0"
