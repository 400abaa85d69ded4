"""Network helpers for talking to spawned nodes.

Handles:
- Multiaddr to host/port / HTTP URL conversion
- Port availability checks before starting a node
"""

from __future__ import annotations

__all__ = [
    "TcpMultiaddr",
    "is_port_in_use",
    "multiaddr_to_url",
    "parse_tcp_multiaddr",
]

import socket
from typing import NamedTuple

from ipfsd_ctl.constants import SOCKET_CONNECT_TIMEOUT_SECONDS


class TcpMultiaddr(NamedTuple):
    """Host/port pair extracted from a TCP multiaddr."""

    host: str
    port: int
    family: str  # "ip4", "ip6" or "dns4"/"dns6"/"dns"


def parse_tcp_multiaddr(addr: str) -> TcpMultiaddr:
    """Extract host and port from a TCP multiaddr.

    Args:
        addr: Multiaddr such as "/ip4/127.0.0.1/tcp/5001" (trailing protocol
            segments like "/ws" or "/http" are ignored).

    Returns:
        TcpMultiaddr with host, port and address family.

    Raises:
        ValueError: If the multiaddr has no address or tcp segment.

    Example:
        >>> parse_tcp_multiaddr("/ip4/127.0.0.1/tcp/5001")
        TcpMultiaddr(host='127.0.0.1', port=5001, family='ip4')
    """
    parts = [p for p in addr.strip().split("/") if p]
    if len(parts) < 4 or parts[2] != "tcp":
        raise ValueError(f"Not a TCP multiaddr: {addr!r}")

    family, host, _, port_str = parts[:4]
    if family not in ("ip4", "ip6", "dns", "dns4", "dns6"):
        raise ValueError(f"Unsupported address family in multiaddr: {addr!r}")

    try:
        port = int(port_str)
    except ValueError as e:
        raise ValueError(f"Invalid port in multiaddr: {addr!r}") from e
    return TcpMultiaddr(host=host, port=port, family=family)


def multiaddr_to_url(addr: str, scheme: str = "http") -> str:
    """Convert a TCP multiaddr into a base URL.

    Args:
        addr: Multiaddr such as "/ip4/127.0.0.1/tcp/5001".
        scheme: URL scheme.

    Returns:
        URL such as "http://127.0.0.1:5001".
    """
    parsed = parse_tcp_multiaddr(addr)
    host = f"[{parsed.host}]" if parsed.family == "ip6" else parsed.host
    return f"{scheme}://{host}:{parsed.port}"


def is_port_in_use(port: int, host: str = "127.0.0.1") -> bool:
    """Check if TCP port is accepting connections.

    Args:
        port: TCP port number to check.
        host: Host to probe. Wildcard addresses are probed on loopback.

    Returns:
        True if port is in use, False otherwise.
    """
    if host in ("0.0.0.0", "::"):
        host = "127.0.0.1" if host == "0.0.0.0" else "::1"
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    with socket.socket(family, socket.SOCK_STREAM) as s:
        s.settimeout(SOCKET_CONNECT_TIMEOUT_SECONDS)
        return s.connect_ex((host, port)) == 0
