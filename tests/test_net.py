"""Tests for multiaddr helpers and port probing."""

import socket

import pytest

from ipfsd_ctl.utils.net import TcpMultiaddr, is_port_in_use, multiaddr_to_url, parse_tcp_multiaddr


class TestParseTcpMultiaddr:
    def test_ip4(self):
        assert parse_tcp_multiaddr("/ip4/127.0.0.1/tcp/5001") == TcpMultiaddr("127.0.0.1", 5001, "ip4")

    def test_ignores_trailing_protocols(self):
        assert parse_tcp_multiaddr("/ip4/127.0.0.1/tcp/4003/ws").port == 4003

    @pytest.mark.parametrize(
        "addr",
        ["", "/ip4/127.0.0.1", "/ip4/127.0.0.1/udp/4001", "/unix/tmp/tcp/1", "/ip4/127.0.0.1/tcp/abc"],
    )
    def test_rejects_non_tcp(self, addr: str):
        with pytest.raises(ValueError):
            parse_tcp_multiaddr(addr)


class TestMultiaddrToUrl:
    def test_ip4(self):
        assert multiaddr_to_url("/ip4/127.0.0.1/tcp/5001") == "http://127.0.0.1:5001"

    def test_ip6_is_bracketed(self):
        assert multiaddr_to_url("/ip6/::1/tcp/5001") == "http://[::1]:5001"


class TestIsPortInUse:
    def test_detects_listening_socket(self):
        # Arrange
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(("127.0.0.1", 0))
            server.listen(1)
            port = server.getsockname()[1]

            # Act & Assert
            assert is_port_in_use(port)
            assert is_port_in_use(port, "0.0.0.0")

    def test_free_port(self):
        # Arrange - bind then release to get a port nobody listens on
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
            probe.bind(("127.0.0.1", 0))
            port = probe.getsockname()[1]

        # Act & Assert
        assert not is_port_in_use(port)
