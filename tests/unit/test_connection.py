"""
Unit tests for the client connection wrapper.
"""

import socket

import pytest

from ipecho.core.connection import Address, Connection, ConnectionState, LineTooLongError


class TestAddress:
    """Tests for Address."""

    def test_ipv4_text(self):
        assert str(Address("127.0.0.1", 3000)) == "127.0.0.1:3000"

    def test_ipv6_text(self):
        assert str(Address("::1", 3000)) == "[::1]:3000"

    def test_from_ipv6_sockaddr(self):
        """Test that flowinfo and scope id are dropped."""
        assert Address.from_sockaddr(("::1", 3000, 0, 0)) == Address("::1", 3000)


class TestConnection:
    """Tests for Connection."""

    def test_read_lines(self, tcp_pair):
        server_side, client = tcp_pair
        client.sendall(b"GET / HTTP/1.1\r\nHost: a\n\r\n")
        conn = Connection(socket=server_side)

        assert conn.read_line() == "GET / HTTP/1.1\r\n"
        assert conn.read_line() == "Host: a\n"
        assert conn.read_line() == "\r\n"
        assert conn.state == ConnectionState.READING

    def test_lines_until_eof(self, tcp_pair):
        server_side, client = tcp_pair
        client.sendall(b"a\nb\nc")
        client.shutdown(socket.SHUT_WR)
        conn = Connection(socket=server_side)

        assert list(conn.lines()) == ["a\n", "b\n", "c"]

    def test_line_split_across_sends(self, tcp_pair):
        server_side, client = tcp_pair
        for byte in b"Host: example.com\r\n":
            client.sendall(bytes([byte]))
        conn = Connection(socket=server_side)

        assert conn.read_line() == "Host: example.com\r\n"

    def test_line_too_long(self, tcp_pair):
        server_side, client = tcp_pair
        client.sendall(b"X" * 64 + b"\r\n")
        conn = Connection(socket=server_side, max_line_size=16)

        with pytest.raises(LineTooLongError):
            conn.read_line()

    def test_invalid_utf8(self, tcp_pair):
        server_side, client = tcp_pair
        client.sendall(b"\xff\xfe\r\n")
        conn = Connection(socket=server_side)

        with pytest.raises(UnicodeDecodeError):
            conn.read_line()

    def test_read_timeout(self, tcp_pair):
        server_side, _ = tcp_pair
        conn = Connection(socket=server_side, timeout=0.1)

        with pytest.raises(OSError):
            conn.read_line()

    def test_peer_address(self, tcp_pair):
        server_side, client = tcp_pair
        conn = Connection(socket=server_side)

        assert conn.peer_address() == Address(*client.getsockname())

    def test_set_nodelay(self, tcp_pair):
        server_side, _ = tcp_pair
        conn = Connection(socket=server_side)

        conn.set_nodelay()

        assert server_side.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY) != 0

    def test_write_flush_and_close(self, tcp_pair):
        server_side, client = tcp_pair
        conn = Connection(socket=server_side)

        conn.write(b"hello\r\n")
        conn.flush()
        assert conn.state == ConnectionState.WRITING

        conn.close()

        assert client.recv(1024) == b"hello\r\n"
        assert client.recv(1024) == b""  # FIN after the data
        assert conn.state == ConnectionState.CLOSED

    def test_close_is_idempotent(self, tcp_pair):
        server_side, _ = tcp_pair
        conn = Connection(socket=server_side)

        conn.close()
        conn.close()

        assert conn.state == ConnectionState.CLOSED

    def test_context_manager_closes(self, tcp_pair):
        server_side, _ = tcp_pair

        with Connection(socket=server_side) as conn:
            assert conn.state == ConnectionState.NEW

        assert conn.state == ConnectionState.CLOSED
