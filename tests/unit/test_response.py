"""
Unit tests for the fixed response.
"""

from ipecho.http.response import STATUS_LINE, build_response


class TestBuildResponse:
    """Tests for build_response()."""

    def test_exact_bytes(self):
        assert build_response("127.0.0.1") == b"HTTP/1.1 200 OK\r\n\r\n127.0.0.1\r\n"

    def test_ipv6_address(self):
        assert build_response("::1") == b"HTTP/1.1 200 OK\r\n\r\n::1\r\n"

    def test_no_headers(self):
        """Test that the status line is followed directly by the blank line."""
        response = build_response("10.0.0.1")
        head, _, body = response.partition(b"\r\n\r\n")

        assert head == STATUS_LINE.encode()
        assert body == b"10.0.0.1\r\n"
