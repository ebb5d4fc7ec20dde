"""
The one response this server ever sends.

    HTTP/1.1 200 OK\\r\\n
    \\r\\n
    203.0.113.7\\r\\n

No headers, no Content-Length: the connection is closed right after, which
is what tells the client the body is over.
"""

STATUS_LINE = "HTTP/1.1 200 OK"
CRLF = "\r\n"


def build_response(peer_ip: str) -> bytes:
    """Return the response bytes acknowledging ``peer_ip`` (address only, no port)."""
    return f"{STATUS_LINE}{CRLF}{CRLF}{peer_ip}{CRLF}".encode("utf-8")
