"""
=============================================================================
CONNECTION HANDLER
=============================================================================

Runs one connection from first byte to response, strictly in order:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  1. TCP_NODELAY on                                                  │
    │  2. peer address      ──► emit {"peer_addr": "1.2.3.4:5678"}        │
    │  3. request line      ──► emit {"request_line": "GET / HTTP/1.1\\r\\n"}│
    │  4. header lines until the blank line (or end of stream)           │
    │                       ──► emit {"host": " example.com", ...}        │
    │  5. write "HTTP/1.1 200 OK\\r\\n\\r\\n1.2.3.4\\r\\n", flush              │
    └─────────────────────────────────────────────────────────────────────┘

Any I/O failure stops the sequence where it happens and is raised as
ConnectionHandlerError. The response is only written once the headers
have been read completely, so a client never sees half an answer.

=============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..errors import ConnectionHandlerError
from ..events import EventSink
from ..http.request import parse_headers
from ..http.response import build_response
from .connection import Address, Connection


logger = logging.getLogger(__name__)


@dataclass
class Session:
    """What the handler learned about one connection."""

    peer: Address
    request_line: str = ""
    headers: Dict[str, str] = field(default_factory=dict)


class ConnectionHandler:
    """
    Handles a single accepted connection.

    The handler holds no per-connection state of its own, so one instance
    is shared by every connection thread.

    Usage:
        handler = ConnectionHandler(JsonLogSink())
        with conn:
            session = handler.handle(conn)
    """

    def __init__(self, sink: EventSink):
        self.sink = sink

    def handle(self, conn: Connection) -> Session:
        """
        Read one request from ``conn`` and answer it.

        The connection is NOT closed here; the caller owns it.

        Returns:
            The Session built from the request.

        Raises:
            ConnectionHandlerError: On any socket, decoding or line-size
                failure. The original exception is the ``__cause__``.
        """
        peer: Optional[Address] = None
        try:
            conn.set_nodelay()

            peer = conn.peer_address()
            self.sink.emit({"peer_addr": str(peer)})
            session = Session(peer=peer)

            # e.g. GET / HTTP/1.1\r\n
            session.request_line = conn.read_line()
            if not session.request_line.endswith("\n"):
                raise ConnectionHandlerError(
                    "Peer closed the connection before sending a request line",
                    peer=peer,
                )
            self.sink.emit({"request_line": session.request_line})

            session.headers = parse_headers(conn.lines())
            self.sink.emit(session.headers)

            conn.write(build_response(peer.ip))
            conn.flush()
        except (OSError, ValueError) as e:
            raise ConnectionHandlerError(
                f"[{conn.id}] {type(e).__name__}: {e}", peer=peer
            ) from e

        logger.debug(f"[{conn.id}] Answered {peer}")
        return session
