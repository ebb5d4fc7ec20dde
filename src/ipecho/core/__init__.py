"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SOCKET SERVER                                                      │
    │  Binds host:port, accepts forever, one thread per connection.      │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ new socket
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  CONNECTION                                                         │
    │  Line-buffered reads and writes over the client socket.            │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  CONNECTION HANDLER                                                 │
    │  Request line + headers in, events out, "200 OK <ip>" back.        │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer, serve, split_address
from .connection import Address, Connection, ConnectionState, LineTooLongError
from .handler import ConnectionHandler, Session

__all__ = [
    "SocketServer",       # Listener and accept loop
    "serve",              # Bind an address and serve forever
    "split_address",      # "host:port" → (host, port)
    "Address",            # (ip, port) endpoint
    "Connection",         # Wrapper for a client socket
    "ConnectionState",    # Connection lifecycle states
    "LineTooLongError",   # Raised for oversized lines
    "ConnectionHandler",  # Per-connection request/response logic
    "Session",            # What one connection sent us
]
