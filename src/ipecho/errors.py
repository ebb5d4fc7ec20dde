"""
=============================================================================
SERVER ERRORS
=============================================================================

Two things can go wrong in this server, and they are handled at very
different levels:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  ListenError              → process level                           │
    │  ─────────────────────────────────────────────────────────────────  │
    │  Bind failed (address in use, bad address, permission denied),     │
    │  or the accept loop hit an error it cannot recover from.           │
    │  Reported once, the server never starts (or stops) serving.        │
    ├─────────────────────────────────────────────────────────────────────┤
    │  ConnectionHandlerError   → connection level                        │
    │  ─────────────────────────────────────────────────────────────────  │
    │  A read, write, flush or address lookup failed on ONE connection.   │
    │  That connection is torn down, every other connection carries on.  │
    └─────────────────────────────────────────────────────────────────────┘

Both are raised with ``raise ... from err`` so the underlying OSError stays
available as ``__cause__``.

=============================================================================
"""

from typing import Optional


class IPEchoError(Exception):
    """Base class for every error raised by this package."""


class ListenError(IPEchoError):
    """
    Raised when the listening socket cannot be set up or kept alive.

    Attributes:
        address: The bind address that was requested ("host:port").
    """

    def __init__(self, message: str, address: str = ""):
        super().__init__(message)
        self.address = address


class ConnectionHandlerError(IPEchoError):
    """
    Raised when handling a single connection fails.

    Attributes:
        peer: The peer address, if it was resolved before the failure.
    """

    def __init__(self, message: str, peer: Optional[object] = None):
        super().__init__(message)
        self.peer = peer
