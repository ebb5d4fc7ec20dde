"""
=============================================================================
IPECHO - Tell a TCP client which IP address it connected from
=============================================================================

A small TCP listener that reads the request line and headers of one
HTTP-style request per connection, logs them as JSON, and answers with:

    HTTP/1.1 200 OK\\r\\n
    \\r\\n
    <client-ip>\\r\\n

It is deliberately NOT a real HTTP server: no routing, no bodies, no
keep-alive.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    ipecho/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m ipecho)
    ├── config.py            # ServerConfig dataclass, HOST/PORT lookup
    ├── errors.py            # ListenError, ConnectionHandlerError
    ├── events.py            # EventSink and the JSON log sink
    ├── core/
    │   ├── socket_server.py # Bind + accept loop
    │   ├── connection.py    # Client socket wrapper
    │   └── handler.py       # One request, one response
    └── http/
        ├── request.py       # Relaxed header parsing
        └── response.py      # The fixed response

=============================================================================
QUICK START
=============================================================================

    $ python -m ipecho --port 3000
    {"local_addr": "0.0.0.0:3000"}

    $ curl -s http://127.0.0.1:3000/
    127.0.0.1

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig, get_local_addr
from .core import SocketServer, serve
from .errors import IPEchoError, ListenError, ConnectionHandlerError
from .events import EventSink, JsonLogSink

__all__ = [
    "ServerConfig",
    "get_local_addr",
    "SocketServer",
    "serve",
    "IPEchoError",
    "ListenError",
    "ConnectionHandlerError",
    "EventSink",
    "JsonLogSink",
    "__version__",
]
