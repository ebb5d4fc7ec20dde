"""
=============================================================================
LISTENER / ACCEPT LOOP
=============================================================================

Binds the listening socket and hands every accepted connection to its own
thread.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. getaddrinfo()  Turn "host:port" into a concrete socket address
    2. socket()       Create the listening socket (IPv4 or IPv6)
    3. bind()         Reserve the address           ─┐
    4. listen()       Start queueing connections    ─┴─ failure → ListenError
    5. accept()       One new socket per client, forever

THREAD-PER-CONNECTION:
──────────────────────

                    ┌───────────────────────┐
                    │    accept loop        │  never waits on a handler
                    └───────────┬───────────┘
                                │ Thread(target=_serve_connection)
        ┌───────────────────────┼───────────────────────┐
        ▼                       ▼                       ▼
    ┌───────────┐         ┌───────────┐         ┌───────────┐
    │ conn-1    │         │ conn-2    │         │ conn-3    │
    │ handler   │         │ handler   │         │ handler   │
    └───────────┘         └───────────┘         └───────────┘

A slow client only ever blocks its own thread. There is no cap on the
number of live threads, and no read timeout unless one is configured:
many idle clients mean many idle threads.

FAILURE ISOLATION:
──────────────────

- A handler failure is caught and logged at the thread boundary. The
  socket is closed, the accept loop and the other connections never
  notice.
- An accept() failure caused by resource pressure (out of file
  descriptors, aborted handshake, ...) is logged and the loop carries on.
  Anything else is fatal and raised as ListenError.

=============================================================================
"""

import errno
import socket
import signal
import logging
import threading
import time
from dataclasses import replace
from typing import Optional

from ..config import ServerConfig
from ..errors import ConnectionHandlerError, ListenError
from ..events import EventSink, JsonLogSink
from .connection import Address, Connection
from .handler import ConnectionHandler


logger = logging.getLogger(__name__)


# accept() errors that say nothing about the listening socket itself
TRANSIENT_ACCEPT_ERRORS = frozenset({
    errno.ECONNABORTED,
    errno.EMFILE,
    errno.ENFILE,
    errno.ENOBUFS,
    errno.ENOMEM,
    errno.EPROTO,
    errno.EPERM,
})

# Pause after a transient accept error so an fd shortage does not spin
ACCEPT_RETRY_DELAY = 0.1


def split_address(bind_address: str) -> tuple[str, int]:
    """
    Split "host:port" into its parts.

    IPv6 hosts may be written with brackets ("[::1]:3000").

    Raises:
        ListenError: If there is no port, or it is not a number.
    """
    host, sep, port = bind_address.rpartition(":")
    if not sep:
        raise ListenError(f"Invalid bind address {bind_address!r}: missing port", bind_address)

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    try:
        port_number = int(port)
    except ValueError:
        raise ListenError(f"Invalid bind address {bind_address!r}: bad port {port!r}", bind_address) from None

    return host, port_number


class SocketServer:
    """
    TCP listener that answers every connection with the client's IP.

    Usage:
        server = SocketServer(ServerConfig(port=3000))
        server.start()     # Blocks until shutdown()

    ┌─────────────────────────────────────────────────────────────────────┐
    │    start()                                                          │
    │        ├──► _create_socket()   getaddrinfo, socket, bind, listen    │
    │        ├──► emit {"local_addr": ...}                                │
    │        ├──► _setup_signals()   SIGINT/SIGTERM (main thread only)    │
    │        └──► _accept_loop()     blocks here                          │
    │                 └──► Thread(_serve_connection) per client           │
    │                                                                     │
    │    shutdown()   stop the loop (safe from any thread or signal)      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        sink: Optional[EventSink] = None,
        handler: Optional[ConnectionHandler] = None,
    ):
        """
        Args:
            config: Host, port, backlog and per-connection settings.
            sink: Where structured events go. Defaults to JsonLogSink.
            handler: Connection handler. Defaults to one built on ``sink``.
        """
        self.config = config or ServerConfig()
        self.sink = sink or JsonLogSink()
        self.handler = handler or ConnectionHandler(self.sink)

        self._socket: Optional[socket.socket] = None
        self._local_address: Optional[Address] = None

        self._running = False
        self._ready_event = threading.Event()
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Optional[Address]:
        """The bound local Address, once start() has bound the socket."""
        return self._local_address

    def _create_socket(self) -> socket.socket:
        """
        Resolve the bind address, then create, bind and listen.

        Raises:
            ListenError: If any step fails. Nothing is retried.
        """
        bind_address = self.config.bind_address
        host, port = split_address(bind_address)

        try:
            family, type_, proto, _, sockaddr = socket.getaddrinfo(
                host or None, port,
                type=socket.SOCK_STREAM,
                flags=socket.AI_PASSIVE,
            )[0]
        except (socket.gaierror, UnicodeError) as e:
            raise ListenError(f"Cannot resolve {bind_address}: {e}", bind_address) from e

        sock = socket.socket(family, type_, proto)
        try:
            # Allow an immediate restart while old sockets sit in TIME_WAIT
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            raise ListenError(f"Failed to bind to {bind_address}: {e}", bind_address) from e

        # accept() wakes up once a second so shutdown() is noticed
        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        """
        Stop gracefully on SIGINT (Ctrl+C) and SIGTERM (docker stop).

        Python only allows signal handlers in the main thread; when the
        server runs in a background thread (tests, embedding) the caller
        stops it with shutdown() instead.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self):
        """
        Bind and serve until shutdown() is called.

        Raises:
            ListenError: On bind failure, or a non-transient accept failure.
        """
        self._socket = self._create_socket()
        self._local_address = Address.from_sockaddr(self._socket.getsockname())
        self.sink.emit({"local_addr": str(self._local_address)})

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()
        self._ready_event.set()

        logger.info(f"Server listening on {self._local_address}")

        try:
            self._accept_loop()
        finally:
            self._cleanup()

    def _accept_loop(self):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break  # Socket closed by shutdown()
                if e.errno in TRANSIENT_ACCEPT_ERRORS:
                    logger.warning(f"Accept error, continuing: {e}")
                    time.sleep(ACCEPT_RETRY_DELAY)
                    continue
                logger.error(f"Accept error: {e}")
                raise ListenError(f"Accept failed: {e}", self.config.bind_address) from e

            logger.debug(f"Accepted connection from {Address.from_sockaddr(client_address)}")
            self._dispatch(client_socket)

    def _dispatch(self, client_socket: socket.socket):
        """Start a thread for the connection; does not wait for it."""
        try:
            conn = Connection(
                socket=client_socket,
                timeout=self.config.timeout,
                max_line_size=self.config.max_line_size,
            )
        except OSError as e:
            logger.warning(f"Could not set up accepted socket: {e}")
            client_socket.close()
            return

        thread = threading.Thread(
            target=self._serve_connection,
            args=(conn,),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        thread.start()

    def _serve_connection(self, conn: Connection):
        """
        Thread body: run the handler and keep its failures here.

        The connection is always closed on the way out.
        """
        with conn:
            try:
                self.handler.handle(conn)
            except ConnectionHandlerError as e:
                logger.warning(f"Connection from {e.peer or 'unknown peer'} failed: {e}")
            except Exception as e:
                logger.exception(f"[{conn.id}] Unexpected handler error: {e}")

    def shutdown(self):
        """
        Stop accepting connections. Idempotent.

        Connections already being handled finish on their own threads.
        """
        logger.info("Shutting down server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        self._shutdown_event.set()
        logger.info("Server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Wait until the socket is bound and listening. True on success."""
        return self._ready_event.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Wait until the server has stopped. True on success."""
        return self._shutdown_event.wait(timeout)


def serve(
    bind_address: str,
    sink: Optional[EventSink] = None,
    config: Optional[ServerConfig] = None,
) -> None:
    """
    Listen on ``bind_address`` ("host:port") and serve forever.

    ``config`` supplies the remaining settings; its host and port are
    replaced by those in ``bind_address``.

    Raises:
        ListenError: If the address cannot be bound.
    """
    host, port = split_address(bind_address)
    server_config = replace(config or ServerConfig(), host=host, port=port)
    SocketServer(server_config, sink).start()
