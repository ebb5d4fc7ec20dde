"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with the line-oriented API the handler
needs.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

A client that sends

    send("GET / HTTP/1.1\\r\\n")
    send("Host: example.com\\r\\n\\r\\n")

may be read by the server as one chunk, as three, or one byte at a time.
The only boundaries we can rely on are the ones IN the data: here, the
"\\n" at the end of each line. So reads go through a buffered file object
(``socket.makefile``) and ``readline()`` keeps pulling bytes until it
sees a newline or the peer closes.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──────► READING ──────► WRITING ──────► CLOSING ──────► CLOSED
     │             │                               ▲
     └─────────────┴───────────────────────────────┘
                  (any failure goes straight to CLOSING)

There is no keep-alive: every connection carries exactly one request.

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, NamedTuple, Optional


logger = logging.getLogger(__name__)


class Address(NamedTuple):
    """
    A transport endpoint: IP address plus port.

    ``str(addr)`` gives "ip:port", with the IP in brackets for IPv6
    ("[::1]:3000"), which is the form used in event records.
    """

    ip: str
    port: int

    @classmethod
    def from_sockaddr(cls, sockaddr) -> "Address":
        """Build from the tuple returned by getsockname()/getpeername()."""
        return cls(sockaddr[0], sockaddr[1])

    def __str__(self) -> str:
        if ":" in self.ip:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


class ConnectionState(Enum):
    """Connection lifecycle states, mostly useful in debug logs."""
    NEW = "new"              # Just accepted, nothing read yet
    READING = "reading"      # Reading the request line and headers
    WRITING = "writing"      # Sending the response
    CLOSING = "closing"      # Shutdown sequence in progress
    CLOSED = "closed"        # Socket released


class LineTooLongError(ValueError):
    """A line did not end within the configured maximum size."""


@dataclass
class Connection:
    """
    Represents one accepted client connection.

    Attributes:
        socket: The connected client socket.
        id: Short identifier used in log messages.
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
        timeout: Socket timeout in seconds, None for blocking I/O.
        max_line_size: Longest line read_line() accepts, terminator included.
    """

    socket: socket.socket

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    timeout: Optional[float] = None
    max_line_size: int = 64 * 1024

    _reader: Optional[BinaryIO] = field(default=None, repr=False)
    _writer: Optional[BinaryIO] = field(default=None, repr=False)

    def __post_init__(self):
        # None puts the socket in blocking mode
        self.socket.settimeout(self.timeout)

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    # ─────────────────────────────────────────────────────────────────────
    # SOCKET DETAILS
    # ─────────────────────────────────────────────────────────────────────

    def set_nodelay(self) -> None:
        """
        Disable Nagle's algorithm on this socket.

        The response is a handful of bytes written once; we want it on the
        wire immediately rather than held back waiting for more data.
        """
        self.socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

    def peer_address(self) -> Address:
        """Return the remote Address. Raises OSError if the peer is gone."""
        return Address.from_sockaddr(self.socket.getpeername())

    # ─────────────────────────────────────────────────────────────────────
    # READING
    # ─────────────────────────────────────────────────────────────────────

    def read_line(self) -> str:
        """
        Read one line, terminator included.

        Returns:
            The decoded line. An empty string means the peer closed the
            connection; a final line without "\\n" means it closed mid-line.

        Raises:
            OSError: Socket error or timeout.
            LineTooLongError: No newline within max_line_size bytes.
            UnicodeDecodeError: The line is not valid UTF-8.
        """
        self.state = ConnectionState.READING
        if self._reader is None:
            self._reader = self.socket.makefile("rb")

        raw = self._reader.readline(self.max_line_size)
        if len(raw) == self.max_line_size and not raw.endswith(b"\n"):
            raise LineTooLongError(f"Line exceeds {self.max_line_size} bytes")

        return raw.decode("utf-8")

    def lines(self) -> Iterator[str]:
        """Yield lines until the peer closes its side of the connection."""
        while True:
            line = self.read_line()
            if not line:
                return
            yield line

    # ─────────────────────────────────────────────────────────────────────
    # WRITING
    # ─────────────────────────────────────────────────────────────────────

    def write(self, data: bytes) -> None:
        """Buffer ``data`` for sending. Call flush() to push it out."""
        self.state = ConnectionState.WRITING
        if self._writer is None:
            self._writer = self.socket.makefile("wb")
        self._writer.write(data)

    def flush(self) -> None:
        """Send everything buffered by write()."""
        if self._writer is not None:
            self._writer.flush()

    # ─────────────────────────────────────────────────────────────────────
    # CLOSING
    # ─────────────────────────────────────────────────────────────────────

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR) sends FIN: the client sees end-of-response.
        2. Drain whatever the client still sends, so the close does not
           turn into a RST that could discard our response.
        3. close() releases the file descriptor.

        Never raises: at this point there is nothing useful left to do with
        a socket error.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        for stream in (self._writer, self._reader):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError:
                pass  # Unflushed data on a dead socket
        self._reader = self._writer = None

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Ensure the connection is closed; exceptions are not suppressed."""
        self.close()
        return False
