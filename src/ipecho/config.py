"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Configuration is resolved ONCE at startup, outside the core, and handed to
the listener as a ServerConfig. Nothing inside ``ipecho.core`` reads the
environment.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    Priority (highest to lowest):

    1. Command-line arguments      python -m ipecho --port 8000
    2. Environment variables       PORT=8000 python -m ipecho
    3. Default values              0.0.0.0:3000

    ┌────────────────┬──────────────────┬──────────────────────────────┐
    │ Variable       │ Default          │ Meaning                      │
    ├────────────────┼──────────────────┼──────────────────────────────┤
    │ HOST           │ 0.0.0.0          │ Interface to bind            │
    │ PORT           │ 3000             │ Port to bind                 │
    │ LOG_LEVEL      │ INFO             │ Operational log verbosity    │
    │ IPECHO_TIMEOUT │ (none)           │ Per-connection I/O timeout   │
    └────────────────┴──────────────────┴──────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = "3000"


def get_local_addr(environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Resolve the bind address from HOST and PORT.

    Each value falls back to its default independently, and the two are
    joined as "host:port":

        get_local_addr({})                                   → "0.0.0.0:3000"
        get_local_addr({"HOST": "127.0.0.1", "PORT": "8000"}) → "127.0.0.1:8000"

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.
    """
    if environ is None:
        environ = os.environ
    host = environ.get("HOST", DEFAULT_HOST)
    port = environ.get("PORT", DEFAULT_PORT)
    return f"{host}:{port}"


@dataclass
class ServerConfig:
    """
    Configuration for the listener and its connection handlers.

    Development:
        ServerConfig(host="127.0.0.1", port=8000, log_level="DEBUG")

    Containers:
        ServerConfig.from_env()    # binds 0.0.0.0:3000 unless overridden
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = DEFAULT_HOST
    """Interface to bind. "0.0.0.0" listens on every IPv4 interface."""

    port: int = int(DEFAULT_PORT)
    """Port to bind. 0 lets the OS pick a free port (handy in tests)."""

    backlog: int = 128
    """Maximum number of connections queued by the kernel before accept()."""

    timeout: Optional[float] = None
    """
    Socket timeout for each accepted connection, in seconds.
    None = no timeout: a peer that stalls mid-headers keeps its
    connection thread alive until it goes away.
    """

    max_line_size: int = 64 * 1024
    """Longest request or header line accepted, terminator included."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Level for operational logs (DEBUG, INFO, WARNING, ERROR)."""

    @property
    def bind_address(self) -> str:
        """The "host:port" string the listener binds to."""
        return f"{self.host}:{self.port}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Create configuration from environment variables.

        Raises:
            ValueError: If PORT or IPECHO_TIMEOUT is not a number.
        """
        if environ is None:
            environ = os.environ

        host, _, port = get_local_addr(environ).rpartition(":")
        timeout = environ.get("IPECHO_TIMEOUT")

        try:
            port_number = int(port)
        except ValueError:
            raise ValueError(f"Invalid PORT: {port!r}. Must be an integer.") from None

        return cls(
            host=host,
            port=port_number,
            timeout=float(timeout) if timeout else None,
            log_level=environ.get("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called at startup so a bad value fails fast instead of surfacing
        on the first connection.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.max_line_size < 2:
            raise ValueError("max_line_size must be >= 2")
