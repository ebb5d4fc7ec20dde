"""
=============================================================================
IPECHO CLI ENTRY POINT
=============================================================================

    python -m ipecho                        # 0.0.0.0:3000, or HOST/PORT
    python -m ipecho --port 8000
    python -m ipecho --host 127.0.0.1
    python -m ipecho --timeout 10           # drop clients idle for 10s

Flags override environment variables, which override the defaults.

Exit codes:
    0   stopped by Ctrl+C / SIGTERM
    1   could not bind (or the accept loop failed)
    2   invalid configuration

=============================================================================
"""

import argparse
import logging
import sys

from . import __version__
from .config import ServerConfig
from .core import SocketServer
from .errors import ListenError
from .events import JsonLogSink, setup_logging


logger = logging.getLogger("ipecho")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ipecho",
        description="Answer every TCP connection with the client's IP address",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  HOST            Host to bind to (default: 0.0.0.0)
  PORT            Port to listen on (default: 3000)
  LOG_LEVEL       Logging level (default: INFO)
  IPECHO_TIMEOUT  Per-connection socket timeout in seconds (default: none)
        """
    )

    parser.add_argument("--host", "-H", help="Host to bind to (overrides HOST)")
    parser.add_argument("--port", "-p", type=int, help="Port to listen on (overrides PORT)")
    parser.add_argument("--backlog", type=int, help="Listen backlog (default: 128)")
    parser.add_argument(
        "--timeout", "-t",
        type=float,
        help="Per-connection socket timeout in seconds (default: none)",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides LOG_LEVEL)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"ipecho {__version__}",
    )
    return parser


def load_config(args: argparse.Namespace, environ=None) -> ServerConfig:
    """Environment first, then any flags given on the command line."""
    config = ServerConfig.from_env(environ)

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.backlog is not None:
        config.backlog = args.backlog
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.log_level is not None:
        config.log_level = args.log_level

    config.validate()
    return config


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except ValueError as e:
        parser.error(str(e))

    setup_logging(config.log_level)

    server = SocketServer(config, JsonLogSink())
    try:
        server.start()
    except ListenError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    return 0


if __name__ == "__main__":
    sys.exit(main())
