"""
=============================================================================
STRUCTURED EVENTS
=============================================================================

The server reports what it sees as flat JSON objects, one per line:

    {"local_addr": "0.0.0.0:3000"}
    {"peer_addr": "127.0.0.1:53122"}
    {"request_line": "GET / HTTP/1.1\\r\\n"}
    {"host": " example.com", "accept": " */*"}

The core only knows about EventSink.emit(record). Where the records end
up is decided by whoever builds the server:

    ┌──────────────┐  emit({...})  ┌──────────────┐  logger.info(json)  ┌────────┐
    │ handler /    │──────────────►│ JsonLogSink  │────────────────────►│ stdout │
    │ listener     │               └──────────────┘                     └────────┘
    └──────────────┘

JSON output goes through the standard ``logging`` module so it is
thread-safe and can be redirected like any other log stream.

=============================================================================
"""

import json
import logging
import sys
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional


EVENT_LOGGER_NAME = "ipecho.events"


class EventSink(ABC):
    """Receives one structured record per significant step."""

    @abstractmethod
    def emit(self, record: Mapping[str, Any]) -> None:
        """Publish a single record."""
        ...


class JsonLogSink(EventSink):
    """
    Serializes each record with ``json.dumps`` and logs it.

    Args:
        logger: Logger to write to. Defaults to the ``ipecho.events`` logger.
        level: Level records are logged at.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.logger = logger or logging.getLogger(EVENT_LOGGER_NAME)
        self.level = level

    def emit(self, record: Mapping[str, Any]) -> None:
        self.logger.log(self.level, json.dumps(dict(record), default=str))


def setup_logging(level: str = "INFO", stream=None) -> None:
    """
    Configure logging for the command-line server.

    Operational messages (listening, shutdown, connection failures) go to
    stderr with a timestamped format. Events go to ``stream`` (stdout by
    default) as bare JSON lines and do not propagate to the root logger.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("ipecho").setLevel(numeric_level)

    events = logging.getLogger(EVENT_LOGGER_NAME)
    for handler in list(events.handlers):
        events.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    events.addHandler(handler)
    events.setLevel(logging.INFO)
    events.propagate = False
