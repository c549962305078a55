"""
Measurement event reporting.

The measurement core never writes to a global logger directly; it calls an
:class:`EventObserver` (``on_event(level, category, message, data)``).  The
default observer forwards to stdlib :mod:`logging`; :class:`EventLog` keeps
an in-memory ring buffer for later export.
"""
from __future__ import annotations

import json
import logging
import os
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Deque, Dict, List, Optional

LOGGER_NAME = "speedtest"
DEBUG_ENV = "SPEEDTEST_DEBUG"
MAX_LOG_ENTRIES = 1000

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


# ---------------------------------------------------------------------------
# Observer interface
# ---------------------------------------------------------------------------

class EventObserver:
    """Receives measurement events.  The base implementation ignores them."""

    def on_event(self, level: str, category: str, message: str, data: Any = None) -> None:
        pass


class LoggingObserver(EventObserver):
    """Forward events to ``speedtest.<category>`` loggers."""

    def on_event(self, level: str, category: str, message: str, data: Any = None) -> None:
        logger = logging.getLogger(f"{LOGGER_NAME}.{category}")
        if data is None:
            logger.log(_LEVELS.get(level, logging.INFO), message)
        else:
            logger.log(_LEVELS.get(level, logging.INFO), "%s %s", message, data)


@dataclass
class LogEntry:
    timestamp: float
    level: str
    category: str
    message: str
    data: Any = None


class EventLog(EventObserver):
    """Ring buffer of recent events, optionally forwarding to another observer."""

    def __init__(
        self,
        forward: Optional[EventObserver] = None,
        max_entries: int = MAX_LOG_ENTRIES,
    ) -> None:
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self._forward = forward

    def on_event(self, level: str, category: str, message: str, data: Any = None) -> None:
        self._entries.append(LogEntry(time.perf_counter(), level, category, message, data))
        if self._forward is not None:
            self._forward.on_event(level, category, message, data)

    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def export_json(self) -> str:
        return json.dumps([asdict(e) for e in self._entries], indent=2, default=str)

    def __len__(self) -> int:
        return len(self._entries)


def default_observer() -> EventObserver:
    return LoggingObserver()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def debug_enabled(flag: bool = False) -> bool:
    """``--debug`` or a truthy ``SPEEDTEST_DEBUG`` environment variable."""
    return flag or os.getenv(DEBUG_ENV, "").lower() in ("1", "true", "yes")


def setup_logging(debug: bool = False) -> logging.Logger:
    """Attach a single rich handler to the ``speedtest`` logger."""
    from rich.logging import RichHandler

    from . import __version__

    logger = logging.getLogger(LOGGER_NAME)
    level = logging.DEBUG if debug else logging.WARNING
    logger.setLevel(level)

    handler = RichHandler(show_path=False, rich_tracebacks=True, markup=False)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
    logger.handlers[:] = [handler]
    logger.propagate = False

    if debug:
        logger.debug("speedtest-tui v%s - debug logging enabled", __version__)
    return logger


def summarise(data: Dict[str, Any]) -> Dict[str, Any]:
    """Round float values so event payloads stay readable."""
    return {k: round(v, 3) if isinstance(v, float) else v for k, v in data.items()}
