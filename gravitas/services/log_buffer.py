"""
gravitas.services.log_buffer — In-Memory Ring Buffer for Monitoring
====================================================================

A bounded, thread-safe buffer plugged into Python's ``logging``.  The
admin monitoring endpoint reads it with :func:`get_logs` and empties it
with :func:`clear`.  One buffer per process; nothing is persisted.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

DEFAULT_CAPACITY = 2000
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
CAPTURED_LOGGERS = ("gravitas", "uvicorn", "uvicorn.access", "fastapi")

_buffer: LogBuffer | None = None
_lock = threading.Lock()


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: str
    level: str
    logger: str
    message: str


class LogBuffer:
    """Ring buffer backed by :class:`collections.deque`."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self, tail: int = 200, level: str | None = None) -> list[dict[str, str]]:
        """The newest *tail* entries at or above *level*, oldest first."""
        min_level = logging.getLevelName(level.upper()) if level else 0
        if not isinstance(min_level, int):
            raise ValueError(f"Invalid level: {level}. Must be one of {VALID_LEVELS}")

        with self._lock:
            snapshot = list(self._entries)

        results = [
            asdict(e) for e in snapshot
            if logging.getLevelName(e.level) >= min_level
        ]
        if tail and len(results) > tail:
            results = results[-tail:]
        return results

    def clear(self) -> int:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RingBufferHandler(logging.Handler):
    """Logging handler that appends records to a :class:`LogBuffer`."""

    def __init__(self, buffer: LogBuffer, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._buffer.append(LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                level=record.levelname,
                logger=record.name,
                message=self.format(record),
            ))
        except Exception:
            self.handleError(record)


# ---------------------------------------------------------------------------
# Process-global access
# ---------------------------------------------------------------------------
def get_buffer() -> LogBuffer:
    global _buffer
    if _buffer is None:
        with _lock:
            if _buffer is None:
                _buffer = LogBuffer()
    return _buffer


def install_handler(level: int = logging.INFO) -> RingBufferHandler:
    """Attach a ring-buffer handler to each captured logger (idempotent).

    Uvicorn configures its own loggers without propagation, so the handler
    goes on each of them rather than on the root logger.
    """
    buf = get_buffer()
    for name in CAPTURED_LOGGERS:
        log = logging.getLogger(name)
        for existing in log.handlers:
            if isinstance(existing, RingBufferHandler):
                handler = existing
                break
        else:
            handler = RingBufferHandler(buf, level=level)
            handler.setFormatter(logging.Formatter("%(message)s"))
            log.addHandler(handler)
        if log.level == logging.NOTSET or log.level > level:
            log.setLevel(level)
    return handler


def get_logs(tail: int = 200, level: str | None = None) -> list[dict[str, str]]:
    return get_buffer().entries(tail=tail, level=level)


def clear() -> int:
    """Empty the buffer; returns how many entries were dropped."""
    return get_buffer().clear()
