"""Structured event sinks for executions and provider outcomes."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
import json
import logging
from pathlib import Path
import sys
from threading import Lock
import time
from typing import Any, Protocol, TextIO

PathLike = str | Path

LOGGER = logging.getLogger(__name__)


class EventLogger(Protocol):
    """Protocol for structured event loggers."""

    def emit(self, event_type: str, record: Mapping[str, Any]) -> None:
        """Persist ``record`` for ``event_type``."""


def _payload(event_type: str, record: Mapping[str, Any]) -> dict[str, Any]:
    payload = dict(record)
    payload.setdefault("event", event_type)
    payload.setdefault("ts", int(time.time() * 1000))
    return payload


class JsonlLogger:
    """Append events to a JSONL file, one object per line."""

    def __init__(self, path: PathLike) -> None:
        self._path = Path(path)
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def emit(self, event_type: str, record: Mapping[str, Any]) -> None:
        line = json.dumps(_payload(event_type, record), ensure_ascii=False, default=str)
        parent = self._path.parent
        if parent != Path(""):
            parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


class StdLogger:
    """Write events to a text stream as JSON lines."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stderr
        self._lock = Lock()

    def emit(self, event_type: str, record: Mapping[str, Any]) -> None:
        line = json.dumps(_payload(event_type, record), ensure_ascii=False, default=str)
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()


class CompositeLogger:
    """Fan out events to several loggers; one failing sink does not stop the rest."""

    def __init__(self, loggers: Iterable[EventLogger] | None = None) -> None:
        self._loggers: list[EventLogger] = list(loggers or ())
        self._lock = Lock()

    def add(self, logger: EventLogger) -> None:
        with self._lock:
            self._loggers.append(logger)

    def clear(self) -> None:
        with self._lock:
            self._loggers.clear()

    def __len__(self) -> int:
        return len(self._loggers)

    def emit(self, event_type: str, record: Mapping[str, Any]) -> None:
        with self._lock:
            loggers = tuple(self._loggers)

        for logger in loggers:
            try:
                logger.emit(event_type, record)
            except Exception:  # noqa: BLE001
                LOGGER.exception("event logger %r failed for %s", logger, event_type)


def safe_emit(logger: EventLogger | None, event_type: str, record: Mapping[str, Any]) -> None:
    """Emit through ``logger`` without letting sink errors reach the caller."""

    if logger is None:
        return
    try:
        logger.emit(event_type, record)
    except Exception:  # noqa: BLE001
        LOGGER.exception("event logger failed for %s", event_type)


__all__ = [
    "CompositeLogger",
    "EventLogger",
    "JsonlLogger",
    "StdLogger",
    "safe_emit",
]
