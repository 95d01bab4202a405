"""Progress reporting for long-running sync operations."""

from __future__ import annotations

import datetime as dt
import logging
import time
from threading import Lock
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class ProgressSink(Protocol):
    def initialize(self, service: str, operation: str, fields: dict[str, Any] | None = None) -> None: ...

    def update(self, service: str, operation: str, fields: dict[str, Any]) -> None: ...

    def complete(self, service: str, operation: str, fields: dict[str, Any] | None = None) -> None: ...

    def fail(self, service: str, operation: str, message: str) -> None: ...


class NullProgressSink:
    def initialize(self, service: str, operation: str, fields: dict[str, Any] | None = None) -> None:
        return None

    def update(self, service: str, operation: str, fields: dict[str, Any]) -> None:
        return None

    def complete(self, service: str, operation: str, fields: dict[str, Any] | None = None) -> None:
        return None

    def fail(self, service: str, operation: str, message: str) -> None:
        return None


class LoggingProgressSink:
    def initialize(self, service: str, operation: str, fields: dict[str, Any] | None = None) -> None:
        logger.info("[%s:%s] started %s", service, operation, fields or {})

    def update(self, service: str, operation: str, fields: dict[str, Any]) -> None:
        logger.info("[%s:%s] %s", service, operation, fields.get("message") or fields)

    def complete(self, service: str, operation: str, fields: dict[str, Any] | None = None) -> None:
        logger.info("[%s:%s] completed %s", service, operation, fields or {})

    def fail(self, service: str, operation: str, message: str) -> None:
        logger.error("[%s:%s] failed: %s", service, operation, message)


class InMemoryProgressSink:
    """Keeps the latest state per (service, operation) for polling clients.

    Entries older than `ttl_seconds` are dropped on access.
    """

    def __init__(self, *, ttl_seconds: float = 3600, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: dict[tuple[str, str], tuple[float, dict[str, Any]]] = {}
        self._lock = Lock()

    def _put(self, service: str, operation: str, record: dict[str, Any]) -> None:
        self._store[(service, operation)] = (self._clock(), record)

    def _live(self, service: str, operation: str) -> dict[str, Any] | None:
        entry = self._store.get((service, operation))
        if entry is None:
            return None
        stamp, record = entry
        if self._clock() - stamp > self.ttl_seconds:
            self._store.pop((service, operation), None)
            return None
        return record

    def initialize(self, service: str, operation: str, fields: dict[str, Any] | None = None) -> None:
        record = {
            "service": service,
            "operation": operation,
            "status": "running",
            "progress": 0,
            "message": None,
            "started_at": utcnow().isoformat(),
            "completed_at": None,
        }
        record.update(fields or {})
        with self._lock:
            self._put(service, operation, record)

    def update(self, service: str, operation: str, fields: dict[str, Any]) -> None:
        with self._lock:
            record = self._live(service, operation)
            if record is None:
                record = {"service": service, "operation": operation, "status": "running", "progress": 0}
            record = {**record, **fields}
            self._put(service, operation, record)

    def complete(self, service: str, operation: str, fields: dict[str, Any] | None = None) -> None:
        self.update(
            service,
            operation,
            {"status": "completed", "progress": 100, "completed_at": utcnow().isoformat(), **(fields or {})},
        )

    def fail(self, service: str, operation: str, message: str) -> None:
        self.update(
            service,
            operation,
            {"status": "failed", "message": message, "completed_at": utcnow().isoformat()},
        )

    def get(self, service: str, operation: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._live(service, operation)
            return dict(record) if record is not None else None


progress_store = InMemoryProgressSink()
