"""In-process TTL cache for Azure DevOps list responses."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheKey:
    resource: str
    params: str

    @classmethod
    def build(cls, resource: str, params: dict[str, Any] | None = None) -> "CacheKey":
        canonical = json.dumps(params or {}, sort_keys=True, default=str, separators=(",", ":"))
        return cls(resource=resource, params=canonical)


class ResponseCache:
    """Thread-safe map of CacheKey -> (expires_at, value).

    Entries are checked lazily on read; nothing expires in the background.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: dict[CacheKey, tuple[float, Any]] = {}
        self._lock = Lock()
        self._clock = clock

    def get(self, key: CacheKey) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                self._store.pop(key, None)
                return None
            return value

    def set(self, key: CacheKey, value: Any, *, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._store[key] = (self._clock() + ttl_seconds, value)

    def clear(self) -> int:
        with self._lock:
            count = len(self._store)
            self._store.clear()
        logger.info("Azure DevOps response cache cleared entries=%s", count)
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


response_cache = ResponseCache()
