"""
devpulse.engine.cache — Stats Cache Service with Injectable Backend
=====================================================================

An explicit get/set/invalidate cache for derived read models (range
queries, trophy lists).  The backing store is injected, so there is no
hidden process-global state: the API builds one ``StatsCache`` through a
dependency, tests build their own with a fake clock.

The cache holds *closed-day* data only.  The open civil day is always
computed live by the range service and never stored here.

Usage::

    cache = StatsCache(MemoryBackend(), default_ttl=300)
    days = cache.get_or_set(key, lambda: load_days(...))
    cache.invalidate_prefix(member_prefix(member_id))
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class CacheBackend(Protocol):
    """Storage behind :class:`StatsCache` (in-memory map, Redis, …)."""

    def get(self, key: str) -> Any: ...
    def set(self, key: str, value: Any, ttl: float) -> None: ...
    def delete(self, key: str) -> None: ...
    def keys(self) -> list[str]: ...
    def clear(self) -> None: ...


class MemoryBackend:
    """Thread-safe in-memory map with per-entry expiry.

    ``clock`` defaults to :func:`time.monotonic`; tests pass a fake.
    Returns the module-level ``_MISSING`` sentinel on a miss so cached
    ``None`` values stay distinguishable.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        # key → (expires_at, value)
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return _MISSING
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return _MISSING
            return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (exp, _) in self._entries.items() if exp <= now]
            for k in expired:
                del self._entries[k]
        return len(expired)


class StatsCache:
    """Keyed cache facade over a :class:`CacheBackend`."""

    def __init__(self, backend: CacheBackend, default_ttl: float = 300.0) -> None:
        self._backend = backend
        self.default_ttl = default_ttl
        self.hits = 0
        self.misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        value = self._backend.get(key)
        if value is _MISSING:
            self.misses += 1
            return default
        self.hits += 1
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._backend.set(key, value, self.default_ttl if ttl is None else ttl)

    def get_or_set(self, key: str, loader: Callable[[], T], ttl: float | None = None) -> T:
        """Return the cached value for *key*, loading and storing it on a miss."""
        value = self._backend.get(key)
        if value is not _MISSING:
            self.hits += 1
            return value
        self.misses += 1
        value = loader()
        self.set(key, value, ttl)
        return value

    def invalidate(self, key: str) -> None:
        self._backend.delete(key)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with *prefix*; returns the count."""
        doomed = [k for k in self._backend.keys() if k.startswith(prefix)]
        for k in doomed:
            self._backend.delete(k)
        if doomed:
            logger.debug("Cache: invalidated %d keys under %r", len(doomed), prefix)
        return len(doomed)

    def clear(self) -> None:
        self._backend.clear()

    def stats(self) -> dict[str, int]:
        return {"size": len(self._backend.keys()), "hits": self.hits, "misses": self.misses}


# ---------------------------------------------------------------------------
# Key helpers — every per-member key starts with member_prefix()
# ---------------------------------------------------------------------------
# ``version`` fingerprints the rows a value was built from.  Rows rewritten by
# another process change it, so stale entries are never hit.
def member_prefix(member_id: str) -> str:
    return f"member:{member_id}:"


def days_key(member_id: str, start: object, end: object, version: str | None = None) -> str:
    key = f"{member_prefix(member_id)}days:{start}:{end}"
    return f"{key}:{version}" if version else key


def trophies_key(member_id: str, version: str | None = None) -> str:
    key = f"{member_prefix(member_id)}trophies"
    return f"{key}:{version}" if version else key
