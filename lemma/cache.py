"""Process-wide response cache.

Built once by the app factory and shared by the resolver, search and login
lookups.  Entries only ever leave through TTL expiry: writes never invalidate
cached chains, so a chain may be stale for up to one TTL window.

:class:`TTLCache` keeps its own copy of every value and hands out a fresh
copy on each hit, so callers are free to mutate what they get back.
"""

from __future__ import annotations

import copy
import threading
import time
from typing import Any, Callable, Optional, Protocol

# Expired entries are swept once every this many ``set`` calls.
PURGE_EVERY = 128


class ResponseCache(Protocol):
    ttl: float

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None: ...


class TTLCache:
    """Dict-backed cache whose entries expire *ttl* seconds after being set.

    Expired entries are dropped when read, and swept in bulk every
    *purge_every* writes.
    """

    def __init__(
        self,
        ttl: float,
        clock: Callable[[], float] = time.monotonic,
        purge_every: int = PURGE_EVERY,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive; use NullCache to disable caching")
        if purge_every < 1:
            raise ValueError("purge_every must be at least 1")
        self.ttl = ttl
        self.purge_every = purge_every
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, Any]] = {}
        self._sets = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
        return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        expires_at = self._clock() + (self.ttl if ttl is None else ttl)
        value = copy.deepcopy(value)
        with self._lock:
            self._entries[key] = (expires_at, value)
            self._sets += 1
            if self._sets >= self.purge_every:
                self._sets = 0
                self._purge_expired()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]


class NullCache:
    """Pass-through cache used when caching is disabled."""

    ttl = 0.0

    def get(self, key: str) -> Optional[Any]:
        return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        return None


def make_cache(ttl: float) -> ResponseCache:
    """Return a :class:`TTLCache`, or a :class:`NullCache` when *ttl* is zero."""
    if ttl > 0:
        return TTLCache(ttl)
    return NullCache()
