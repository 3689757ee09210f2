"""Bounded get-or-compute cache with per-entry expiry.

Values are computed by an async ``lookup`` callable. While a lookup for a key
is running, further ``get`` calls for the same key await that lookup instead
of starting another one. Failed lookups are never stored.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = logging.getLogger(__name__)


class TTLCache(Generic[K, V]):
    """LRU-evicting cache whose entries expire ``ttl_seconds`` after being stored."""

    def __init__(
        self,
        capacity: int,
        ttl_seconds: float,
        lookup: Callable[[K], Awaitable[V]],
        *,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._lookup = lookup
        self._clock = clock
        # key -> (value, expires_at); ordering tracks recency of use
        self._entries: "OrderedDict[K, Tuple[V, float]]" = OrderedDict()
        self._inflight: Dict[K, "asyncio.Future[V]"] = {}
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and entry[1] > self._clock()

    async def get(self, key: K) -> V:
        entry = self._entries.get(key)
        if entry is not None:
            value, expires_at = entry
            if expires_at > self._clock():
                self._entries.move_to_end(key)
                self._hits += 1
                return value
            del self._entries[key]

        pending = self._inflight.get(key)
        if pending is not None:
            self._hits += 1
            return await asyncio.shield(pending)

        self._misses += 1
        task = asyncio.ensure_future(self._lookup(key))
        self._inflight[key] = task
        task.add_done_callback(lambda t, k=key: self._settle(k, t))
        # Shielded so a cancelled caller does not cancel the lookup for other waiters
        return await asyncio.shield(task)

    def _settle(self, key: K, task: "asyncio.Future[V]") -> None:
        current = self._inflight.get(key) is task
        if current:
            del self._inflight[key]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug("%s lookup failed for %r: %s", self.name, key, error)
            return
        if not current:
            # Invalidated while the lookup was running; waiters still get the value
            logger.debug("%s dropped stale result for %r", self.name, key)
            return
        self._store(key, task.result())

    def _store(self, key: K, value: V) -> None:
        self._entries[key] = (value, self._clock() + self.ttl_seconds)
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("%s evicted %r", self.name, evicted)

    def set(self, key: K, value: V) -> None:
        """Store ``value`` directly, resetting its expiry."""
        self._store(key, value)

    def invalidate(self, key: K) -> bool:
        """Drop ``key``; a lookup already running for it will not be stored."""
        pending = self._inflight.pop(key, None)
        return self._entries.pop(key, None) is not None or pending is not None

    def invalidate_all(self) -> None:
        self._entries.clear()
        self._inflight.clear()

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "size": len(self._entries),
            "capacity": self.capacity,
            "ttl_seconds": self.ttl_seconds,
            "hits": self._hits,
            "misses": self._misses,
            "inflight": len(self._inflight),
        }
