# termflex/cache.py
"""
Thread-safe LRU cache with TTL and statistics.

Used by the expression cache: entries are keyed by raw expression text,
expire after ``ttl_seconds`` and are evicted least-recently-used first
once ``max_size`` is reached. Deferred work may populate it from outside
the main loop, so every operation holds a short lock.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

T = TypeVar("T")


@dataclass
class Stats:
    """Cache statistics."""

    size: int = 0
    max_size: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": self.hit_rate,
        }


class LRUCache(Generic[T]):
    """
    LRU cache with optional TTL expiration.

    >>> cache = LRUCache(max_size=2, ttl_seconds=60)
    >>> cache.set("a", 1)
    >>> cache.get("a")
    1
    """

    def __init__(
        self,
        max_size: int = 1024,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[T, float]]" = OrderedDict()
        self._stats = Stats(max_size=max_size)
        self._lock = threading.Lock()

    def _is_expired(self, timestamp: float) -> bool:
        if self.ttl_seconds is None:
            return False
        return self._clock() - timestamp >= self.ttl_seconds

    def get(self, key: str) -> Optional[T]:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return None
            value, timestamp = entry
            if self._is_expired(timestamp):
                del self._entries[key]
                self._stats.size = len(self._entries)
                self._stats.misses += 1
                return None
            self._entries.move_to_end(key)
            self._stats.hits += 1
            return value

    def set(self, key: str, value: T) -> None:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            self._entries[key] = (value, self._clock())
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
                self._stats.evictions += 1
            self._stats.size = len(self._entries)

    def get_or_set(self, key: str, factory: Callable[[], T]) -> T:
        """
        Return the cached value or build, store and return a new one.

        The factory runs outside the lock; a concurrent build of the same key
        simply stores the later result.
        """
        value = self.get(key)
        if value is not None:
            return value
        value = factory()
        self.set(key, value)
        return value

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
                self._stats.size = len(self._entries)
                return True
            return False

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._stats.size = 0

    def stats(self) -> Stats:
        """A snapshot of the counters."""
        with self._lock:
            return replace(self._stats, size=len(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        # Does not refresh LRU order.
        return key in self._entries


__all__ = ["LRUCache", "Stats"]
