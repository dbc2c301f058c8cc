"""Bounded in-memory cache with per-entry TTL, FIFO eviction and thread safety."""

import time
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from datetime import timedelta

from config import CACHE_MAX_ENTRIES
from .base import CacheProvider


@dataclass
class CacheEntry:
    """One stored value. Valid while ``now - stored_at < ttl``."""

    key: str
    value: Any
    stored_at: float
    ttl: float  # seconds

    def is_valid(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


class InMemoryCache(CacheProvider):
    """Thread-safe in-memory cache with TTL (time-to-live) support.

    The store is capped at ``max_entries``. When an insert pushes it over
    the cap, the oldest-inserted entry is dropped first regardless of its
    TTL (FIFO, not LRU). Overwriting a key keeps its original insertion slot.
    Expired entries are removed lazily on the next lookup.
    """

    def __init__(
        self,
        default_ttl: timedelta,
        max_entries: int = CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            default_ttl: TTL applied when ``set`` is called without one
            max_entries: Capacity cap before FIFO eviction kicks in
            clock: Monotonic seconds source (injectable for tests)
        """
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._clock = clock
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        """Retrieve a value from cache, checking expiry.

        Args:
            key: Cache key

        Returns:
            Cached value if found and not expired, otherwise None
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None

            if not entry.is_valid(self._clock()):
                del self._entries[key]
                self.misses += 1
                return None

            self.hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        """Store a value, evicting the oldest-inserted entry when over capacity.

        Args:
            key: Cache key
            value: Value to store (must not be None)
            ttl: Time-to-live; if None, the cache's default TTL
        """
        if value is None:
            raise ValueError("None is the cache miss marker and cannot be stored")
        seconds = (ttl if ttl is not None else self._default_ttl).total_seconds()
        with self._lock:
            self._entries[key] = CacheEntry(key, value, self._clock(), seconds)
            while len(self._entries) > self._max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_matching(self, predicate: Callable[[str], bool]) -> int:
        """Drop every key for which *predicate* is true. Returns the count dropped."""
        with self._lock:
            doomed = [k for k in self._entries if predicate(k)]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def clear(self) -> None:
        """Clear all cached values."""
        with self._lock:
            self._entries.clear()

    def keys(self) -> List[str]:
        """Keys in insertion order (may include not-yet-collected expired entries)."""
        with self._lock:
            return list(self._entries)

    def size(self) -> int:
        """Return number of currently stored items (for monitoring)."""
        with self._lock:
            return len(self._entries)
