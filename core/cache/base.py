"""Contract shared by every cache tier store."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, TypeVar
from datetime import timedelta

T = TypeVar("T")


class CacheProvider(ABC):
    """Key/value store for venue responses with per-entry expiry.

    ``None`` doubles as the miss marker: ``get`` returns it for absent and
    expired keys alike, so a provider refuses to store it and
    ``get_or_fetch`` never caches an empty fetch. An empty venue answer
    should be cached as an empty list or dict instead.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Value for *key*, or None when absent or past its TTL.

        An expired entry is dropped by the lookup that finds it.
        """

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        """Store *value* under *key*.

        Args:
            key: Request-derived cache key (e.g. ``order_data:open``)
            value: Anything but None
            ttl: Lifetime of this entry; None means the store's default.
                ``timedelta(0)`` is a real TTL and expires immediately.
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Invalidate one key ahead of its TTL, e.g. after a mutation.

        Returns True only if a live or expired entry was removed.
        """

    @abstractmethod
    def clear(self) -> None:
        """Drop every entry in this store; hit/miss counters are kept."""

    def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], T],
        ttl: Optional[timedelta] = None,
    ) -> T:
        """Cached value for *key*, or the result of *fetch_fn* stored for *ttl*.

        Errors raised by *fetch_fn* propagate and nothing is stored, so a
        failed venue call is retried on the next read.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        value = fetch_fn()
        if value is not None:
            self.set(key, value, ttl)
        return value
