"""Three-tier (hot/warm/cold) cache used by the request-optimisation layer."""

import time
from enum import Enum
from typing import Any, Callable, Dict, Optional
from datetime import timedelta

from config import CACHE_MAX_ENTRIES
from .config import CACHE_TTL_COLD, CACHE_TTL_HOT, CACHE_TTL_WARM
from .memory import InMemoryCache


class CacheTier(str, Enum):
    HOT = "hot"     # prices, portfolio valuation
    WARM = "warm"   # order lists
    COLD = "cold"   # rarely changing metadata


_TIER_TTLS = {
    CacheTier.HOT: CACHE_TTL_HOT,
    CacheTier.WARM: CACHE_TTL_WARM,
    CacheTier.COLD: CACHE_TTL_COLD,
}


class TieredCache:
    """Independent bounded stores, one per TTL class.

    There is no promotion or demotion between tiers: callers pick the tier
    explicitly when reading and writing.
    """

    def __init__(
        self,
        max_entries: int = CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._tiers: Dict[CacheTier, InMemoryCache] = {
            tier: InMemoryCache(ttl, max_entries=max_entries, clock=clock)
            for tier, ttl in _TIER_TTLS.items()
        }

    def tier(self, tier: CacheTier) -> InMemoryCache:
        return self._tiers[CacheTier(tier)]

    def get(self, tier: CacheTier, key: str) -> Optional[Any]:
        return self.tier(tier).get(key)

    def set(self, tier: CacheTier, key: str, value: Any, ttl: Optional[timedelta] = None) -> None:
        self.tier(tier).set(key, value, ttl)

    def get_or_fetch(self, tier: CacheTier, key: str, fetch_fn: Callable[[], Any],
                     ttl: Optional[timedelta] = None) -> Any:
        return self.tier(tier).get_or_fetch(key, fetch_fn, ttl)

    def delete(self, tier: CacheTier, key: str) -> bool:
        return self.tier(tier).delete(key)

    def delete_prefix(self, tier: CacheTier, prefix: str) -> int:
        return self.tier(tier).delete_matching(lambda k: k.startswith(prefix))

    def clear(self, tier: Optional[CacheTier] = None) -> None:
        """Clear one tier, or every tier when *tier* is None."""
        if tier is not None:
            self.tier(tier).clear()
            return
        for store in self._tiers.values():
            store.clear()
        print("[CACHE] All tiers cleared")

    def sizes(self) -> Dict[str, int]:
        return {tier.value: store.size() for tier, store in self._tiers.items()}

    def hit_count(self) -> int:
        return sum(store.hits for store in self._tiers.values())
