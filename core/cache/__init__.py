"""Unified cache infrastructure: bounded TTL stores grouped into hot/warm/cold tiers."""

from .base import CacheProvider
from .memory import CacheEntry, InMemoryCache
from .tiered import CacheTier, TieredCache
from .config import (
    CACHE_TTL_HOT,
    CACHE_TTL_WARM,
    CACHE_TTL_COLD,
    CACHE_TTL_PRICES,
    CACHE_TTL_PORTFOLIO,
    CACHE_TTL_ORDERS,
    CACHE_TTL_SYMBOLS,
)

__all__ = [
    # Base interface
    "CacheProvider",
    # Implementations
    "CacheEntry",
    "InMemoryCache",
    "CacheTier",
    "TieredCache",
    # TTL constants
    "CACHE_TTL_HOT",
    "CACHE_TTL_WARM",
    "CACHE_TTL_COLD",
    "CACHE_TTL_PRICES",
    "CACHE_TTL_PORTFOLIO",
    "CACHE_TTL_ORDERS",
    "CACHE_TTL_SYMBOLS",
]
