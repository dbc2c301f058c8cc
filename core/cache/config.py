"""Cache configuration: tier TTLs and TTL constants for different data types."""

from datetime import timedelta

from config import CACHE_COLD_SECONDS, CACHE_HOT_SECONDS, CACHE_WARM_SECONDS

# Tier defaults, picked by expected volatility of what is stored there
CACHE_TTL_HOT = timedelta(seconds=CACHE_HOT_SECONDS)
CACHE_TTL_WARM = timedelta(seconds=CACHE_WARM_SECONDS)
CACHE_TTL_COLD = timedelta(seconds=CACHE_COLD_SECONDS)

# Real-time market data and valuations (very volatile)
CACHE_TTL_PRICES = CACHE_TTL_HOT
CACHE_TTL_PORTFOLIO = CACHE_TTL_HOT

# Order lists (change when orders are placed, filled or canceled)
CACHE_TTL_ORDERS = CACHE_TTL_WARM

# Symbol metadata (rarely changes)
CACHE_TTL_SYMBOLS = CACHE_TTL_COLD
