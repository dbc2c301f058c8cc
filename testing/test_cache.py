"""
Tests for the bounded TTL stores and the hot/warm/cold tiers.

Usage:
    pytest testing/test_cache.py -v
"""

from datetime import timedelta

import pytest

from conftest import FakeClock
from core.cache import CacheTier, InMemoryCache, TieredCache


class TestInMemoryCache:
    """TTL expiry, FIFO eviction, miss marker."""

    def test_value_served_until_ttl_elapses(self):
        clock = FakeClock()
        cache = InMemoryCache(timedelta(seconds=15), clock=clock)
        cache.set("prices", {"BTC": 50000.0})

        clock.advance(14.9)
        assert cache.get("prices") == {"BTC": 50000.0}

        clock.advance(0.1)
        assert cache.get("prices") is None

    def test_expired_entry_removed_on_lookup(self):
        clock = FakeClock()
        cache = InMemoryCache(timedelta(seconds=1), clock=clock)
        cache.set("k", 1)
        clock.advance(2)

        assert cache.size() == 1
        assert cache.get("k") is None
        assert cache.size() == 0

    def test_per_entry_ttl_overrides_default(self):
        clock = FakeClock()
        cache = InMemoryCache(timedelta(seconds=60), clock=clock)
        cache.set("short", "x", timedelta(seconds=5))
        clock.advance(6)
        assert cache.get("short") is None

    def test_zero_ttl_is_not_the_default(self):
        cache = InMemoryCache(timedelta(seconds=60), clock=FakeClock())
        cache.set("k", 1, timedelta(0))
        assert cache.get("k") is None

    def test_fifo_eviction_drops_oldest_inserted(self):
        cache = InMemoryCache(timedelta(seconds=60), max_entries=3, clock=FakeClock())
        for key in ("a", "b", "c"):
            cache.set(key, key)
        cache.get("a")  # reads do not refresh position
        cache.set("d", "d")

        assert cache.keys() == ["b", "c", "d"]
        assert cache.get("a") is None

    def test_none_cannot_be_stored(self):
        cache = InMemoryCache(timedelta(seconds=60))
        with pytest.raises(ValueError):
            cache.set("k", None)

    def test_get_or_fetch_caches_result(self):
        cache = InMemoryCache(timedelta(seconds=60), clock=FakeClock())
        calls = []

        def fetch():
            calls.append(1)
            return ["BTCUSDT"]

        assert cache.get_or_fetch("symbols", fetch) == ["BTCUSDT"]
        assert cache.get_or_fetch("symbols", fetch) == ["BTCUSDT"]
        assert len(calls) == 1
        assert cache.hits == 1

    def test_get_or_fetch_skips_empty_fetch_and_failures(self):
        cache = InMemoryCache(timedelta(seconds=60), clock=FakeClock())

        assert cache.get_or_fetch("k", lambda: None) is None
        with pytest.raises(RuntimeError):
            cache.get_or_fetch("k", lambda: (_ for _ in ()).throw(RuntimeError("venue down")))

        assert cache.size() == 0
        assert cache.get_or_fetch("k", lambda: []) == []
        assert cache.get("k") == []

    def test_delete_reports_presence(self):
        cache = InMemoryCache(timedelta(seconds=60), clock=FakeClock())
        cache.set("k", 1)
        assert cache.delete("k") is True
        assert cache.delete("k") is False

    def test_delete_matching(self):
        cache = InMemoryCache(timedelta(seconds=60), clock=FakeClock())
        cache.set("order_data:open", 1)
        cache.set("order_data:history:50", 2)
        cache.set("symbols:spot", 3)

        assert cache.delete_matching(lambda k: k.startswith("order_data:")) == 2
        assert cache.keys() == ["symbols:spot"]


class TestTieredCache:
    """Independent tiers with their own TTL class."""

    def test_tiers_are_independent(self):
        cache = TieredCache(clock=FakeClock())
        cache.set(CacheTier.HOT, "k", "hot")
        cache.set(CacheTier.WARM, "k", "warm")

        assert cache.get(CacheTier.HOT, "k") == "hot"
        assert cache.get(CacheTier.WARM, "k") == "warm"
        assert cache.get(CacheTier.COLD, "k") is None

    def test_tier_default_ttls(self):
        clock = FakeClock()
        cache = TieredCache(clock=clock)
        cache.set(CacheTier.HOT, "prices", 1)
        cache.set(CacheTier.WARM, "orders", 2)
        cache.set(CacheTier.COLD, "symbols", 3)

        clock.advance(15)
        assert cache.get(CacheTier.HOT, "prices") is None
        assert cache.get(CacheTier.WARM, "orders") == 2

        clock.advance(45)
        assert cache.get(CacheTier.WARM, "orders") is None
        assert cache.get(CacheTier.COLD, "symbols") == 3

        clock.advance(240)
        assert cache.get(CacheTier.COLD, "symbols") is None

    def test_clear_single_tier(self):
        cache = TieredCache(clock=FakeClock())
        cache.set(CacheTier.HOT, "a", 1)
        cache.set(CacheTier.WARM, "b", 2)

        cache.clear(CacheTier.HOT)

        assert cache.get(CacheTier.HOT, "a") is None
        assert cache.get(CacheTier.WARM, "b") == 2

    def test_clear_all_tiers(self):
        cache = TieredCache(clock=FakeClock())
        for tier in CacheTier:
            cache.set(tier, "k", tier.value)

        cache.clear()

        assert cache.sizes() == {"hot": 0, "warm": 0, "cold": 0}

    def test_delete_prefix_only_touches_one_tier(self):
        cache = TieredCache(clock=FakeClock())
        cache.set(CacheTier.WARM, "order_data:open", 1)
        cache.set(CacheTier.HOT, "order_data:open", 1)

        assert cache.delete_prefix(CacheTier.WARM, "order_data:") == 1
        assert cache.get(CacheTier.HOT, "order_data:open") == 1
