"""
Batched market-data aggregation.

Turns N per-asset price lookups into one bulk ticker call, falling back to
a bounded number of individual lookups when the bulk call fails.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Set

from config import (
    MIN_TRACKED_BALANCE,
    PRICE_BATCH_LIMIT,
    PRICE_FALLBACK_LIMIT,
    PRICE_FALLBACK_WORKERS,
    PRICE_FLUSH_INTERVAL_SECONDS,
    QUOTE_ASSET,
    STABLE_ASSETS,
    TRACKED_ASSETS,
)
from core.batching import BatchTicker
from core.cache import CACHE_TTL_PRICES, CacheTier, TieredCache
from core.models import Balance
from core.venue.errors import VenueError
from core.venue.gateway import VenueGateway
from core.venue.market_data import get_ticker_price, get_ticker_prices

LATEST_PRICES_KEY = "latest_batch_prices"
PRICES_KEY_PREFIX = "batch_prices:"


def collect_assets(
    balances: Iterable[Balance],
    tracked: Iterable[str] = TRACKED_ASSETS,
    stable: Iterable[str] = STABLE_ASSETS,
    min_balance: float = MIN_TRACKED_BALANCE,
) -> List[str]:
    """
    Assets worth pricing: the always-tracked majors first, then every
    non-stable asset holding more than *min_balance*, largest holding first.
    """
    stable_set = set(stable)
    assets = [a for a in tracked if a not in stable_set]
    held = sorted(
        (b for b in balances if b.total > min_balance and b.asset not in stable_set),
        key=lambda b: b.total,
        reverse=True,
    )
    for balance in held:
        if balance.asset not in assets:
            assets.append(balance.asset)
    return assets


class PriceAggregator:
    """Asset → price lookups against the bulk ticker, cached at the hot tier."""

    def __init__(
        self,
        gateway: VenueGateway,
        cache: TieredCache,
        quote_asset: str = QUOTE_ASSET,
        batch_limit: int = PRICE_BATCH_LIMIT,
        fallback_limit: int = PRICE_FALLBACK_LIMIT,
        fallback_workers: int = PRICE_FALLBACK_WORKERS,
        flush_interval: float = PRICE_FLUSH_INTERVAL_SECONDS,
    ):
        self._gateway = gateway
        self._cache = cache
        self._quote = quote_asset
        self._batch_limit = batch_limit
        self._fallback_limit = fallback_limit
        self._fallback_workers = fallback_workers
        self._pending: Set[str] = set()
        self._pending_lock = threading.Lock()
        self._ticker = BatchTicker("prices", flush_interval, self.flush)

    # ── Direct lookups ───────────────────────────────────────────────────────

    def get_prices(self, assets: Iterable[str]) -> Dict[str, float]:
        """
        Price map for *assets* in the quote asset.

        Assets with no price are simply absent from the map. Never raises for
        a venue failure: the worst case is an empty map.
        """
        wanted = []
        for asset in assets:
            asset = asset.upper()
            if asset and asset != self._quote and asset not in wanted:
                wanted.append(asset)
        if not wanted:
            return {}

        cache_key = PRICES_KEY_PREFIX + ",".join(sorted(wanted))
        cached = self._cache.get(CacheTier.HOT, cache_key)
        if cached is not None:
            return cached

        try:
            prices = self._fetch_bulk(wanted[: self._batch_limit])
        except VenueError as e:
            print(f"[PRICES] Batch price fetch failed ({e}), using individual calls as fallback")
            prices = self._fetch_individually(wanted)

        if prices:
            self._cache.set(CacheTier.HOT, cache_key, prices, CACHE_TTL_PRICES)
        return prices

    def _fetch_bulk(self, assets: List[str]) -> Dict[str, float]:
        symbols = [f"{asset}{self._quote}" for asset in assets]
        tickers = get_ticker_prices(self._gateway, symbols)

        wanted = set(assets)
        price_map: Dict[str, float] = {}
        for ticker in tickers:
            symbol = str(ticker.get("symbol", ""))
            if not symbol.endswith(self._quote):
                continue
            asset = symbol[: -len(self._quote)]
            try:
                price = float(ticker.get("price", 0))
            except (TypeError, ValueError):
                continue
            if asset in wanted and price > 0:
                price_map[asset] = price
        return price_map

    def _fetch_individually(self, assets: List[str]) -> Dict[str, float]:
        # Capped in count and parallelism so a bulk outage doesn't multiply into a rate-limit ban
        subset = assets[: self._fallback_limit]
        price_map: Dict[str, float] = {}

        def fetch_one(asset: str) -> Optional[float]:
            try:
                return get_ticker_price(self._gateway, f"{asset}{self._quote}")
            except (VenueError, KeyError, TypeError, ValueError) as e:
                print(f"[PRICES] Failed to fetch price for {asset}: {e}")
                return None

        with ThreadPoolExecutor(max_workers=self._fallback_workers, thread_name_prefix="price") as pool:
            for asset, price in zip(subset, pool.map(fetch_one, subset)):
                if price is not None and price > 0:
                    price_map[asset] = price
        return price_map

    # ── Batch queue ──────────────────────────────────────────────────────────

    def request_prices(self, assets: Iterable[str]) -> None:
        """Queue assets for the next batch flush."""
        with self._pending_lock:
            self._pending.update(a.upper() for a in assets)

    def flush(self) -> Dict[str, float]:
        """Resolve every queued asset in one lookup and publish the result."""
        with self._pending_lock:
            if not self._pending:
                return {}
            assets = sorted(self._pending)
            self._pending.clear()
        prices = self.get_prices(assets)
        if prices:
            self._cache.set(CacheTier.HOT, LATEST_PRICES_KEY, prices, CACHE_TTL_PRICES)
        return prices

    def latest_prices(self) -> Dict[str, float]:
        """Result of the most recent flush, or {} once it has expired."""
        return self._cache.get(CacheTier.HOT, LATEST_PRICES_KEY) or {}

    def start(self) -> None:
        self._ticker.start()

    def stop(self) -> None:
        self._ticker.stop()
