"""
Snapshot building: raw venue responses → normalised account view and order lists.

Every data source is fetched independently; only the valuation path (spot
or derivatives account) and the open-order list are critical. History
sources degrade to empty lists.
"""

import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from config import (
    BASELINE_STABLE_ASSETS,
    HISTORY_LIMIT,
    ORDER_FLUSH_INTERVAL_SECONDS,
    STABLE_ASSETS,
)
from core.batching import BatchTicker
from core.cache import CACHE_TTL_ORDERS, CACHE_TTL_PORTFOLIO, CacheTier, TieredCache
from core.models import (
    AccountSnapshot,
    Balance,
    DerivativePosition,
    HistoryData,
    IncomeRecord,
    OrderData,
    OrderRecord,
    TradeRecord,
)
from core.orchestrator import FanOut, SourceConfig
from core.prices import PriceAggregator, collect_assets
from core.venue import account as account_api
from core.venue import orders as orders_api
from core.venue.endpoints import MarketSegment
from core.venue.gateway import VenueGateway

PORTFOLIO_KEY = "portfolio_data"
OPEN_ORDERS_KEY = "order_data:open"
HISTORY_KEY_PREFIX = "order_data:history:"


# ── Valuation rules ──────────────────────────────────────────────────────────


def spot_value(
    balances: Iterable[Balance],
    prices: Dict[str, float],
    stable_assets: Iterable[str] = STABLE_ASSETS,
) -> float:
    """Stable assets count 1:1; everything else is quantity × price (0 if unpriced)."""
    stable = set(stable_assets)
    total = 0.0
    for balance in balances:
        if balance.asset in stable:
            total += balance.total
        else:
            total += balance.total * prices.get(balance.asset, 0.0)
    return total


def baseline_value(
    balances: Iterable[Balance],
    derivatives_account: Optional[Dict[str, Any]] = None,
    stable_assets: Iterable[str] = BASELINE_STABLE_ASSETS,
) -> float:
    """Stablecoin-only valuation across spot and derivatives wallets. Needs no prices."""
    stable = set(stable_assets)
    total = sum(b.total for b in balances if b.asset in stable)
    for asset in (derivatives_account or {}).get("assets", []) or []:
        if asset.get("asset") in stable:
            try:
                total += float(asset.get("walletBalance", 0))
            except (TypeError, ValueError):
                continue
    return total


def derivatives_unrealized_pnl(derivatives_account: Optional[Dict[str, Any]]) -> float:
    """
    Account-level unrealised P&L. The venue aggregate wins when present;
    otherwise it is summed from every position with non-zero size.
    """
    if not derivatives_account:
        return 0.0
    aggregate = derivatives_account.get("totalUnrealizedProfit")
    if aggregate not in (None, ""):
        try:
            return float(aggregate)
        except (TypeError, ValueError):
            pass
    total = 0.0
    for position in derivatives_account.get("positions", []) or []:
        try:
            if float(position.get("positionAmt", 0) or 0) != 0:
                total += float(position.get("unrealizedProfit", 0) or 0)
        except (TypeError, ValueError):
            continue
    return total


def active_positions(rows: Iterable[Dict[str, Any]]) -> List[DerivativePosition]:
    positions = [DerivativePosition.from_venue(row) for row in rows or []]
    return [p for p in positions if p.size != 0]


def _newest_first(orders: List[OrderRecord]) -> List[OrderRecord]:
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(orders, key=lambda o: o.submitted_at or epoch, reverse=True)


_HISTORY_PARSERS: Dict[str, Callable[[List[Dict[str, Any]]], list]] = {
    "order_history": lambda rows: _newest_first([OrderRecord.from_venue(o, "derivatives") for o in rows]),
    "trade_history": lambda rows: [TradeRecord.from_venue(t) for t in rows],
    "funding_history": lambda rows: [IncomeRecord.from_venue(i) for i in rows],
    "transaction_history": lambda rows: [IncomeRecord.from_venue(i) for i in rows],
    "positions": active_positions,
}


# ── Builder ──────────────────────────────────────────────────────────────────


class SnapshotBuilder:
    """Composes AccountSnapshot / OrderData / HistoryData from venue calls."""

    def __init__(
        self,
        gateway: VenueGateway,
        cache: TieredCache,
        prices: PriceAggregator,
        fan_out: Optional[FanOut] = None,
        history_limit: int = HISTORY_LIMIT,
        order_flush_interval: float = ORDER_FLUSH_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._gateway = gateway
        self._cache = cache
        self._prices = prices
        self._fan_out = fan_out or FanOut()
        self._history_limit = history_limit
        self._clock = clock
        self._orders_requested = threading.Event()
        self.on_orders: Optional[Callable[[OrderData], None]] = None  # called after each order flush
        self._order_ticker = BatchTicker("orders", order_flush_interval, self.flush_order_requests)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    # ── Critical: valuation ─────────────────────────────────────────────────

    def build_account_snapshot(self) -> AccountSnapshot:
        """
        Spot + derivatives accounts in parallel, one batched price lookup,
        then valuation. Raises only when both account sources fail.
        """
        cached = self._cache.get(CacheTier.HOT, PORTFOLIO_KEY)
        if cached is not None:
            return cached

        fetched = self._fan_out.execute_parallel([
            SourceConfig("spot_account", lambda: account_api.get_account(self._gateway)),
            SourceConfig("derivatives_account",
                         lambda: account_api.get_derivatives_account(self._gateway)),
        ])
        if not fetched.ok("spot_account") and not fetched.ok("derivatives_account"):
            raise fetched.errors["spot_account"]

        spot = fetched["spot_account"] if fetched.ok("spot_account") else None
        derivatives = fetched["derivatives_account"] if fetched.ok("derivatives_account") else None
        snapshot = self.compose_snapshot(spot, derivatives)
        self._cache.set(CacheTier.HOT, PORTFOLIO_KEY, snapshot, CACHE_TTL_PORTFOLIO)
        return snapshot

    def compose_snapshot(
        self,
        spot: Optional[Dict[str, Any]],
        derivatives: Optional[Dict[str, Any]],
    ) -> AccountSnapshot:
        balances = [Balance.from_venue(b) for b in (spot or {}).get("balances", []) or []]
        balances = [b for b in balances if b.asset and b.total > 0]
        price_map = self._prices.get_prices(collect_assets(balances))

        derivatives_wallet = 0.0
        positions: List[DerivativePosition] = []
        if derivatives:
            try:
                derivatives_wallet = float(derivatives.get("totalWalletBalance", 0) or 0)
            except (TypeError, ValueError):
                derivatives_wallet = 0.0
            positions = active_positions(derivatives.get("positions", []))

        snapshot = AccountSnapshot(
            balances=balances,
            positions=positions,
            prices=price_map,
            spot_value=spot_value(balances, price_map),
            derivatives_value=derivatives_wallet,
            baseline_value=baseline_value(balances, derivatives),
            unrealized_pnl=derivatives_unrealized_pnl(derivatives),
            can_trade=bool((spot or {}).get("canTrade", False)),
            spot_available=spot is not None,
            derivatives_available=derivatives is not None,
            last_updated=self._now(),
        )
        print(
            f"[SNAPSHOT] spot=${snapshot.spot_value:,.2f} derivatives=${snapshot.derivatives_value:,.2f} "
            f"baseline=${snapshot.baseline_value:,.2f} priced={len(price_map)}"
        )
        return snapshot

    # ── Critical: open orders ───────────────────────────────────────────────

    def fetch_open_orders(self) -> OrderData:
        """Spot + derivatives open orders, newest first. Raises only if both fail."""
        cached = self._cache.get(CacheTier.WARM, OPEN_ORDERS_KEY)
        if cached is not None:
            return cached

        fetched = self._fan_out.execute_parallel([
            SourceConfig("spot_open_orders",
                         lambda: orders_api.get_open_orders(self._gateway, MarketSegment.SPOT), []),
            SourceConfig("derivatives_open_orders",
                         lambda: orders_api.get_open_orders(self._gateway, MarketSegment.DERIVATIVES), []),
        ])
        if not fetched.ok("spot_open_orders") and not fetched.ok("derivatives_open_orders"):
            raise fetched.errors["spot_open_orders"]

        orders = [OrderRecord.from_venue(o, "spot") for o in fetched["spot_open_orders"] or []]
        orders += [OrderRecord.from_venue(o, "derivatives") for o in fetched["derivatives_open_orders"] or []]
        data = OrderData(open_orders=_newest_first(orders), last_updated=self._now())
        self._cache.set(CacheTier.WARM, OPEN_ORDERS_KEY, data, CACHE_TTL_ORDERS)
        return data

    # ── Secondary: history ──────────────────────────────────────────────────

    def fetch_history(
        self,
        limit: Optional[int] = None,
        on_update: Optional[Callable[[str, list], None]] = None,
    ) -> HistoryData:
        """
        Every history source independently; a failing one yields an empty list.

        *on_update* receives (field name, parsed list) as each source settles,
        so a caller can publish lists before the slowest source answers.
        """
        limit = limit or self._history_limit
        cache_key = f"{HISTORY_KEY_PREFIX}{limit}"
        cached = self._cache.get(CacheTier.WARM, cache_key)
        if cached is not None:
            return cached

        g = self._gateway
        parsed: Dict[str, list] = {}

        def settle(name: str, rows: Any) -> None:
            parsed[name] = _HISTORY_PARSERS[name](rows or [])
            if on_update is not None:
                on_update(name, parsed[name])

        fetched = self._fan_out.execute_parallel([
            SourceConfig("order_history", lambda: orders_api.get_order_history(g, limit=limit), []),
            SourceConfig("trade_history", lambda: orders_api.get_trade_history(g, limit=limit), []),
            SourceConfig("funding_history", lambda: orders_api.get_funding_fee_history(g, limit=limit), []),
            SourceConfig("transaction_history", lambda: orders_api.get_income_history(g, limit=limit), []),
            SourceConfig("positions", lambda: account_api.get_position_risk(g), []),
        ], on_result=settle)

        history = HistoryData(last_updated=self._now(), **parsed)
        if not fetched.failures:
            self._cache.set(CacheTier.WARM, cache_key, history, CACHE_TTL_ORDERS)
        return history

    # ── Cache control & batching ────────────────────────────────────────────

    def clear_order_caches(self) -> None:
        """Drop order lists and the composed portfolio; prices stay cached."""
        self._cache.delete_prefix(CacheTier.WARM, "order_data:")
        self._cache.delete(CacheTier.HOT, PORTFOLIO_KEY)

    def request_order_refresh(self) -> None:
        """Ask the next order flush tick to reload the open-order list."""
        self._orders_requested.set()

    def flush_order_requests(self) -> Optional[OrderData]:
        if not self._orders_requested.is_set():
            return None
        self._orders_requested.clear()
        self._cache.delete(CacheTier.WARM, OPEN_ORDERS_KEY)
        data = self.fetch_open_orders()
        if self.on_orders is not None:
            self.on_orders(data)
        return data

    def start(self) -> None:
        self._order_ticker.start()

    def stop(self) -> None:
        self._order_ticker.stop()
