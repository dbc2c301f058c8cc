"""
AccountService: the one object a consumer (CLI, UI) talks to.

Wires transport → coalescer → gateway → cache → aggregator → builder →
scheduler and exposes snapshot reads, refreshes, order mutations and
change notifications.
"""

import time
from typing import Callable, Dict, Iterable, List, Optional

from config import COALESCE_WAIT_SECONDS, DEMO_MODE
from core.cache import CACHE_TTL_SYMBOLS, CacheTier, TieredCache
from core.coalescer import RequestCoalescer
from core.models import AccountSnapshot, CancelResult, OrderData, OrderRecord
from core.mutations import MutationManager
from core.orchestrator import FanOut
from core.portfolio import SnapshotBuilder
from core.prices import PriceAggregator
from core.scheduler import DashboardState, RefreshMode, RefreshScheduler, RefreshState
from core.venue import account as account_api
from core.venue import market_data
from core.venue import orders as orders_api
from core.venue.client import VenueTransport
from core.venue.demo import DemoTransport
from core.venue.endpoints import MarketSegment
from core.venue.errors import AuthRejected, Forbidden, VenueError
from core.venue.gateway import Transport, VenueGateway


class AccountService:
    """Façade over the caching/refresh/mutation stack for one credential pair."""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        demo: bool = DEMO_MODE,
        clock: Callable[[], float] = time.time,
        cache: Optional[TieredCache] = None,
        mutations: Optional[MutationManager] = None,
    ):
        """
        Parameters:
            transport: real or fake transport; built from config when None
            demo: serve canned data instead of calling the venue
            clock: wall clock shared by the scheduler, mutations and cache
        """
        if transport is None:
            transport = DemoTransport() if demo else VenueTransport()
            print(f"[SERVICE] Using {'demo' if demo else 'live'} transport")
        self.transport = transport
        self.cache = cache or TieredCache(clock=clock)
        self.coalescer = RequestCoalescer(wait_timeout=COALESCE_WAIT_SECONDS)
        self.gateway = VenueGateway(transport, self.coalescer)
        self.prices = PriceAggregator(self.gateway, self.cache)
        self.builder = SnapshotBuilder(self.gateway, self.cache, self.prices, FanOut(), clock=clock)
        self.mutations = mutations or MutationManager(clock=clock)
        self.scheduler = RefreshScheduler(self.builder, self.cache, self.mutations, clock=clock)
        self.builder.on_orders = self._publish_orders

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def start(self) -> "AccountService":
        """Start the batch flush tickers."""
        self.prices.start()
        self.builder.start()
        return self

    def close(self) -> None:
        self.prices.stop()
        self.builder.stop()
        self.scheduler.close()
        self.transport.close()

    def __enter__(self) -> "AccountService":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Reads ────────────────────────────────────────────────────────────────

    def get_snapshot(self) -> Optional[AccountSnapshot]:
        """Current account view. Never blocks on the network."""
        return self.scheduler.state.snapshot

    def get_state(self) -> DashboardState:
        return self.scheduler.state

    def open_orders(self) -> List[OrderRecord]:
        """Open orders minus the ones cancelled here and not yet gone at the venue."""
        return self.scheduler.state.open_orders

    def get_prices(self, assets: Iterable[str]) -> Dict[str, float]:
        return self.prices.get_prices(assets)

    def get_symbols(self, market: str = "spot") -> List[str]:
        segment = MarketSegment(market)
        return self.cache.get_or_fetch(
            CacheTier.COLD,
            f"symbols:{segment.value}",
            lambda: market_data.get_symbols(self.gateway, segment),
            CACHE_TTL_SYMBOLS,
        )

    # ── Refresh ──────────────────────────────────────────────────────────────

    def refresh(self, mode: Optional[str] = None) -> RefreshState:
        """Run a refresh; *mode* is "fast", "full" or None to let the interval decide."""
        return self.scheduler.refresh(RefreshMode(mode) if mode else None)

    def force_refresh(self) -> RefreshState:
        return self.scheduler.force_refresh()

    def clear_cache(self) -> None:
        """Invalidate every tier. Call after mutations made outside this service."""
        self.cache.clear()

    def subscribe(self, listener: Callable[[DashboardState], None]) -> Callable[[], None]:
        """Register for state changes; returns the unsubscribe callable."""
        return self.scheduler.subscribe(listener)

    # ── Mutations ────────────────────────────────────────────────────────────

    def cancel_order(self, symbol: str, order_id: str, market: str = "spot") -> CancelResult:
        """
        Cancel an order. A cooldown rejection comes back as a non-accepted
        result; venue failures raise.
        """
        segment = MarketSegment(market)
        result = self.mutations.cancel(
            symbol, order_id, lambda: orders_api.cancel_order(self.gateway, symbol, order_id, segment)
        )
        if result.accepted:
            self._after_mutation()
            self.scheduler.republish()
        return result

    def place_order(
        self,
        symbol: str,
        side: str,
        order_type: str,
        quantity: float,
        price: Optional[float] = None,
        market: str = "spot",
        leverage: Optional[int] = None,
    ) -> OrderRecord:
        """
        Place an order. For derivatives with *leverage*, leverage is set first
        and a failure there aborts the order.
        """
        segment = MarketSegment(market)

        def submit():
            if segment is MarketSegment.DERIVATIVES and leverage:
                orders_api.set_leverage(self.gateway, symbol, leverage)
            return orders_api.submit_order(
                self.gateway, symbol, side, order_type, quantity, price, segment
            )

        ack = self.mutations.run("order", submit)
        order = OrderRecord.from_venue(ack, segment.value)
        print(f"[SERVICE] Order {order.id} {order.side} {order.quantity} {order.symbol}: {order.status.value}")
        self._after_mutation()
        return order

    def set_leverage(self, symbol: str, leverage: int) -> dict:
        return self.mutations.run(
            "leverage change", lambda: orders_api.set_leverage(self.gateway, symbol, leverage)
        )

    def _after_mutation(self) -> None:
        self.builder.clear_order_caches()
        self.builder.request_order_refresh()

    def _publish_orders(self, data: OrderData) -> None:
        self.mutations.reconcile(o.id for o in data.open_orders)
        self.scheduler.publish_open_orders(data.open_orders)

    # ── Diagnostics ──────────────────────────────────────────────────────────

    def check_permissions(self) -> Dict[str, bool]:
        """Check spot and derivatives account access."""
        permissions = {"spot": False, "derivatives": False}
        try:
            account_api.get_account(self.gateway)
            permissions["spot"] = True
        except VenueError as e:
            print(f"[SERVICE] Spot access check failed: {e}")
        try:
            account_api.get_derivatives_account(self.gateway)
            permissions["derivatives"] = True
        except Forbidden:
            print("[SERVICE] Derivatives access forbidden. Enable futures trading for this "
                  "API key in the venue's API management settings.")
        except AuthRejected as e:
            print(f"[SERVICE] Derivatives access rejected: {e}")
        except VenueError as e:
            print(f"[SERVICE] Derivatives access check failed: {e}")
        return permissions

    def get_optimization_stats(self) -> Dict[str, object]:
        hits = self.cache.hit_count()
        return {
            "network_requests": self.transport.request_count,
            "cache_hits": hits,
            "coalesced_requests": self.coalescer.coalesced,
            "requests_saved": hits + self.coalescer.coalesced,
            "in_flight": self.coalescer.in_flight(),
            "cache_sizes": self.cache.sizes(),
        }
