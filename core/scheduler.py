"""
Refresh scheduling: full vs fast refresh, background history phase,
backup restore on failure, and change notifications.

The displayed state is one immutable DashboardState reference. Every
update builds a new one and swaps it in under the lock; readers never see
a half-applied refresh.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from config import FULL_REFRESH_INTERVAL_SECONDS
from core.cache import TieredCache
from core.models import (
    AccountSnapshot,
    DerivativePosition,
    IncomeRecord,
    OrderRecord,
    TradeRecord,
)
from core.mutations import MutationManager
from core.portfolio import SnapshotBuilder
from core.venue.errors import VenueError


class RefreshState(str, Enum):
    IDLE = "idle"
    FULL_REFRESHING = "full_refreshing"
    FAST_REFRESHING = "fast_refreshing"
    ERROR = "error"


class RefreshMode(str, Enum):
    FAST = "fast"
    FULL = "full"


class DashboardState(BaseModel):
    """Everything the consumer renders. Replaced wholesale, never mutated."""

    model_config = ConfigDict(frozen=True)

    state: RefreshState = RefreshState.IDLE
    snapshot: Optional[AccountSnapshot] = None
    open_orders: List[OrderRecord] = Field(default_factory=list)
    order_history: List[OrderRecord] = Field(default_factory=list)
    trade_history: List[TradeRecord] = Field(default_factory=list)
    funding_history: List[IncomeRecord] = Field(default_factory=list)
    transaction_history: List[IncomeRecord] = Field(default_factory=list)
    positions: List[DerivativePosition] = Field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[str] = None
    restored_from_backup: bool = False
    last_updated: Optional[datetime] = None


Listener = Callable[[DashboardState], None]


class RefreshScheduler:
    """Drives the Idle → (Full|Fast)Refreshing → Idle/Error cycle."""

    def __init__(
        self,
        builder: SnapshotBuilder,
        cache: TieredCache,
        mutations: MutationManager,
        full_refresh_interval: float = FULL_REFRESH_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._builder = builder
        self._cache = cache
        self._mutations = mutations
        self._full_interval = full_refresh_interval
        self._clock = clock

        self._lock = threading.Lock()
        self._state = DashboardState()
        self._last_full_refresh: Optional[float] = None
        self._generation = 0          # bumped on every refresh start
        self._applied_generation = 0  # newest refresh whose result is on screen
        self._history_generation = 0  # newest full refresh allowed to publish history

        self._listeners: List[Listener] = []
        self._background = ThreadPoolExecutor(max_workers=1, thread_name_prefix="history")
        self._pending: List[Future] = []

    # ── Reads ────────────────────────────────────────────────────────────────

    @property
    def state(self) -> DashboardState:
        """Current state with locally cancelled orders filtered out."""
        with self._lock:
            state = self._state
        return self._visible(state)

    def _visible(self, state: DashboardState) -> DashboardState:
        orders = self._mutations.filter_orders(state.open_orders)
        if len(orders) == len(state.open_orders):
            return state
        return state.model_copy(update={"open_orders": orders})

    @property
    def last_full_refresh(self) -> Optional[float]:
        with self._lock:
            return self._last_full_refresh

    def select_mode(self) -> RefreshMode:
        """Full when there has never been one or the last one is older than the interval."""
        with self._lock:
            last = self._last_full_refresh
        if last is None or self._clock() - last > self._full_interval:
            return RefreshMode.FULL
        return RefreshMode.FAST

    # ── Listeners ────────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, state: DashboardState) -> DashboardState:
        # Filtered at emission so a cancel landing mid-refresh is never re-shown
        state = self._visible(state)
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(state)
            except Exception as e:
                print(f"[SCHEDULER] Listener failed: {e}")
        return state

    def _replace(self, **changes) -> DashboardState:
        with self._lock:
            self._state = self._state.model_copy(update=changes)
            state = self._state
        return self._notify(state)

    def republish(self) -> DashboardState:
        """Re-emit the current state, e.g. after an optimistic removal."""
        with self._lock:
            state = self._state
        return self._notify(state)

    # ── Refresh cycle ────────────────────────────────────────────────────────

    def refresh(self, mode: Optional[RefreshMode] = None) -> RefreshState:
        """
        Run one refresh and return the state it ends in.

        With no *mode* the interval rule picks one. The critical path
        (account snapshot + open orders) runs on the calling thread; a full
        refresh then hands history to the background executor.
        """
        mode = RefreshMode(mode) if mode is not None else self.select_mode()
        full = mode is RefreshMode.FULL
        with self._lock:
            self._generation += 1
            generation = self._generation
            if full:
                self._history_generation = generation
        self._replace(state=RefreshState.FULL_REFRESHING if full else RefreshState.FAST_REFRESHING)
        print(f"[SCHEDULER] {mode.value} refresh #{generation} started")

        try:
            if full:
                self._builder.clear_order_caches()
            snapshot = self._builder.build_account_snapshot()
            orders = self._builder.fetch_open_orders()
        except VenueError as e:
            return self._recover(generation, e)

        self._mutations.reconcile(o.id for o in orders.open_orders)
        with self._lock:
            if generation < self._applied_generation:
                print(f"[SCHEDULER] refresh #{generation} superseded, result dropped")
                return self._state.state
            self._applied_generation = generation
            if full:
                self._last_full_refresh = self._clock()
            history = self._state.order_history

        state = self._replace(
            state=RefreshState.IDLE,
            snapshot=snapshot,
            open_orders=orders.open_orders,
            error=None,
            error_kind=None,
            restored_from_backup=False,
            last_updated=datetime.now(timezone.utc),
        )
        self._mutations.update_backup(snapshot, state.open_orders, history)

        if full:
            self._schedule_history(generation)
        return RefreshState.IDLE

    def publish_open_orders(self, orders: List[OrderRecord]) -> DashboardState:
        """Swap in the venue's open-order list outside a refresh (order flush)."""
        return self._replace(open_orders=list(orders))

    def force_refresh(self) -> RefreshState:
        """Drop every cache tier and forget the last full refresh, then refresh."""
        self._cache.clear()
        with self._lock:
            self._last_full_refresh = None
        return self.refresh()

    def _recover(self, generation: int, error: VenueError) -> RefreshState:
        print(f"[SCHEDULER] refresh #{generation} failed: {type(error).__name__}: {error}")
        with self._lock:
            if generation < self._applied_generation:
                return self._state.state
            self._applied_generation = generation

        backup = self._mutations.restore_backup()
        if backup is not None:
            self._replace(
                state=RefreshState.IDLE,
                snapshot=backup.account,
                open_orders=backup.open_orders,
                order_history=backup.order_history,
                error=None,
                error_kind=None,
                restored_from_backup=True,
            )
            return RefreshState.IDLE

        self._replace(state=RefreshState.ERROR, error=str(error), error_kind=error.kind)
        return RefreshState.ERROR

    # ── Secondary phase ──────────────────────────────────────────────────────

    def _schedule_history(self, generation: int) -> None:
        future = self._background.submit(self._load_history, generation)
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()] + [future]

    def _load_history(self, generation: int) -> None:
        def publish(name: str, items: list) -> None:
            with self._lock:
                current = generation == self._history_generation
            if current:
                self._replace(**{name: items})

        try:
            history = self._builder.fetch_history(on_update=publish)
        except Exception as e:
            print(f"[SCHEDULER] history phase for refresh #{generation} failed: {e}")
            return
        with self._lock:
            if generation != self._history_generation:
                print(f"[SCHEDULER] history from refresh #{generation} superseded")
                return
        state = self._replace(
            order_history=history.order_history,
            trade_history=history.trade_history,
            funding_history=history.funding_history,
            transaction_history=history.transaction_history,
            positions=history.positions,
        )
        self._mutations.update_backup(state.snapshot, state.open_orders, history.order_history)
        print(f"[SCHEDULER] history loaded: {len(history.order_history)} orders, "
              f"{len(history.trade_history)} trades, {len(history.funding_history)} funding")

    def wait_for_background(self, timeout: Optional[float] = None) -> bool:
        """Block until scheduled history phases finish. False on timeout."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self) -> None:
        self._background.shutdown(wait=False)
