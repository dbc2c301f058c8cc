"""
Mutation guard, optimistic order removal and last-known-good backup.

One instance per credential/session. Every piece of state here is touched
from the UI thread, the refresh thread and the background history phase,
so all of it sits behind one lock.
"""

import threading
import time
from typing import Any, Callable, Iterable, List, Optional, Set, TypeVar

from config import BACKUP_MAX_AGE_SECONDS, MUTATION_COOLDOWN_SECONDS
from core.models import AccountSnapshot, BackupSnapshot, CancelResult, OrderRecord, OrderStatus
from core.venue.errors import CooldownActive

T = TypeVar("T")


class MutationManager:
    """Rate-limit guard + removed-order bookkeeping + backup/restore."""

    def __init__(
        self,
        cooldown: float = MUTATION_COOLDOWN_SECONDS,
        backup_max_age: float = BACKUP_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.cooldown = cooldown
        self.backup_max_age = backup_max_age
        self._clock = clock
        self._lock = threading.Lock()
        self._last_mutation: Optional[float] = None
        self._removed: Set[str] = set()
        self._backup: Optional[BackupSnapshot] = None

    # ── Rate-limit guard ─────────────────────────────────────────────────────

    def guard(self, action: str = "mutation") -> None:
        """
        Claim the mutation slot or raise CooldownActive.

        The timestamp is stamped here, before the network call, so a failed
        mutation still counts towards the cooldown.
        """
        with self._lock:
            now = self._clock()
            if self._last_mutation is not None:
                elapsed = now - self._last_mutation
                if elapsed < self.cooldown:
                    wait = self.cooldown - elapsed
                    print(f"[MUTATION] {action} rejected: cooldown active ({wait:.1f}s left)")
                    raise CooldownActive(
                        f"Please wait {wait:.1f}s before another {action} (rate limit protection)"
                    )
            self._last_mutation = now

    def run(self, action: str, call: Callable[[], T]) -> T:
        """Guarded mutating call; venue failures propagate unchanged."""
        self.guard(action)
        return call()

    @property
    def last_mutation_at(self) -> Optional[float]:
        with self._lock:
            return self._last_mutation

    # ── Optimistic cancellation ──────────────────────────────────────────────

    def cancel(self, symbol: str, order_id: str, call: Callable[[], Any]) -> CancelResult:
        """
        Run a cancellation with optimistic removal.

        A cooldown rejection comes back as a non-accepted CancelResult. A venue
        failure rolls the removal back and re-raises.
        """
        order_id = str(order_id)
        try:
            self.guard("cancel")
        except CooldownActive as e:
            return CancelResult(accepted=False, order_id=order_id, symbol=symbol, message=str(e))

        with self._lock:
            self._removed.add(order_id)
        try:
            ack = call()
        except Exception:
            with self._lock:
                self._removed.discard(order_id)
            print(f"[MUTATION] Cancel of {order_id} failed, order restored to the list")
            raise

        with self._lock:
            self._drop_from_backup(order_id)
        status = OrderStatus.parse((ack or {}).get("status", "CANCELED"))
        print(f"[MUTATION] Order {order_id} ({symbol}) cancelled: {status.value}")
        return CancelResult(accepted=True, order_id=order_id, symbol=symbol, status=status)

    def is_removed(self, order_id: str) -> bool:
        with self._lock:
            return str(order_id) in self._removed

    def removed_ids(self) -> Set[str]:
        with self._lock:
            return set(self._removed)

    def filter_orders(self, orders: Iterable[OrderRecord]) -> List[OrderRecord]:
        """Orders minus the ones cancelled locally but not yet gone from a refresh."""
        with self._lock:
            removed = set(self._removed)
        return [o for o in orders if o.id not in removed]

    def reconcile(self, listed_ids: Iterable[str]) -> None:
        """Forget removed ids the venue no longer lists; the refresh has caught up."""
        listed = {str(i) for i in listed_ids}
        with self._lock:
            self._removed &= listed

    # ── Backup / restore ─────────────────────────────────────────────────────

    def update_backup(
        self,
        account: Optional[AccountSnapshot],
        open_orders: List[OrderRecord],
        order_history: List[OrderRecord],
    ) -> bool:
        """Overwrite the backup; refreshes without any order data leave it alone."""
        if not open_orders and not order_history:
            return False
        backup = BackupSnapshot(
            account=account,
            open_orders=list(open_orders),
            order_history=list(order_history),
            last_valid_update=self._clock(),
        )
        with self._lock:
            self._backup = backup
        return True

    def restore_backup(self) -> Optional[BackupSnapshot]:
        """The backup if it is young enough and holds order data, else None."""
        with self._lock:
            backup = self._backup
        if backup is None:
            print("[MUTATION] No backup available")
            return None
        age = self._clock() - backup.last_valid_update
        if age >= self.backup_max_age:
            print(f"[MUTATION] Backup too old to restore ({age / 60:.1f} min)")
            return None
        if not backup.has_order_data:
            print("[MUTATION] Backup has no order data")
            return None
        print(f"[MUTATION] Restoring backup from {age:.0f}s ago")
        return backup.model_copy(update={"open_orders": self.filter_orders(backup.open_orders)})

    @property
    def backup(self) -> Optional[BackupSnapshot]:
        with self._lock:
            return self._backup

    def _drop_from_backup(self, order_id: str) -> None:
        if self._backup is None:
            return
        kept = [o for o in self._backup.open_orders if o.id != order_id]
        self._backup = self._backup.model_copy(update={"open_orders": kept})
