"""
Tests for the mutation guard, optimistic removal/rollback and backup window.

Usage:
    pytest testing/test_mutations.py -v
"""

from datetime import datetime, timezone

import pytest

from conftest import FakeClock
from core.models import AccountSnapshot, OrderRecord, OrderStatus
from core.mutations import MutationManager
from core.venue.errors import CooldownActive, RateLimited


def _order(order_id: str) -> OrderRecord:
    return OrderRecord(id=order_id, symbol="BNBUSDT", side="BUY", type="LIMIT", quantity=1, price=300)


def _snapshot() -> AccountSnapshot:
    return AccountSnapshot(spot_value=600, last_updated=datetime.now(timezone.utc))


class TestCooldownGuard:
    """3 s between mutating calls, enforced before any network call."""

    def test_second_cancel_one_second_later_rejected_locally(self):
        clock = FakeClock()
        manager = MutationManager(clock=clock)
        calls = []

        first = manager.cancel("BNBUSDT", "1", lambda: calls.append(1) or {"status": "CANCELED"})
        clock.advance(1)
        second = manager.cancel("BNBUSDT", "2", lambda: calls.append(2) or {"status": "CANCELED"})

        assert first.accepted is True
        assert second.accepted is False
        assert "wait" in second.message.lower()
        assert calls == [1]
        assert not manager.is_removed("2")

    def test_cancels_four_seconds_apart_both_proceed(self):
        clock = FakeClock()
        manager = MutationManager(clock=clock)
        calls = []

        manager.cancel("BNBUSDT", "1", lambda: calls.append(1))
        clock.advance(4)
        result = manager.cancel("BNBUSDT", "2", lambda: calls.append(2))

        assert result.accepted is True
        assert calls == [1, 2]

    def test_guard_shared_across_mutation_kinds(self):
        clock = FakeClock()
        manager = MutationManager(clock=clock)
        manager.run("order", lambda: {"orderId": 1})

        with pytest.raises(CooldownActive):
            manager.run("leverage change", lambda: {})

    def test_failed_mutation_still_stamps_the_cooldown(self):
        clock = FakeClock()
        manager = MutationManager(clock=clock)

        with pytest.raises(RateLimited):
            manager.run("order", lambda: (_ for _ in ()).throw(RateLimited("slow down", 429)))

        assert manager.last_mutation_at == clock.now
        with pytest.raises(CooldownActive):
            manager.guard()


class TestOptimisticRemoval:
    def test_cancelled_order_filtered_immediately(self):
        manager = MutationManager(clock=FakeClock())
        orders = [_order("1"), _order("2")]

        result = manager.cancel("BNBUSDT", "1", lambda: {"status": "CANCELED"})

        assert result.status is OrderStatus.CANCELED
        assert [o.id for o in manager.filter_orders(orders)] == ["2"]

    def test_failed_cancel_rolls_back(self):
        clock = FakeClock()
        manager = MutationManager(clock=clock)

        def reject():
            assert manager.is_removed("1")  # provisional removal is in place during the call
            raise RateLimited("Too many requests", 429)

        with pytest.raises(RateLimited):
            manager.cancel("BNBUSDT", "1", reject)

        assert [o.id for o in manager.filter_orders([_order("1")])] == ["1"]
        assert manager.last_mutation_at == clock.now

    def test_reconcile_forgets_ids_no_longer_listed(self):
        manager = MutationManager(clock=FakeClock())
        manager.cancel("BNBUSDT", "1", lambda: {})

        manager.reconcile(["1", "2"])
        assert manager.removed_ids() == {"1"}

        manager.reconcile(["2"])
        assert manager.removed_ids() == set()


class TestBackupRestore:
    """10-minute restore window, only with order data."""

    def test_backup_nine_minutes_old_restored(self):
        clock = FakeClock()
        manager = MutationManager(clock=clock)
        manager.update_backup(_snapshot(), [_order("1")], [])

        clock.advance(9 * 60)
        backup = manager.restore_backup()

        assert backup is not None
        assert [o.id for o in backup.open_orders] == ["1"]
        assert backup.account.spot_value == 600

    def test_backup_eleven_minutes_old_rejected(self):
        clock = FakeClock()
        manager = MutationManager(clock=clock)
        manager.update_backup(_snapshot(), [_order("1")], [])

        clock.advance(11 * 60)

        assert manager.restore_backup() is None

    def test_refresh_without_orders_does_not_overwrite_backup(self):
        clock = FakeClock()
        manager = MutationManager(clock=clock)
        manager.update_backup(_snapshot(), [_order("1")], [])
        clock.advance(60)

        assert manager.update_backup(_snapshot(), [], []) is False
        assert manager.backup.last_valid_update == clock.now - 60

    def test_no_backup_nothing_to_restore(self):
        assert MutationManager(clock=FakeClock()).restore_backup() is None

    def test_cancelled_order_dropped_from_backup(self):
        clock = FakeClock()
        manager = MutationManager(clock=clock)
        manager.update_backup(_snapshot(), [_order("1"), _order("2")], [])

        manager.cancel("BNBUSDT", "1", lambda: {"status": "CANCELED"})
        backup = manager.restore_backup()

        assert [o.id for o in backup.open_orders] == ["2"]
