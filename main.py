"""
Main entry point for the venue account monitor.

• Builds an AccountService (demo transport when DEMO_MODE=true).
• Each cycle:  refresh (full every 5 minutes, fast otherwise)
                print balances, positions, open orders
                print request-optimisation stats
• Ctrl+C stops the loop and shuts the background tickers down.
"""

import sys
from pathlib import Path

# Ensure the package root is importable when launched as a script
_ROOT = Path(__file__).resolve().parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import time
from datetime import datetime, timezone

from config import DEMO_MODE, POLL_INTERVAL_SECONDS
from core.scheduler import DashboardState, RefreshState
from core.service import AccountService


def render(state: DashboardState) -> None:
    """Print the composed account view."""
    snapshot = state.snapshot
    print(f"\n{'='*60}")
    if snapshot is None:
        print("  No account data yet")
    else:
        print(f"  Total value: ${snapshot.total_value:,.2f}  "
              f"(spot ${snapshot.spot_value:,.2f} | derivatives ${snapshot.derivatives_value:,.2f})")
        print(f"  Stablecoin baseline: ${snapshot.baseline_value:,.2f}  |  "
              f"Unrealized P&L: ${snapshot.unrealized_pnl:,.2f}")
        for balance in snapshot.balances:
            price = snapshot.prices.get(balance.asset)
            priced = f" @ ${price:,.2f}" if price else ""
            print(f"    {balance.asset:<6} {balance.total:>16.8f}{priced}")
        for position in snapshot.positions:
            print(f"    {position.symbol:<10} size {position.size:+.4f}  "
                  f"entry {position.entry_price:,.2f}  ROE {position.roe:+.2f}%")
    if state.restored_from_backup:
        print("  (showing last known-good data)")
    print(f"{'='*60}")

    print(f"  Open orders: {len(state.open_orders)}")
    for order in state.open_orders:
        price = f"{order.price:,.2f}" if order.price is not None else "MARKET"
        print(f"    [{order.market}] {order.id} {order.side} {order.quantity} {order.symbol} @ {price}")

    if state.error:
        print(f"  ❌ {state.error}")


def main() -> None:
    print("🚀 Account monitor started")
    print(f"   Mode: {'demo' if DEMO_MODE else 'live'}")
    print(f"   Poll interval: {POLL_INTERVAL_SECONDS}s")
    print()

    with AccountService() as service:
        permissions = service.check_permissions()
        print(f"   Spot access: {permissions['spot']} | Derivatives access: {permissions['derivatives']}")

        try:
            while True:
                print(f"\n⏰ Cycle start: {datetime.now(timezone.utc).isoformat()}")
                outcome = service.refresh()
                render(service.get_state())
                if outcome is RefreshState.ERROR:
                    print("  Refresh failed, retrying next cycle")

                stats = service.get_optimization_stats()
                print(f"  Requests: {stats['network_requests']} sent, {stats['requests_saved']} saved "
                      f"| cache {stats['cache_sizes']}")

                print(f"\n💤 Sleeping {POLL_INTERVAL_SECONDS}s until next cycle…")
                time.sleep(POLL_INTERVAL_SECONDS)
        except KeyboardInterrupt:
            print("\n👋 Stopping")


if __name__ == "__main__":
    main()
