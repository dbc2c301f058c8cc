"""
Shared fixtures: a scripted in-memory transport and a hand-driven clock.

No test in this directory touches the network.
"""

import sys
import threading
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from core.venue.endpoints import MarketSegment


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """
    Transport double driven by a route table.

    A route maps ``(METHOD, path)`` to either a value, an exception instance
    (raised), or a callable ``(params, segment) -> value``.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.request_count = 0
        self._lock = threading.Lock()

    def request(self, method, path, params=None, signed=False, segment=MarketSegment.SPOT):
        method = method.upper()
        with self._lock:
            self.request_count += 1
            self.calls.append((method, path, dict(params or {}), signed, MarketSegment(segment)))
        route = self.routes.get((method, path))
        if route is None:
            raise AssertionError(f"unexpected call {method} {path}")
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(params or {}, MarketSegment(segment))
        return route

    def calls_to(self, path, method=None):
        return [c for c in self.calls if c[1] == path and (method is None or c[0] == method)]

    def close(self):
        pass


# ── Canned venue payloads ────────────────────────────────────────────────────

SPOT_ACCOUNT = {
    "canTrade": True,
    "balances": [
        {"asset": "USDT", "free": "100", "locked": "0"},
        {"asset": "BTC", "free": "0.01", "locked": "0"},
        {"asset": "XRP", "free": "0", "locked": "0"},
    ],
}

DERIVATIVES_ACCOUNT = {
    "totalWalletBalance": "500.0",
    "totalUnrealizedProfit": "12.5",
    "assets": [{"asset": "USDT", "walletBalance": "500.0"}],
    "positions": [
        {"symbol": "BTCUSDT", "positionAmt": "0.01", "entryPrice": "48750",
         "markPrice": "50000", "unrealizedProfit": "12.5", "leverage": "5"},
        {"symbol": "ETHUSDT", "positionAmt": "0", "unrealizedProfit": "0"},
    ],
}


def ticker_prices(params, segment):
    prices = {"BTCUSDT": "50000", "ETHUSDT": "3000", "BNBUSDT": "300"}
    if "symbol" in params:
        return {"symbol": params["symbol"], "price": prices[params["symbol"]]}
    return [{"symbol": s, "price": p} for s, p in prices.items()]


def open_order(order_id, symbol="BNBUSDT", time_ms=1_700_000_000_000):
    return {"orderId": order_id, "symbol": symbol, "side": "BUY", "type": "LIMIT",
            "origQty": "1", "executedQty": "0", "price": "300", "status": "NEW", "time": time_ms}


def venue_routes(overrides=None):
    """Routes for a healthy venue; *overrides* replaces single (METHOD, path) entries."""
    routes = {
        ("GET", "/api/v3/account"): SPOT_ACCOUNT,
        ("GET", "/fapi/v2/account"): DERIVATIVES_ACCOUNT,
        ("GET", "/api/v3/ticker/price"): ticker_prices,
        ("GET", "/api/v3/openOrders"): [open_order(1, time_ms=1_700_000_000_000)],
        ("GET", "/fapi/v1/openOrders"): [open_order(2, "ETHUSDT", time_ms=1_700_000_100_000)],
        ("GET", "/fapi/v1/allOrders"): [dict(open_order(3), status="FILLED")],
        ("GET", "/fapi/v1/userTrades"): [{"id": 7, "symbol": "BTCUSDT", "side": "BUY",
                                          "price": "48750", "qty": "0.01", "time": 1_700_000_000_000}],
        ("GET", "/fapi/v1/income"): [{"symbol": "BTCUSDT", "incomeType": "FUNDING_FEE",
                                      "income": "-0.04", "asset": "USDT", "time": 1_700_000_000_000}],
        ("GET", "/fapi/v2/positionRisk"): DERIVATIVES_ACCOUNT["positions"],
        ("DELETE", "/api/v3/order"): {"orderId": 1, "symbol": "BNBUSDT", "status": "CANCELED"},
        ("POST", "/api/v3/order"): {"orderId": 11, "symbol": "BNBUSDT", "side": "BUY", "type": "MARKET",
                                    "origQty": "1", "executedQty": "1", "status": "FILLED"},
        ("POST", "/fapi/v1/order"): {"orderId": 12, "symbol": "BTCUSDT", "side": "SELL", "type": "LIMIT",
                                     "origQty": "0.01", "price": "60000", "status": "NEW"},
        ("POST", "/fapi/v1/leverage"): {"symbol": "BTCUSDT", "leverage": 10},
    }
    routes.update(overrides or {})
    return routes


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return FakeTransport(venue_routes())
