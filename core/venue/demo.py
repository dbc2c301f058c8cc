"""Canned venue responses so the client can run without credentials or network."""

import json
import random
import threading
import time
from typing import Any, Callable, Dict, Optional

from .endpoints import MarketSegment

_DEMO_PRICES = {
    "BTCUSDT": "50000.00",
    "ETHUSDT": "3000.00",
    "BNBUSDT": "320.50",
    "ADAUSDT": "0.45",
    "DOTUSDT": "6.75",
    "SOLUSDT": "25.75",
    "MATICUSDT": "0.80",
}


class DemoTransport:
    """Drop-in stand-in for ``VenueTransport`` serving static demo data."""

    def __init__(self, latency: float = 0.0, clock: Callable[[], float] = time.time):
        self._latency = latency
        self._clock = clock
        self.request_count = 0
        self._count_lock = threading.Lock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        signed: bool = False,
        segment: MarketSegment = MarketSegment.SPOT,
    ) -> Any:
        with self._count_lock:
            self.request_count += 1
        if self._latency:
            time.sleep(self._latency)
        params = params or {}
        method = method.upper()
        now = self._now_ms()

        if path.endswith("/time"):
            return {"serverTime": now}
        if path == "/api/v3/ticker/price":
            return self._prices(params)
        if path == "/api/v3/account":
            return {
                "accountType": "SPOT",
                "canTrade": True,
                "balances": [
                    {"asset": "USDT", "free": "1250.50", "locked": "0.00"},
                    {"asset": "BTC", "free": "0.05123456", "locked": "0.00"},
                    {"asset": "ETH", "free": "2.75891234", "locked": "0.50000000"},
                    {"asset": "BNB", "free": "15.25", "locked": "10.00"},
                    {"asset": "ADA", "free": "500.00", "locked": "0.00"},
                    {"asset": "DOT", "free": "0.00", "locked": "100.00"},
                    {"asset": "SOL", "free": "8.50", "locked": "20.00"},
                ],
                "updateTime": now,
            }
        if path == "/fapi/v2/account":
            return {
                "totalWalletBalance": "500.00",
                "totalUnrealizedProfit": "12.50",
                "positions": [
                    {"symbol": "BTCUSDT", "positionAmt": "0.010", "entryPrice": "48750.0",
                     "markPrice": "50000.0", "unrealizedProfit": "12.50", "leverage": "5"},
                    {"symbol": "ETHUSDT", "positionAmt": "0", "entryPrice": "0",
                     "markPrice": "3000.0", "unrealizedProfit": "0", "leverage": "10"},
                ],
            }
        if path == "/fapi/v2/positionRisk":
            return [
                {"symbol": "BTCUSDT", "positionAmt": "0.010", "entryPrice": "48750.0",
                 "markPrice": "50000.0", "unRealizedProfit": "12.50", "leverage": "5"},
            ]
        if path in ("/api/v3/openOrders", "/fapi/v1/openOrders"):
            return self._open_orders(segment, now)
        if path in ("/api/v3/allOrders", "/fapi/v1/allOrders"):
            return [
                {"orderId": 123456789, "symbol": "BTCUSDT", "status": "FILLED", "side": "BUY",
                 "type": "LIMIT", "origQty": "0.001", "executedQty": "0.001",
                 "price": "45000.00", "time": now - 86_400_000},
                {"orderId": 123456794, "symbol": "DOTUSDT", "status": "CANCELED", "side": "SELL",
                 "type": "LIMIT", "origQty": "100", "executedQty": "0",
                 "price": "6.75", "time": now - 10_800_000},
            ]
        if path in ("/fapi/v1/userTrades", "/api/v3/myTrades"):
            return [
                {"id": 9001, "symbol": "BTCUSDT", "side": "BUY", "price": "48750.0",
                 "qty": "0.010", "commission": "0.19", "realizedPnl": "0", "time": now - 3_600_000},
            ]
        if path == "/fapi/v1/income":
            income_type = params.get("incomeType") or "FUNDING_FEE"
            return [
                {"symbol": "BTCUSDT", "incomeType": income_type, "income": "-0.0421",
                 "asset": "USDT", "time": now - 28_800_000},
            ]
        if path in ("/api/v3/order", "/fapi/v1/order"):
            return self._order_ack(method, params, now)
        if path == "/fapi/v1/leverage":
            return {"symbol": params.get("symbol"), "leverage": params.get("leverage"),
                    "maxNotionalValue": "100000"}
        if path.endswith("/exchangeInfo"):
            return {"symbols": [{"symbol": s, "status": "TRADING"} for s in _DEMO_PRICES]}
        return {}

    def _prices(self, params: Dict[str, Any]) -> Any:
        if "symbol" in params:
            return {"symbol": params["symbol"], "price": _DEMO_PRICES.get(params["symbol"], "0")}
        wanted = json.loads(params["symbols"]) if "symbols" in params else list(_DEMO_PRICES)
        return [{"symbol": s, "price": _DEMO_PRICES[s]} for s in wanted if s in _DEMO_PRICES]

    def _open_orders(self, segment: MarketSegment, now: int) -> list:
        if MarketSegment(segment) is MarketSegment.DERIVATIVES:
            return [
                {"orderId": 223456792, "symbol": "ETHUSDT", "status": "NEW", "side": "BUY",
                 "type": "LIMIT", "origQty": "0.5", "executedQty": "0",
                 "price": "2800.00", "time": now - 300_000},
            ]
        return [
            {"orderId": 123456792, "symbol": "BNBUSDT", "status": "NEW", "side": "BUY",
             "type": "LIMIT", "origQty": "10", "executedQty": "0",
             "price": "300.00", "time": now - 600_000},
            {"orderId": 123456795, "symbol": "SOLUSDT", "status": "NEW", "side": "SELL",
             "type": "LIMIT", "origQty": "20", "executedQty": "0",
             "price": "25.75", "time": now - 1_200_000},
        ]

    def _order_ack(self, method: str, params: Dict[str, Any], now: int) -> Dict[str, Any]:
        if method == "DELETE":
            return {"symbol": params.get("symbol"), "orderId": params.get("orderId"),
                    "status": "CANCELED"}
        is_market = str(params.get("type", "")).upper() == "MARKET"
        return {
            "symbol": params.get("symbol"),
            "orderId": random.randint(1, 1_000_000),
            "transactTime": now,
            "price": str(params.get("price", "0")),
            "origQty": str(params.get("quantity", "0")),
            "executedQty": str(params.get("quantity", "0")) if is_market else "0",
            "status": "FILLED" if is_market else "NEW",
            "type": params.get("type"),
            "side": params.get("side"),
        }

    def close(self) -> None:
        pass
