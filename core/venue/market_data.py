"""Public market data queries (no signing)."""

import json
from typing import Any, Dict, List

from .endpoints import MarketSegment
from .gateway import VenueGateway

TICKER_PRICE_PATH = "/api/v3/ticker/price"

_EXCHANGE_INFO_PATHS = {
    MarketSegment.SPOT: "/api/v3/exchangeInfo",
    MarketSegment.DERIVATIVES: "/fapi/v1/exchangeInfo",
}


def get_ticker_prices(gateway: VenueGateway, symbols: List[str]) -> List[Dict[str, Any]]:
    """
    Bulk price ticker for *symbols* in one call.
    Returns a list of ``{"symbol": ..., "price": ...}`` dicts.
    """
    param = json.dumps(sorted(symbols), separators=(",", ":"))
    data = gateway.read(TICKER_PRICE_PATH, {"symbols": param}, signed=False)
    return data if isinstance(data, list) else []


def get_ticker_price(gateway: VenueGateway, symbol: str) -> float:
    """Latest price for a single *symbol*."""
    data = gateway.read(TICKER_PRICE_PATH, {"symbol": symbol}, signed=False)
    return float(data["price"])


def get_symbols(gateway: VenueGateway, segment: MarketSegment = MarketSegment.SPOT) -> List[str]:
    """Symbols currently trading on *segment*."""
    data = gateway.read(_EXCHANGE_INFO_PATHS[MarketSegment(segment)], signed=False, segment=segment)
    return sorted(
        s["symbol"] for s in data.get("symbols", []) if s.get("status", "TRADING") == "TRADING"
    )
