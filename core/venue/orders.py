"""Order execution and activity history."""

from typing import Any, Dict, List, Optional

from .endpoints import MarketSegment
from .gateway import VenueGateway

_ORDER_PATHS = {
    MarketSegment.SPOT: "/api/v3/order",
    MarketSegment.DERIVATIVES: "/fapi/v1/order",
}
_OPEN_ORDER_PATHS = {
    MarketSegment.SPOT: "/api/v3/openOrders",
    MarketSegment.DERIVATIVES: "/fapi/v1/openOrders",
}
_ALL_ORDER_PATHS = {
    MarketSegment.SPOT: "/api/v3/allOrders",
    MarketSegment.DERIVATIVES: "/fapi/v1/allOrders",
}
_TRADE_PATHS = {
    MarketSegment.SPOT: "/api/v3/myTrades",
    MarketSegment.DERIVATIVES: "/fapi/v1/userTrades",
}
INCOME_PATH = "/fapi/v1/income"


# ── Reads ────────────────────────────────────────────────────────────────────


def get_open_orders(
    gateway: VenueGateway,
    segment: MarketSegment = MarketSegment.SPOT,
    symbol: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """List open orders on *segment*, optionally for one symbol."""
    segment = MarketSegment(segment)
    return gateway.read(_OPEN_ORDER_PATHS[segment], {"symbol": symbol}, segment=segment)


def get_order_history(
    gateway: VenueGateway,
    segment: MarketSegment = MarketSegment.DERIVATIVES,
    symbol: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """
    List recent orders (any status).

    Parameters
    ----------
    segment : spot or derivatives
    symbol  : symbol filter (the spot API requires one)
    limit   : max results
    """
    segment = MarketSegment(segment)
    return gateway.read(
        _ALL_ORDER_PATHS[segment], {"symbol": symbol, "limit": limit}, segment=segment
    )


def get_trade_history(
    gateway: VenueGateway,
    segment: MarketSegment = MarketSegment.DERIVATIVES,
    symbol: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """List recent fills."""
    segment = MarketSegment(segment)
    return gateway.read(_TRADE_PATHS[segment], {"symbol": symbol, "limit": limit}, segment=segment)


def get_income_history(
    gateway: VenueGateway,
    income_type: Optional[str] = None,
    symbol: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """
    Derivatives income lines (REALIZED_PNL, FUNDING_FEE, COMMISSION, TRANSFER...).
    All types when *income_type* is None.
    """
    return gateway.read(
        INCOME_PATH,
        {"incomeType": income_type, "symbol": symbol, "limit": limit},
        segment=MarketSegment.DERIVATIVES,
    )


def get_funding_fee_history(
    gateway: VenueGateway,
    symbol: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """Funding fee lines only."""
    return get_income_history(gateway, "FUNDING_FEE", symbol=symbol, limit=limit)


# ── Mutations ────────────────────────────────────────────────────────────────


def submit_order(
    gateway: VenueGateway,
    symbol: str,
    side: str,             # "BUY" or "SELL"
    order_type: str,       # "MARKET" or "LIMIT"
    quantity: float,
    price: Optional[float] = None,
    segment: MarketSegment = MarketSegment.SPOT,
) -> Dict[str, Any]:
    """
    Submit an order.

    Parameters
    ----------
    symbol     : str   – e.g. "BTCUSDT"
    side       : str   – "BUY" or "SELL"
    order_type : str   – "MARKET" or "LIMIT"
    quantity   : float – base asset quantity
    price      : float – limit price, required for LIMIT orders

    Returns
    -------
    dict  – the venue's order acknowledgment
    """
    order_type = order_type.upper()
    params: Dict[str, Any] = {
        "symbol": symbol,
        "side": side.upper(),
        "type": order_type,
        "quantity": quantity,
    }
    if order_type == "LIMIT":
        if price is None:
            raise ValueError("LIMIT orders require a price")
        params["timeInForce"] = "GTC"
        params["price"] = price
    segment = MarketSegment(segment)
    return gateway.mutate("POST", _ORDER_PATHS[segment], params, segment=segment)


def cancel_order(
    gateway: VenueGateway,
    symbol: str,
    order_id: str,
    segment: MarketSegment = MarketSegment.SPOT,
) -> Dict[str, Any]:
    """Cancel one order; returns the venue's cancellation acknowledgment."""
    segment = MarketSegment(segment)
    return gateway.mutate(
        "DELETE", _ORDER_PATHS[segment], {"symbol": symbol, "orderId": order_id}, segment=segment
    )


def set_leverage(gateway: VenueGateway, symbol: str, leverage: int) -> Dict[str, Any]:
    """Set initial leverage for a derivatives symbol."""
    return gateway.mutate(
        "POST",
        "/fapi/v1/leverage",
        {"symbol": symbol, "leverage": int(leverage)},
        segment=MarketSegment.DERIVATIVES,
    )
