"""Account and positions queries."""

from typing import Any, Dict, List

from .endpoints import MarketSegment
from .gateway import VenueGateway


def get_account(gateway: VenueGateway) -> Dict[str, Any]:
    """Return the spot account summary (balances, trading permissions)."""
    return gateway.read("/api/v3/account")


def get_derivatives_account(gateway: VenueGateway) -> Dict[str, Any]:
    """Return the derivatives account summary (wallet balances, positions, P&L)."""
    return gateway.read("/fapi/v2/account", segment=MarketSegment.DERIVATIVES)


def get_position_risk(gateway: VenueGateway) -> List[Dict[str, Any]]:
    """Return per-symbol position risk rows (entry/mark price, leverage)."""
    return gateway.read("/fapi/v2/positionRisk", segment=MarketSegment.DERIVATIVES)
