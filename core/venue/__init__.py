"""
Venue REST integration split into focused submodules.

  client       – signed/unsigned transport, clock sync, endpoint fallback
  endpoints    – candidate base addresses per call category
  errors       – failure taxonomy shared by every layer above
  gateway      – coalesced reads / direct mutations
  account, orders, market_data – the calls themselves
  demo         – canned responses for running without credentials

Submodules that depend on ``core.coalescer`` (gateway and the query
modules) are imported from their own paths, not re-exported here.
"""

from .client import VenueTransport, request_key
from .endpoints import EndpointCategory, EndpointRegistry, MarketSegment
from .errors import (
    AuthRejected,
    BadRequest,
    CooldownActive,
    EndpointUnavailable,
    Forbidden,
    NetworkUnreachable,
    PartialDataUnavailable,
    RateLimited,
    TransportTimeout,
    VenueError,
)
from .demo import DemoTransport

__all__ = [
    # Transport
    "VenueTransport",
    "DemoTransport",
    "request_key",
    # Endpoints
    "EndpointCategory",
    "EndpointRegistry",
    "MarketSegment",
    # Errors
    "VenueError",
    "TransportTimeout",
    "AuthRejected",
    "RateLimited",
    "Forbidden",
    "BadRequest",
    "NetworkUnreachable",
    "EndpointUnavailable",
    "PartialDataUnavailable",
    "CooldownActive",
]
