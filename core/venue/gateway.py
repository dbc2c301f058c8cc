"""Single entry point the venue query modules use to reach the transport."""

from typing import Any, Dict, Optional, Protocol

from core.coalescer import RequestCoalescer
from .client import request_key
from .endpoints import MarketSegment


class Transport(Protocol):
    """What the gateway needs from a transport (real or demo)."""

    request_count: int

    def request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                signed: bool = False, segment: MarketSegment = MarketSegment.SPOT) -> Any:
        ...

    def close(self) -> None:
        ...


class VenueGateway:
    """Reads go through the coalescer; mutations go straight to the transport."""

    def __init__(self, transport: Transport, coalescer: Optional[RequestCoalescer] = None):
        self.transport = transport
        self.coalescer = coalescer or RequestCoalescer()

    def read(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        signed: bool = True,
        segment: MarketSegment = MarketSegment.SPOT,
    ) -> Any:
        key = request_key("GET", path, params, segment)
        return self.coalescer.execute(
            key, lambda: self.transport.request("GET", path, params, signed=signed, segment=segment)
        )

    def mutate(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        segment: MarketSegment = MarketSegment.SPOT,
    ) -> Any:
        return self.transport.request(method, path, params, signed=True, segment=segment)
