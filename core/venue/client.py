"""HTTP client infrastructure for the venue REST API.

One logical call goes to the first reachable candidate base address for
its category. Signed calls carry a server-synchronised timestamp, a fixed
recvWindow and an HMAC-SHA256 signature over the canonical query string.
"""

import hashlib
import hmac
import threading
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import requests

from config import (
    RECV_WINDOW_MS,
    REQUEST_TIMEOUT_SECONDS,
    VENUE_API_KEY,
    VENUE_API_SECRET,
)
from .endpoints import EndpointRegistry, MarketSegment, category_for
from .errors import AuthRejected, NetworkUnreachable, VenueError, classify_error, classify_response

SERVER_TIME_PATH = "/api/v3/time"


class VenueTransport:
    """Signed/unsigned request sender with endpoint fallback and clock sync."""

    def __init__(
        self,
        api_key: str = VENUE_API_KEY,
        api_secret: str = VENUE_API_SECRET,
        endpoints: Optional[EndpointRegistry] = None,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        recv_window: int = RECV_WINDOW_MS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Parameters:
            api_key / api_secret: credential pair forwarded on signed calls
            endpoints: candidate registry; defaults to the configured lists
            session: requests session (injectable for tests)
            timeout: per-request bound in seconds
            recv_window: venue-side validity window for signed calls (ms)
            clock: wall clock in seconds
        """
        self._api_key = api_key
        self._api_secret = api_secret
        self.endpoints = endpoints or EndpointRegistry()
        self._session = session or requests.Session()
        self._timeout = timeout
        self._recv_window = recv_window
        self._clock = clock
        self._time_offset_ms: Optional[int] = None
        self._sync_lock = threading.Lock()
        self._count_lock = threading.Lock()
        self.request_count = 0

    # ── Clock synchronisation ───────────────────────────────────────────────

    def _local_ms(self) -> int:
        return int(self._clock() * 1000)

    def sync_server_time(self) -> int:
        """Measure ``serverTime - localTime`` and keep it for all later timestamps.

        On failure the offset falls back to 0 so signed calls still go out.
        """
        try:
            data = self.request("GET", SERVER_TIME_PATH)
            offset = int(data["serverTime"]) - self._local_ms()
            print(f"[TRANSPORT] Server time synced. Offset: {offset}ms")
        except (VenueError, KeyError, TypeError, ValueError) as exc:
            print(f"[TRANSPORT] Warning: failed to sync server time, using local time: {exc}")
            offset = 0
        self._time_offset_ms = offset
        return offset

    def _ensure_time_synced(self) -> None:
        if self._time_offset_ms is not None:
            return
        with self._sync_lock:
            if self._time_offset_ms is None:
                self.sync_server_time()

    @property
    def time_offset_ms(self) -> Optional[int]:
        return self._time_offset_ms

    def timestamp(self) -> int:
        """Local time corrected by the server offset, in ms."""
        return self._local_ms() + (self._time_offset_ms or 0)

    # ── Signing ─────────────────────────────────────────────────────────────

    def get_headers(self) -> dict:
        """Return HTTP headers carrying the API key."""
        return {"X-MBX-APIKEY": self._api_key}

    def sign(self, params: Dict[str, Any]) -> str:
        """Return the canonical signed query string for *params*."""
        payload = {**params, "timestamp": self.timestamp(), "recvWindow": self._recv_window}
        query = urlencode(payload)
        signature = hmac.new(
            self._api_secret.encode(), query.encode(), hashlib.sha256
        ).hexdigest()
        return f"{query}&signature={signature}"

    # ── Requests ────────────────────────────────────────────────────────────

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        signed: bool = False,
        segment: MarketSegment = MarketSegment.SPOT,
    ) -> Any:
        """
        Perform one logical call, trying candidate endpoints in order.

        Parameters:
            method : "GET", "POST" or "DELETE"
            path   : endpoint path, e.g. "/api/v3/account"
            params : query/body parameters (None values are dropped)
            signed : attach timestamp, recvWindow and signature
            segment: spot or derivatives API

        Returns the decoded JSON body. Only unreachable candidates are skipped;
        any other failure surfaces immediately.
        """
        method = method.upper()
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        category = category_for(signed, segment)

        if signed:
            if not self._api_key or not self._api_secret:
                raise AuthRejected("API key and secret are required")
            self._ensure_time_synced()

        last_error: Optional[VenueError] = None
        for base_url in self.endpoints.ordered(category):
            # Re-sign per attempt so the timestamp stays fresh
            query = self.sign(clean) if signed else urlencode(clean)
            try:
                data = self._send(method, f"{base_url}{path}", query, signed)
            except NetworkUnreachable as exc:
                print(f"[TRANSPORT] {method} {path} failed with {base_url}: {exc}")
                last_error = exc
                continue
            self.endpoints.record_success(category, base_url)
            return data

        if last_error is None:
            raise NetworkUnreachable(f"No candidate endpoints for {category.value}")
        raise last_error

    def _send(self, method: str, url: str, query: str, signed: bool) -> Any:
        with self._count_lock:
            self.request_count += 1

        headers = self.get_headers() if signed else {}
        try:
            if method == "POST":
                headers["Content-Type"] = "application/x-www-form-urlencoded"
                resp = self._session.request(
                    method, url, data=query, headers=headers, timeout=self._timeout
                )
            else:
                full_url = f"{url}?{query}" if query else url
                resp = self._session.request(
                    method, full_url, headers=headers, timeout=self._timeout
                )
        except requests.RequestException as exc:
            raise classify_error(exc) from exc

        if not resp.ok:
            raise classify_response(resp)
        try:
            return resp.json()
        except ValueError as exc:
            raise classify_error(exc) from exc

    def close(self) -> None:
        self._session.close()


def request_key(method: str, path: str, params: Optional[Dict[str, Any]] = None,
                segment: MarketSegment = MarketSegment.SPOT) -> str:
    """Canonical signature of a logical call, used for coalescing."""
    items = sorted((k, str(v)) for k, v in (params or {}).items() if v is not None)
    return f"{MarketSegment(segment).value}:{method.upper()}:{path}?{urlencode(items)}"


