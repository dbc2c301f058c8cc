"""
Error taxonomy for venue calls.

Every failure leaving the transport is one of these, so higher layers can
decide between absorbing, falling back, restoring from backup, or surfacing.
"""

from typing import Any, Optional

import requests

FORBIDDEN_GUIDANCE = (
    "Access forbidden. Check that the API key has the required permissions "
    "(e.g. futures enabled) and that IP restrictions allow this host."
)
RATE_LIMIT_GUIDANCE = (
    "Request rate limit reached. Wait before trying again; "
    "refreshes will resume on the next scheduled cycle."
)


class VenueError(Exception):
    """Base class for all venue access failures."""

    kind = "venue_error"

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.code = code


class TransportTimeout(VenueError):
    """No response within the request bound. Not retried inline."""

    kind = "transport_timeout"


class AuthRejected(VenueError):
    """Credentials invalid, missing, or lacking a permission."""

    kind = "auth_rejected"


class RateLimited(VenueError):
    kind = "rate_limited"


class Forbidden(VenueError):
    kind = "forbidden"


class BadRequest(VenueError):
    kind = "bad_request"


class NetworkUnreachable(VenueError):
    """Connectivity failure. The transport moves on to the next candidate endpoint."""

    kind = "network_unreachable"


class EndpointUnavailable(NetworkUnreachable):
    """Candidate answered with a 5xx; treated like an unreachable endpoint."""

    kind = "endpoint_unavailable"


class PartialDataUnavailable(VenueError):
    """A non-critical source failed. Absorbed by the fan-out, never surfaced."""

    kind = "partial_data_unavailable"


class CooldownActive(VenueError):
    """Mutating call rejected locally before any network call."""

    kind = "cooldown_active"


# Venue error codes that mean the key/secret pair itself is the problem
_AUTH_CODES = {-2014, -2015, -1022}


def _venue_payload(response: requests.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def classify_response(response: requests.Response) -> VenueError:
    """Map a non-2xx HTTP response onto the taxonomy.

    The venue's own ``msg`` is kept verbatim when present.
    """
    status = response.status_code
    payload = _venue_payload(response)
    code = payload.get("code")
    msg = payload.get("msg")

    if status == 401 or code in _AUTH_CODES:
        return AuthRejected(msg or "Unauthorized. Please check your API credentials.", status, code)
    if status in (418, 429):
        return RateLimited(f"{msg} - {RATE_LIMIT_GUIDANCE}" if msg else RATE_LIMIT_GUIDANCE, status, code)
    if status == 403:
        return Forbidden(f"{msg} - {FORBIDDEN_GUIDANCE}" if msg else FORBIDDEN_GUIDANCE, status, code)
    if status >= 500:
        return EndpointUnavailable(msg or f"Venue endpoint returned HTTP {status}", status, code)
    if 400 <= status < 500:
        return BadRequest(msg or "Invalid API request. Please check the request parameters.", status, code)
    return VenueError(msg or f"Unexpected HTTP {status}", status, code)


def classify_error(exc: Exception) -> VenueError:
    """Map an exception raised while performing a request onto the taxonomy."""
    if isinstance(exc, VenueError):
        return exc
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return classify_response(exc.response)
    if isinstance(exc, requests.Timeout):
        return TransportTimeout(f"Request timeout: {exc}")
    if isinstance(exc, requests.ConnectionError):
        return NetworkUnreachable(f"Network unreachable: {exc}")
    if isinstance(exc, ValueError):
        return BadRequest(f"Malformed venue response: {exc}")
    return VenueError(f"API Error: {exc}")
