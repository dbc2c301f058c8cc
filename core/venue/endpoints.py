"""Candidate base addresses per call category, with endpoint affinity."""

import threading
from enum import Enum
from typing import Dict, List, Optional

from config import ACCOUNT_ENDPOINTS, DERIVATIVES_ENDPOINTS, PUBLIC_ENDPOINTS


class MarketSegment(str, Enum):
    SPOT = "spot"
    DERIVATIVES = "derivatives"


class EndpointCategory(str, Enum):
    PUBLIC = "public"             # unsigned spot market data
    ACCOUNT = "account"           # signed spot account calls
    DERIVATIVES = "derivatives"   # everything on the derivatives API


def category_for(signed: bool, segment: MarketSegment) -> EndpointCategory:
    """Pick the candidate list a call is sent to."""
    if MarketSegment(segment) is MarketSegment.DERIVATIVES:
        return EndpointCategory.DERIVATIVES
    return EndpointCategory.ACCOUNT if signed else EndpointCategory.PUBLIC


class EndpointRegistry:
    """Ordered candidates per category plus the last one that answered.

    The remembered candidate is tried first on the next call; the rest of
    the category's default order follows, so a dead favourite never hides
    the full list.
    """

    def __init__(self, candidates: Optional[Dict[EndpointCategory, List[str]]] = None):
        if candidates is None:
            candidates = {
                EndpointCategory.PUBLIC: PUBLIC_ENDPOINTS,
                EndpointCategory.ACCOUNT: ACCOUNT_ENDPOINTS,
                EndpointCategory.DERIVATIVES: DERIVATIVES_ENDPOINTS,
            }
        self._candidates = {EndpointCategory(k): [u.rstrip("/") for u in v] for k, v in candidates.items()}
        for category, urls in self._candidates.items():
            if not urls:
                raise ValueError(f"No candidate endpoints configured for {category.value}")
        self._last_successful: Dict[EndpointCategory, str] = {}
        self._lock = threading.Lock()

    def ordered(self, category: EndpointCategory) -> List[str]:
        """Candidates in the order they should be tried for *category*."""
        category = EndpointCategory(category)
        defaults = self._candidates[category]
        with self._lock:
            preferred = self._last_successful.get(category)
        if preferred is None:
            return list(defaults)
        return [preferred] + [url for url in defaults if url != preferred]

    def record_success(self, category: EndpointCategory, base_url: str) -> None:
        with self._lock:
            self._last_successful[EndpointCategory(category)] = base_url

    def last_successful(self, category: EndpointCategory) -> Optional[str]:
        with self._lock:
            return self._last_successful.get(EndpointCategory(category))
