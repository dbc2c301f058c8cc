"""
Central configuration for the venue access client.
All tunables live here so they're easy to find and override via env vars.
"""

import os
from pathlib import Path

from dotenv import load_dotenv


# ── Paths ────────────────────────────────────────────────────────────────────
BASE_DIR = Path(__file__).parent          # project root

load_dotenv(BASE_DIR / ".env")


def _csv(name: str, default: str) -> list[str]:
    """Read a comma-separated env var into a list, dropping blanks."""
    return [v.strip() for v in os.getenv(name, default).split(",") if v.strip()]


# ── Credentials ──────────────────────────────────────────────────────────────
VENUE_API_KEY = os.getenv("VENUE_API_KEY", "")
VENUE_API_SECRET = os.getenv("VENUE_API_SECRET", "")
DEMO_MODE = os.getenv("DEMO_MODE", "false").lower() == "true"   # canned data, no network

# ── Candidate base addresses (tried in order) ────────────────────────────────
PUBLIC_ENDPOINTS = _csv(
    "VENUE_PUBLIC_ENDPOINTS",
    "https://api.binance.com,https://api1.binance.com,https://api2.binance.com",
)
ACCOUNT_ENDPOINTS = _csv(
    "VENUE_ACCOUNT_ENDPOINTS",
    "https://api.binance.com,https://api1.binance.com,https://api2.binance.com",
)
DERIVATIVES_ENDPOINTS = _csv("VENUE_DERIVATIVES_ENDPOINTS", "https://fapi.binance.com")

# ── Transport ────────────────────────────────────────────────────────────────
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15"))
RECV_WINDOW_MS = int(os.getenv("RECV_WINDOW_MS", "60000"))
# Upper bound a coalesced caller waits on the in-flight owner (clock sync + endpoint retries)
COALESCE_WAIT_SECONDS = float(os.getenv("COALESCE_WAIT_SECONDS", str(REQUEST_TIMEOUT_SECONDS * 3)))

# ── Cache ────────────────────────────────────────────────────────────────────
CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "100"))          # per tier
CACHE_HOT_SECONDS = int(os.getenv("CACHE_HOT_SECONDS", "15"))           # prices, portfolio
CACHE_WARM_SECONDS = int(os.getenv("CACHE_WARM_SECONDS", "60"))         # order lists
CACHE_COLD_SECONDS = int(os.getenv("CACHE_COLD_SECONDS", "300"))        # symbol metadata

# ── Market data ──────────────────────────────────────────────────────────────
QUOTE_ASSET = os.getenv("QUOTE_ASSET", "USDT")
STABLE_ASSETS = _csv("STABLE_ASSETS", "USDT,BUSD,USDC,FDUSD")
# Wider set used for the stablecoin-only baseline valuation
BASELINE_STABLE_ASSETS = _csv("BASELINE_STABLE_ASSETS", "USDT,BUSD,USDC,FDUSD,TUSD,USDP,DAI")
TRACKED_ASSETS = _csv("TRACKED_ASSETS", "BTC,ETH,BNB")
MIN_TRACKED_BALANCE = float(os.getenv("MIN_TRACKED_BALANCE", "0.001"))
PRICE_BATCH_LIMIT = int(os.getenv("PRICE_BATCH_LIMIT", "20"))           # symbols per bulk call
PRICE_FALLBACK_LIMIT = int(os.getenv("PRICE_FALLBACK_LIMIT", "10"))     # per-asset calls on failure
PRICE_FALLBACK_WORKERS = int(os.getenv("PRICE_FALLBACK_WORKERS", "4"))
PRICE_FLUSH_INTERVAL_SECONDS = float(os.getenv("PRICE_FLUSH_INTERVAL_SECONDS", "0.1"))
ORDER_FLUSH_INTERVAL_SECONDS = float(os.getenv("ORDER_FLUSH_INTERVAL_SECONDS", "0.2"))

# ── Orders & history ─────────────────────────────────────────────────────────
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "50"))

# ── Refresh & recovery ───────────────────────────────────────────────────────
FULL_REFRESH_INTERVAL_SECONDS = int(os.getenv("FULL_REFRESH_INTERVAL_SECONDS", "300"))  # 5 minutes
MUTATION_COOLDOWN_SECONDS = float(os.getenv("MUTATION_COOLDOWN_SECONDS", "3"))
BACKUP_MAX_AGE_SECONDS = int(os.getenv("BACKUP_MAX_AGE_SECONDS", "600"))   # 10 minutes
POLL_INTERVAL_SECONDS = int(os.getenv("POLL_INTERVAL_SECONDS", "10"))      # CLI loop
