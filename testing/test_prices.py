"""
Tests for batched price aggregation.

Usage:
    pytest testing/test_prices.py -v
"""

import json

from conftest import FakeClock, FakeTransport
from core.cache import CacheTier, TieredCache
from core.models import Balance
from core.prices import LATEST_PRICES_KEY, PriceAggregator, collect_assets
from core.venue.errors import BadRequest, EndpointUnavailable
from core.venue.gateway import VenueGateway

TICKER = "/api/v3/ticker/price"
PRICES = {"BTCUSDT": "50000", "ETHUSDT": "3000", "BNBUSDT": "300", "SOLUSDT": "25.75"}


def _aggregator(routes, **kwargs):
    transport = FakeTransport(routes)
    cache = TieredCache(clock=FakeClock())
    return PriceAggregator(VenueGateway(transport), cache, **kwargs), transport, cache


def _bulk(params, segment):
    if "symbol" in params:
        return {"symbol": params["symbol"], "price": PRICES[params["symbol"]]}
    wanted = json.loads(params["symbols"])
    return [{"symbol": s, "price": PRICES[s]} for s in wanted if s in PRICES]


def _bulk_down_single_ok(params, segment):
    if "symbols" in params:
        raise EndpointUnavailable("bulk ticker down", 503)
    return {"symbol": params["symbol"], "price": PRICES[params["symbol"]]}


class TestCollectAssets:
    def test_tracked_first_then_holdings_by_size(self):
        balances = [
            Balance(asset="SOL", free=28.5),
            Balance(asset="ADA", free=500),
            Balance(asset="USDT", free=1000),
            Balance(asset="DUST", free=0.0001),
            Balance(asset="BTC", free=0.05),
        ]
        assert collect_assets(balances) == ["BTC", "ETH", "BNB", "ADA", "SOL"]


class TestPriceAggregator:
    """One bulk call, bounded fallback, hot-tier caching."""

    def test_single_bulk_call_for_many_assets(self):
        aggregator, transport, _ = _aggregator({("GET", TICKER): _bulk})

        prices = aggregator.get_prices(["BTC", "ETH", "SOL", "USDT"])

        assert prices == {"BTC": 50000.0, "ETH": 3000.0, "SOL": 25.75}
        assert transport.request_count == 1
        symbols = json.loads(transport.calls[0][2]["symbols"])
        assert symbols == ["BTCUSDT", "ETHUSDT", "SOLUSDT"]
        assert transport.calls[0][3] is False  # unsigned

    def test_same_asset_set_served_from_cache(self):
        aggregator, transport, cache = _aggregator({("GET", TICKER): _bulk})

        aggregator.get_prices(["ETH", "BTC"])
        again = aggregator.get_prices(["btc", "eth"])

        assert again == {"BTC": 50000.0, "ETH": 3000.0}
        assert transport.request_count == 1
        assert cache.get(CacheTier.HOT, "batch_prices:BTC,ETH") == again

    def test_bulk_capped_at_batch_limit(self):
        aggregator, transport, _ = _aggregator({("GET", TICKER): _bulk}, batch_limit=2)
        aggregator.get_prices(["BTC", "ETH", "BNB", "SOL"])
        assert len(json.loads(transport.calls[0][2]["symbols"])) == 2

    def test_bulk_failure_falls_back_to_individual_lookups(self):
        aggregator, transport, _ = _aggregator({("GET", TICKER): _bulk_down_single_ok})

        prices = aggregator.get_prices(["BTC", "ETH"])

        assert prices == {"BTC": 50000.0, "ETH": 3000.0}
        singles = [c for c in transport.calls if "symbol" in c[2]]
        assert len(singles) == 2

    def test_fallback_bounded_in_count(self):
        aggregator, transport, _ = _aggregator(
            {("GET", TICKER): _bulk_down_single_ok}, fallback_limit=2, fallback_workers=2
        )

        prices = aggregator.get_prices(["BTC", "ETH", "BNB", "SOL"])

        assert set(prices) == {"BTC", "ETH"}
        assert len([c for c in transport.calls if "symbol" in c[2]]) == 2

    def test_unpriced_asset_is_absent_not_an_error(self):
        def bulk_rejects(params, segment):
            if "symbols" in params:
                raise BadRequest("Invalid symbol.", 400, -1121)
            if params["symbol"] == "FOOUSDT":
                raise BadRequest("Invalid symbol.", 400, -1121)
            return {"symbol": params["symbol"], "price": PRICES[params["symbol"]]}

        aggregator, _, _ = _aggregator({("GET", TICKER): bulk_rejects})
        assert aggregator.get_prices(["BTC", "FOO"]) == {"BTC": 50000.0}

    def test_empty_result_not_cached(self):
        aggregator, transport, cache = _aggregator(
            {("GET", TICKER): EndpointUnavailable("down", 503)}
        )

        assert aggregator.get_prices(["BTC"]) == {}
        assert cache.get(CacheTier.HOT, "batch_prices:BTC") is None

    def test_quote_asset_never_requested(self):
        aggregator, transport, _ = _aggregator({("GET", TICKER): _bulk})
        assert aggregator.get_prices(["USDT"]) == {}
        assert transport.request_count == 0


class TestPriceBatchQueue:
    """Queued requests are resolved together on flush."""

    def test_flush_resolves_queued_assets_in_one_call(self):
        aggregator, transport, cache = _aggregator({("GET", TICKER): _bulk})

        aggregator.request_prices(["BTC"])
        aggregator.request_prices(["ETH", "BTC"])
        prices = aggregator.flush()

        assert prices == {"BTC": 50000.0, "ETH": 3000.0}
        assert transport.request_count == 1
        assert aggregator.latest_prices() == prices
        assert cache.get(CacheTier.HOT, LATEST_PRICES_KEY) == prices

    def test_flush_with_nothing_queued_is_a_no_op(self):
        aggregator, transport, _ = _aggregator({("GET", TICKER): _bulk})
        assert aggregator.flush() == {}
        assert transport.request_count == 0

    def test_ticker_lifecycle(self):
        aggregator, _, _ = _aggregator({("GET", TICKER): _bulk}, flush_interval=0.01)
        aggregator.start()
        assert aggregator._ticker.is_running()
        aggregator.stop()
        assert not aggregator._ticker.is_running()
