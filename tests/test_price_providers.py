"""Tests for the price provider adapters and the fallback chain."""

import logging
from types import SimpleNamespace

import httpx
import pytest

from tradejournal.config import Settings
from tradejournal.services.price_providers import (
    BinanceProvider,
    CoinCapProvider,
    CoinGeckoProvider,
    CoinMarketCapProvider,
    PriceProvider,
    PriceProviderChain,
    ProviderError,
    build_price_chain,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class StaticProvider(PriceProvider):
    """Provider returning canned prices or raising canned errors."""

    def __init__(self, name, result):
        super().__init__(client=None)
        self.name = name
        self.result = result
        self.calls = 0

    async def fetch(self, symbols, asset_list):
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return dict(self.result)


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_chain_returns_first_successful_provider_without_merging():
    first = StaticProvider("first", ProviderError("down"))
    second = StaticProvider("second", {"BTC": 105.0})
    third = StaticProvider("third", {"BTC": 1.0, "ETH": 2.0})

    chain = PriceProviderChain([first, second, third])
    prices = await chain.get_live_prices(["btc", "ETH"])

    # ETH missing from the winner stays missing
    assert prices == {"BTC": 105.0}
    assert third.calls == 0


@pytest.mark.asyncio
async def test_chain_skips_empty_results_and_unexpected_errors(caplog):
    chain = PriceProviderChain([
        StaticProvider("empty", {}),
        StaticProvider("broken", RuntimeError("boom")),
        StaticProvider("good", {"ETH": 3000.0}),
    ])
    with caplog.at_level(logging.WARNING):
        prices = await chain.get_live_prices({"ETH"})
    assert prices == {"ETH": 3000.0}
    assert "empty returned no prices" in caplog.text
    assert "broken failed unexpectedly" in caplog.text


@pytest.mark.asyncio
async def test_chain_all_failing_returns_empty(caplog):
    chain = PriceProviderChain([StaticProvider("a", ProviderError("x")), StaticProvider("b", {})])
    with caplog.at_level(logging.ERROR):
        assert await chain.get_live_prices(["XYZ"]) == {}
    assert "All price providers failed" in caplog.text


@pytest.mark.asyncio
async def test_chain_with_no_symbols_makes_no_calls():
    provider = StaticProvider("a", {"BTC": 1.0})
    assert await PriceProviderChain([provider]).get_live_prices(["", "  "]) == {}
    assert provider.calls == 0


def test_build_chain_follows_configured_order_and_skips_unknown():
    config = Settings(price_providers=["binance", "nope", "CoinGecko"], coinmarketcap_api_key="k")
    chain = build_price_chain(client=None, config=config)
    assert [p.name for p in chain.providers] == ["binance", "coingecko"]


def test_build_chain_passes_api_keys():
    config = Settings(price_providers=["coinmarketcap"], coinmarketcap_api_key="secret")
    chain = build_price_chain(client=None, config=config)
    assert chain.providers[0].api_key == "secret"


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_coingecko_maps_ids_back_to_symbols():
    seen = {}

    def handler(request):
        seen["ids"] = request.url.params["ids"]
        return httpx.Response(200, json={"bitcoin": {"usd": 65000}, "pepe": {"usd": 0.00001}})

    assets = [SimpleNamespace(asset_id="pepe", symbol="pepe", name="Pepe")]
    async with _client(handler) as client:
        prices = await CoinGeckoProvider(client).fetch({"BTC", "PEPE", "NOPE"}, assets)

    assert seen["ids"] == "bitcoin,pepe"
    assert prices == {"BTC": 65000.0, "PEPE": 0.00001}


@pytest.mark.asyncio
async def test_coingecko_with_nothing_resolvable_fails_without_request():
    def handler(request):
        raise AssertionError("no request expected")

    async with _client(handler) as client:
        with pytest.raises(ProviderError):
            await CoinGeckoProvider(client).fetch({"NOPE"}, [])


@pytest.mark.asyncio
async def test_binance_strips_quote_suffix():
    def handler(request):
        assert "symbols" not in request.url.params
        return httpx.Response(200, json=[
            {"symbol": "BTCUSDT", "price": "65000.50"},
            {"symbol": "ETHUSDT", "price": "0"},
            {"symbol": "BTCEUR", "price": "60000"},
        ])

    async with _client(handler) as client:
        prices = await BinanceProvider(client).fetch({"BTC", "ETH"}, [])
    # A zero price is unusable and dropped
    assert prices == {"BTC": 65000.5}


@pytest.mark.asyncio
async def test_binance_unlisted_pair_does_not_hide_listed_ones():
    def handler(request):
        # Binance answers a batched query naming an unlisted pair with 400 / -1121
        if "XYZUSDT" in request.url.params.get("symbols", ""):
            return httpx.Response(400, json={"code": -1121, "msg": "Invalid symbol."})
        return httpx.Response(200, json=[
            {"symbol": "BTCUSDT", "price": "100"},
            {"symbol": "ETHUSDT", "price": "3000"},
        ])

    async with _client(handler) as client:
        chain = PriceProviderChain([BinanceProvider(client)])
        prices = await chain.get_live_prices({"BTC", "ETH", "XYZ"})
    assert prices == {"BTC": 100.0, "ETH": 3000.0}


@pytest.mark.asyncio
async def test_http_error_becomes_provider_error():
    def handler(request):
        return httpx.Response(429, json={"error": "rate limited"})

    async with _client(handler) as client:
        with pytest.raises(ProviderError, match="429"):
            await BinanceProvider(client).fetch({"BTC"}, [])


@pytest.mark.asyncio
async def test_unparseable_body_becomes_provider_error():
    def handler(request):
        return httpx.Response(200, content=b"<html>maintenance</html>")

    async with _client(handler) as client:
        with pytest.raises(ProviderError):
            await BinanceProvider(client).fetch({"BTC"}, [])


@pytest.mark.asyncio
async def test_keyed_provider_without_key_fails_fast():
    def handler(request):
        raise AssertionError("no request expected")

    async with _client(handler) as client:
        with pytest.raises(ProviderError, match="API key"):
            await CoinMarketCapProvider(client).fetch({"BTC"}, [])


@pytest.mark.asyncio
async def test_coinmarketcap_takes_first_listing_per_symbol():
    def handler(request):
        assert request.headers["X-CMC_PRO_API_KEY"] == "k"
        return httpx.Response(200, json={"data": {
            "BTC": [{"quote": {"USD": {"price": 65000}}}, {"quote": {"USD": {"price": 1}}}],
            "ETH": {"quote": {"USD": {"price": 3000}}},
        }})

    async with _client(handler) as client:
        prices = await CoinMarketCapProvider(client, api_key="k").fetch({"BTC", "ETH"}, [])
    assert prices == {"BTC": 65000.0, "ETH": 3000.0}


@pytest.mark.asyncio
async def test_coincap_first_ticker_occurrence_wins():
    def handler(request):
        return httpx.Response(200, json={"data": [
            {"symbol": "BTC", "priceUsd": "65000"},
            {"symbol": "BTC", "priceUsd": "3"},
        ]})

    async with _client(handler) as client:
        prices = await CoinCapProvider(client).fetch({"BTC"}, [])
    assert prices == {"BTC": 65000.0}
