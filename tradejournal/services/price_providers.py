"""Live price fetching across free-tier price APIs.

Each adapter wraps exactly one HTTP API and makes one batched request per call.
Adapters are tried in configured order; the first one that yields at least one
usable price is the answer for the whole cycle. Results are never merged across
providers, so a partial answer from a higher-priority provider hides prices a
lower-priority one could have supplied.

All prices are USD (USDT treated as USD), keyed by upper-cased base symbol.
"""

import logging
import math
from typing import Iterable

import httpx

from tradejournal.config import Settings, settings as default_settings
from tradejournal.services.symbol_resolver import resolve
from tradejournal.utils.constants import QUOTE_SUFFIX

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """A single provider could not produce any usable price."""


def _to_price(value) -> float | None:
    """Parse a provider price value; None unless it is a finite positive number."""
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def normalize_symbols(symbols: Iterable[str]) -> set[str]:
    return {s.strip().upper() for s in symbols if s and s.strip()}


class PriceProvider:
    """Base adapter. Subclasses implement ``fetch``."""

    name = "base"
    base_url = ""
    requires_key = False

    def __init__(self, client: httpx.AsyncClient, api_key: str = ""):
        self._client = client
        self.api_key = api_key

    async def fetch(self, symbols: set[str], asset_list: list) -> dict[str, float]:
        raise NotImplementedError

    def _require_key(self):
        if self.requires_key and not self.api_key:
            raise ProviderError(f"{self.name} API key is missing")

    async def _get_json(self, path: str, params: dict | None = None, headers: dict | None = None):
        url = f"{self.base_url}{path}"
        try:
            resp = await self._client.get(url, params=params, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"{self.name} request failed with status: {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.name} request failed: {e}") from e

        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned an unparseable body") from e

    def _ensure_prices(self, prices: dict[str, float]) -> dict[str, float]:
        # HTTP 200 with nothing usable is still a failure
        if not prices:
            raise ProviderError(f"No prices returned from {self.name}")
        return prices


class CoinGeckoProvider(PriceProvider):
    """CoinGecko simple-price endpoint; needs provider ids from the asset list."""

    name = "coingecko"
    base_url = "https://api.coingecko.com/api/v3"

    async def fetch(self, symbols: set[str], asset_list: list) -> dict[str, float]:
        ids = resolve(symbols, asset_list)
        if not ids:
            raise ProviderError("Could not map any symbols to CoinGecko ids")

        data = await self._get_json(
            "/simple/price",
            params={"ids": ",".join(sorted(set(ids.values()))), "vs_currencies": "usd"},
        )
        if not isinstance(data, dict):
            raise ProviderError("Unexpected CoinGecko response shape")

        prices: dict[str, float] = {}
        for symbol, coin_id in ids.items():
            quote = data.get(coin_id)
            price = _to_price(quote.get("usd")) if isinstance(quote, dict) else None
            if price is not None:
                prices[symbol] = price
        return self._ensure_prices(prices)


class BinanceProvider(PriceProvider):
    """Binance ticker-price endpoint.

    Fetches the full ticker list and filters it to <BASE>USDT pairs: a batched
    ``symbols=`` query fails outright when any one pair is unlisted.
    """

    name = "binance"
    base_url = "https://api.binance.com"

    async def fetch(self, symbols: set[str], asset_list: list) -> dict[str, float]:
        data = await self._get_json("/api/v3/ticker/price")
        if not isinstance(data, list):
            raise ProviderError("Unexpected Binance response shape")

        wanted = {f"{s}{QUOTE_SUFFIX}" for s in symbols}
        prices: dict[str, float] = {}
        for ticker in data:
            if not isinstance(ticker, dict):
                continue
            pair = str(ticker.get("symbol", "")).upper()
            if pair not in wanted:
                continue
            price = _to_price(ticker.get("price"))
            if price is not None:
                prices[pair[: -len(QUOTE_SUFFIX)]] = price
        return self._ensure_prices(prices)


class CoinMarketCapProvider(PriceProvider):
    name = "coinmarketcap"
    base_url = "https://pro-api.coinmarketcap.com"
    requires_key = True

    async def fetch(self, symbols: set[str], asset_list: list) -> dict[str, float]:
        self._require_key()
        body = await self._get_json(
            "/v2/cryptocurrency/quotes/latest",
            params={"symbol": ",".join(sorted(symbols))},
            headers={"X-CMC_PRO_API_KEY": self.api_key},
        )
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise ProviderError("Unexpected CoinMarketCap response shape")

        prices: dict[str, float] = {}
        for symbol in symbols:
            entry = data.get(symbol)
            # v2 returns a list per symbol (ticker collisions), ranked first
            if isinstance(entry, list):
                entry = entry[0] if entry else None
            if not isinstance(entry, dict):
                continue
            usd = (entry.get("quote") or {}).get("USD") or {}
            price = _to_price(usd.get("price"))
            if price is not None:
                prices[symbol] = price
        return self._ensure_prices(prices)


class CoinCapProvider(PriceProvider):
    """CoinCap asset listing; matched by ticker, first (highest-ranked) hit wins."""

    name = "coincap"
    base_url = "https://rest.coincap.io/v3"

    async def fetch(self, symbols: set[str], asset_list: list) -> dict[str, float]:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None
        body = await self._get_json("/assets", params={"limit": 2000}, headers=headers)
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise ProviderError("Unexpected CoinCap response shape")

        prices: dict[str, float] = {}
        for asset in data:
            if not isinstance(asset, dict):
                continue
            symbol = str(asset.get("symbol", "")).upper()
            if symbol not in symbols or symbol in prices:
                continue
            price = _to_price(asset.get("priceUsd"))
            if price is not None:
                prices[symbol] = price
        return self._ensure_prices(prices)


class CoinApiProvider(PriceProvider):
    name = "coinapi"
    base_url = "https://rest.coinapi.io"
    requires_key = True

    async def fetch(self, symbols: set[str], asset_list: list) -> dict[str, float]:
        self._require_key()
        data = await self._get_json(
            "/v1/assets",
            params={"filter_asset_id": ",".join(sorted(symbols))},
            headers={"X-CoinAPI-Key": self.api_key},
        )
        if not isinstance(data, list):
            raise ProviderError("Unexpected CoinAPI response shape")

        prices: dict[str, float] = {}
        for asset in data:
            if not isinstance(asset, dict):
                continue
            symbol = str(asset.get("asset_id", "")).upper()
            price = _to_price(asset.get("price_usd"))
            if symbol in symbols and price is not None:
                prices[symbol] = price
        return self._ensure_prices(prices)


class UniblockProvider(PriceProvider):
    name = "uniblock"
    base_url = "https://api.uniblock.dev"
    requires_key = True

    async def fetch(self, symbols: set[str], asset_list: list) -> dict[str, float]:
        self._require_key()
        data = await self._get_json(
            "/uni/v1/market-data/price",
            params={"symbol": ",".join(sorted(symbols)), "currency": "USD"},
            headers={"X-API-KEY": self.api_key, "accept": "application/json"},
        )
        if not isinstance(data, list):
            raise ProviderError("Unexpected UniBlock response shape")

        prices: dict[str, float] = {}
        for asset in data:
            if not isinstance(asset, dict):
                continue
            symbol = str(asset.get("symbol", "")).upper()
            price = _to_price(asset.get("price"))
            if symbol in symbols and price is not None:
                prices[symbol] = price
        return self._ensure_prices(prices)


PROVIDERS: dict[str, type[PriceProvider]] = {
    cls.name: cls
    for cls in (
        CoinGeckoProvider,
        BinanceProvider,
        CoinMarketCapProvider,
        CoinCapProvider,
        CoinApiProvider,
        UniblockProvider,
    )
}


class PriceProviderChain:
    """Ordered fallback over price providers."""

    def __init__(self, providers: Iterable[PriceProvider]):
        self.providers = list(providers)

    async def get_live_prices(self, symbols: Iterable[str], asset_list: list | None = None) -> dict[str, float]:
        """Return prices from the first provider that yields any; {} if all fail.

        Never raises. An empty result means "skip valuation this cycle".
        """
        wanted = normalize_symbols(symbols)
        if not wanted:
            return {}
        asset_list = list(asset_list or [])

        for provider in self.providers:
            try:
                prices = await provider.fetch(wanted, asset_list)
            except ProviderError as e:
                logger.warning(f"{provider.name} failed: {e}")
                continue
            except Exception as e:
                logger.warning(f"{provider.name} failed unexpectedly: {e}", exc_info=True)
                continue

            if not prices:
                logger.warning(f"{provider.name} returned no prices")
                continue

            logger.info(f"Fetched {len(prices)}/{len(wanted)} prices from {provider.name}")
            return prices

        logger.error(f"All price providers failed for {', '.join(sorted(wanted))}")
        return {}


def build_price_chain(client: httpx.AsyncClient, config: Settings | None = None) -> PriceProviderChain:
    """Build the provider chain in the configured order."""
    config = config or default_settings
    keys = {
        CoinMarketCapProvider.name: config.coinmarketcap_api_key,
        CoinCapProvider.name: config.coincap_api_key,
        CoinApiProvider.name: config.coinapi_key,
        UniblockProvider.name: config.uniblock_api_key,
    }

    providers: list[PriceProvider] = []
    for raw_name in config.price_providers:
        name = raw_name.strip().lower()
        cls = PROVIDERS.get(name)
        if cls is None:
            logger.warning(f"Unknown price provider '{raw_name}' in config, skipping")
            continue
        providers.append(cls(client, api_key=keys.get(name, "")))
    return PriceProviderChain(providers)
