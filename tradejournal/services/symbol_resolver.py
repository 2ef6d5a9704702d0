"""Symbol resolution: journal pair text → provider-native asset ids.

Users type pairs freely ("btc/usdt", "ETH/USD", "PEPE"). Price lookups are keyed
by the upper-cased base symbol; providers that want their own identifiers
(CoinGecko) go through ``resolve``.
"""

import logging
from typing import Iterable, Protocol

logger = logging.getLogger(__name__)

# Hand-curated ids for high-volume assets. Ticker collisions in the provider
# listing are common (dozens of tokens call themselves "ETH"), so these win
# outright and never touch the asset list.
PRIORITY_IDS: dict[str, str] = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "bnb": "binancecoin",
    "sol": "solana",
    "xrp": "ripple",
    "ada": "cardano",
    "doge": "dogecoin",
    "usdt": "tether",
    "usdc": "usd-coin",
    "aave": "aave",
    "dot": "polkadot",
    "avax": "avalanche-2",
    "link": "chainlink",
    "ltc": "litecoin",
    "trx": "tron",
    "ton": "the-open-network",
}


class AssetLike(Protocol):
    asset_id: str
    symbol: str
    name: str


def base_symbol(pair: str) -> str:
    """Return the upper-cased first segment of a "BASE/QUOTE" pair string."""
    return pair.split("/")[0].strip().upper()


def _match(symbol: str, asset_list: Iterable[AssetLike]) -> str | None:
    # First hit in listing order wins; with colliding tickers the result
    # depends on the provider's ordering.
    for entry in asset_list:
        if (
            entry.asset_id == symbol
            or (entry.name or "").lower() == symbol
            or (entry.symbol or "").lower() == symbol
        ):
            return entry.asset_id
    return None


def resolve(
    symbols: Iterable[str],
    asset_list: Iterable[AssetLike],
    priority: dict[str, str] | None = None,
) -> dict[str, str]:
    """Map base symbols to provider ids.

    Returns a dict keyed by the upper-cased symbol. Symbols that cannot be
    resolved are left out; callers treat a missing key as "price unavailable".
    """
    priority = PRIORITY_IDS if priority is None else priority
    entries = list(asset_list)
    resolved: dict[str, str] = {}

    for raw in symbols:
        symbol = raw.strip().lower()
        if not symbol:
            continue
        key = symbol.upper()
        if key in resolved:
            continue

        if symbol in priority:
            resolved[key] = priority[symbol]
            continue

        asset_id = _match(symbol, entries)
        if asset_id is not None:
            resolved[key] = asset_id
        else:
            logger.debug(f"No provider id for symbol {key}")

    return resolved
