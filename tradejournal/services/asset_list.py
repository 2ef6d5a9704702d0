"""CoinGecko asset listing, cached in the database with a freshness window."""

import logging
from datetime import datetime, timedelta, timezone

import httpx
from sqlalchemy import delete
from sqlmodel import Session, select

from tradejournal.models.asset import AssetListEntry

logger = logging.getLogger(__name__)

COIN_LIST_URL = "https://api.coingecko.com/api/v3/coins/list"
PROVIDER = "coingecko"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands datetimes back naive
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def fetch_coin_list(client: httpx.AsyncClient) -> list[AssetListEntry]:
    """Download the full coin listing. Raises httpx errors or ValueError."""
    resp = await client.get(COIN_LIST_URL)
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, list):
        raise ValueError("Unexpected coin list response shape")

    fetched_at = datetime.now(timezone.utc)
    entries = []
    for coin in data:
        if not isinstance(coin, dict) or not coin.get("id"):
            continue
        entries.append(
            AssetListEntry(
                provider=PROVIDER,
                asset_id=str(coin["id"]),
                symbol=str(coin.get("symbol") or ""),
                name=str(coin.get("name") or ""),
                fetched_at=fetched_at,
            )
        )
    return entries


def _cached_entries(session: Session) -> list[AssetListEntry]:
    return list(
        session.exec(
            select(AssetListEntry)
            .where(AssetListEntry.provider == PROVIDER)
            .order_by(AssetListEntry.id)
        ).all()
    )


def is_fresh(entries: list[AssetListEntry], ttl_hours: float, now: datetime | None = None) -> bool:
    if not entries:
        return False
    now = now or datetime.now(timezone.utc)
    newest = max(_as_utc(e.fetched_at) for e in entries)
    return now - newest < timedelta(hours=ttl_hours)


async def load_asset_list(
    session: Session,
    client: httpx.AsyncClient,
    ttl_hours: float = 24.0,
    now: datetime | None = None,
) -> list[AssetListEntry]:
    """Return the cached listing, refreshing it first when older than ``ttl_hours``.

    A failed refresh falls back to whatever is cached (possibly nothing).
    """
    cached = _cached_entries(session)
    if is_fresh(cached, ttl_hours, now):
        return cached

    try:
        fresh = await fetch_coin_list(client)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Coin list refresh failed, using {len(cached)} cached entries: {e}")
        return cached

    if not fresh:
        logger.warning("Coin list refresh returned no entries, keeping cache")
        return cached

    session.execute(delete(AssetListEntry).where(AssetListEntry.provider == PROVIDER))
    session.add_all(fresh)
    session.commit()
    logger.info(f"Refreshed coin list: {len(fresh)} entries")
    return _cached_entries(session)
