"""AssetListEntry model — cached provider asset listing used for symbol lookup."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class AssetListEntry(SQLModel, table=True):
    __tablename__ = "asset_list_entry"

    id: int | None = Field(default=None, primary_key=True)
    provider: str = Field(default="coingecko", index=True)
    asset_id: str  # provider-native id, e.g. "bitcoin"
    symbol: str  # ticker as listed, e.g. "btc"
    name: str  # display name, e.g. "Bitcoin"
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
