"""Trade model — one manually journaled position, open until an exit price is recorded."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field

STATUS_OPEN = "open"
STATUS_CLOSED = "closed"


class Trade(SQLModel, table=True):
    __tablename__ = "trade"

    id: int | None = Field(default=None, primary_key=True)
    profile_id: int = Field(foreign_key="profile.id", index=True)
    date_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    crypto_pair: str  # free text, e.g. "BTC/USDT"
    direction: str  # "long" or "short"
    entry_price: float
    position_size: float  # notional in quote currency
    leverage: int = 1
    exit_price: float | None = None
    stop_loss: float | None = None
    take_profit: float | None = None
    pnl: float | None = None  # realized, frozen at close
    status: str = Field(default=STATUS_OPEN, index=True)
    closed_at: datetime | None = None

    # Journal fields, passed through untouched
    notes: str | None = None
    strategy: str | None = None
    market_conditions: str | None = None
    news_and_fundamentals: str | None = None
    emotions: str | None = None
    plan_adherence: str | None = None
    mistakes: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
