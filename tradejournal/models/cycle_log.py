"""CycleLog model — one row per monitor run."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class CycleLog(SQLModel, table=True):
    __tablename__ = "cycle_log"

    id: int | None = Field(default=None, primary_key=True)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    kind: str  # "alerts" or "report"
    status: str  # "success", "error"
    open_trades: int = 0
    priced_trades: int = 0
    alerts_sent: int = 0
    reports_delivered: int = 0
    message: str | None = None
