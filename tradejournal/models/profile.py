"""Profile model — per-user notification settings and report bookkeeping."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class Profile(SQLModel, table=True):
    __tablename__ = "profile"

    id: int | None = Field(default=None, primary_key=True)
    full_name: str = ""
    telegram_chat_id: str | None = Field(default=None, unique=True, index=True)
    profit_alert_percent: float | None = None
    last_report_message_id: int | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
