"""Pydantic schemas for the Profile API."""

from datetime import datetime
from pydantic import BaseModel, Field, field_validator


def _clean_chat_id(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if not text.lstrip("-").isdigit():
        raise ValueError("must be a numeric Telegram chat id")
    return text


class ProfileCreate(BaseModel):
    full_name: str = Field(default="", max_length=120)
    telegram_chat_id: str | None = None
    profit_alert_percent: float | None = Field(default=None, gt=0)

    @field_validator("telegram_chat_id")
    @classmethod
    def _chat_id(cls, value: str | None) -> str | None:
        return _clean_chat_id(value)


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, max_length=120)
    telegram_chat_id: str | None = None
    profit_alert_percent: float | None = Field(default=None, gt=0)

    @field_validator("telegram_chat_id")
    @classmethod
    def _optional_chat_id(cls, value: str | None) -> str | None:
        return _clean_chat_id(value)


class ProfileRead(BaseModel):
    id: int
    full_name: str
    telegram_chat_id: str | None
    profit_alert_percent: float | None
    last_report_message_id: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
