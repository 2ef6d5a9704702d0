"""Pydantic schemas for the Trade API."""

from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from tradejournal.utils.constants import DIRECTIONS


def _normalize_direction(value: str) -> str:
    text = value.strip().lower()
    if text not in DIRECTIONS:
        raise ValueError(f"must be one of: {', '.join(DIRECTIONS)}")
    return text


def _normalize_pair(value: str) -> str:
    text = value.strip().upper()
    if not text or not text.split("/")[0].strip():
        raise ValueError("must not be empty")
    return text


class TradeCreate(BaseModel):
    profile_id: int
    date_time: datetime | None = None
    crypto_pair: str = Field(min_length=1, max_length=32)
    direction: str
    entry_price: float = Field(gt=0)
    position_size: float = Field(gt=0)
    leverage: int = Field(default=1, ge=1, le=200)
    exit_price: float | None = Field(default=None, gt=0)
    stop_loss: float | None = Field(default=None, gt=0)
    take_profit: float | None = Field(default=None, gt=0)
    notes: str | None = None
    strategy: str | None = None
    market_conditions: str | None = None
    news_and_fundamentals: str | None = None
    emotions: str | None = None
    plan_adherence: str | None = None
    mistakes: str | None = None

    @field_validator("crypto_pair")
    @classmethod
    def _pair(cls, value: str) -> str:
        return _normalize_pair(value)

    @field_validator("direction")
    @classmethod
    def _direction(cls, value: str) -> str:
        return _normalize_direction(value)


class TradeUpdate(BaseModel):
    date_time: datetime | None = None
    crypto_pair: str | None = Field(default=None, min_length=1, max_length=32)
    direction: str | None = None
    entry_price: float | None = Field(default=None, gt=0)
    position_size: float | None = Field(default=None, gt=0)
    leverage: int | None = Field(default=None, ge=1, le=200)
    exit_price: float | None = Field(default=None, gt=0)
    stop_loss: float | None = Field(default=None, gt=0)
    take_profit: float | None = Field(default=None, gt=0)
    notes: str | None = None
    strategy: str | None = None
    market_conditions: str | None = None
    news_and_fundamentals: str | None = None
    emotions: str | None = None
    plan_adherence: str | None = None
    mistakes: str | None = None

    @field_validator("crypto_pair")
    @classmethod
    def _optional_pair(cls, value: str | None) -> str | None:
        return None if value is None else _normalize_pair(value)

    @field_validator("direction")
    @classmethod
    def _optional_direction(cls, value: str | None) -> str | None:
        return None if value is None else _normalize_direction(value)


class TradeRead(BaseModel):
    id: int
    profile_id: int
    date_time: datetime
    crypto_pair: str
    direction: str
    entry_price: float
    position_size: float
    leverage: int
    exit_price: float | None
    stop_loss: float | None
    take_profit: float | None
    pnl: float | None
    status: str
    closed_at: datetime | None
    notes: str | None
    strategy: str | None
    market_conditions: str | None
    news_and_fundamentals: str | None
    emotions: str | None
    plan_adherence: str | None
    mistakes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class CloseRequest(BaseModel):
    exit_price: float = Field(gt=0)


class PartialCloseRequest(BaseModel):
    percent: float = Field(gt=0, le=100)
    exit_price: float = Field(gt=0)


class PartialCloseResponse(BaseModel):
    closed: TradeRead
    remaining: TradeRead | None = None
