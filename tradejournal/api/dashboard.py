"""Dashboard API — journal stats plus live marks for open positions."""

import logging
import math

import httpx
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from tradejournal.config import settings
from tradejournal.database import get_session
from tradejournal.engine.monitor_job import price_trades, valuate_trades
from tradejournal.models.profile import Profile
from tradejournal.models.trade import Trade, STATUS_OPEN
from tradejournal.services.trade_service import journal_stats
from tradejournal.services.valuation import quantity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _finite(value: float | None) -> float | None:
    if value is None or math.isinf(value) or math.isnan(value):
        return None
    return round(value, 2)


@router.get("/{profile_id}")
async def dashboard(profile_id: int, session: Session = Depends(get_session)):
    """Aggregated journal stats with open positions valued at live prices."""
    if not session.get(Profile, profile_id):
        raise HTTPException(status_code=404, detail="Profile not found")

    trades = list(session.exec(
        select(Trade).where(Trade.profile_id == profile_id).order_by(Trade.date_time)
    ).all())
    open_trades = [t for t in trades if t.status == STATUS_OPEN]

    prices: dict[str, float] = {}
    if open_trades:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            prices = await price_trades(open_trades, session, client, settings)

    valued = valuate_trades(open_trades, prices)
    unrealized = {v.trade.id: v.valuation.unrealized_pnl for v in valued if v.valuation}

    stats = journal_stats(trades, unrealized)
    stats["open_positions"] = [
        {
            "trade_id": v.trade.id,
            "crypto_pair": v.trade.crypto_pair,
            "direction": v.trade.direction,
            "entry_price": v.trade.entry_price,
            "position_size": v.trade.position_size,
            "leverage": v.trade.leverage,
            "quantity": quantity(v.trade) if v.valuation else None,
            "live_price": v.price,
            "unrealized_pnl": _finite(v.valuation.unrealized_pnl) if v.valuation else None,
            "pnl_percent": _finite(v.valuation.pnl_percent) if v.valuation else None,
            "liquidation_price": _finite(v.valuation.liquidation_price) if v.valuation else None,
            # Unbounded distance (no liquidation) serializes as null
            "distance_to_liquidation_percent": (
                _finite(v.valuation.distance_to_liquidation_percent) if v.valuation else None
            ),
        }
        for v in valued
    ]
    return stats
