"""Live prices API — the same provider chain the monitor uses."""

import httpx
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from tradejournal.config import settings
from tradejournal.database import get_session
from tradejournal.engine.monitor_job import price_symbols
from tradejournal.services.price_providers import normalize_symbols

router = APIRouter(prefix="/api/prices", tags=["prices"])

MAX_SYMBOLS = 50


@router.get("")
async def live_prices(symbols: str = "", session: Session = Depends(get_session)):
    """Prices for a comma-separated list of base symbols; unresolved symbols are absent."""
    wanted = normalize_symbols(symbols.split(","))
    if len(wanted) > MAX_SYMBOLS:
        raise HTTPException(status_code=422, detail=f"At most {MAX_SYMBOLS} symbols per request")
    if not wanted:
        return {}
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        return await price_symbols(wanted, session, client, settings)
