"""Trade journal API."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
from sqlmodel import Session, select

from tradejournal.database import get_session
from tradejournal.models.profile import Profile
from tradejournal.models.trade import Trade
from tradejournal.schemas.trade import (
    CloseRequest,
    PartialCloseRequest,
    PartialCloseResponse,
    TradeCreate,
    TradeRead,
    TradeUpdate,
)
from tradejournal.services import trade_service
from tradejournal.services.trade_service import TradeNotFound, TradeStateError
from tradejournal.services.valuation import ValuationError

router = APIRouter(prefix="/api/trades", tags=["trades"])


@router.get("", response_model=list[TradeRead])
def list_trades(
    profile_id: int | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
    session: Session = Depends(get_session),
):
    stmt = select(Trade).order_by(Trade.date_time.desc())
    if profile_id is not None:
        stmt = stmt.where(Trade.profile_id == profile_id)
    if status is not None:
        stmt = stmt.where(Trade.status == status)
    stmt = stmt.offset(offset).limit(limit)
    return session.exec(stmt).all()


@router.get("/{trade_id}", response_model=TradeRead)
def get_trade(trade_id: int, session: Session = Depends(get_session)):
    trade = session.get(Trade, trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail="Trade not found")
    return trade


@router.post("", response_model=TradeRead, status_code=201)
def create_trade(data: TradeCreate, session: Session = Depends(get_session)):
    if not session.get(Profile, data.profile_id):
        raise HTTPException(status_code=404, detail="Profile not found")
    return trade_service.create_trade(session, data)


@router.put("/{trade_id}", response_model=TradeRead)
def update_trade(trade_id: int, data: TradeUpdate, session: Session = Depends(get_session)):
    try:
        return trade_service.update_trade(session, trade_id, data)
    except TradeNotFound:
        raise HTTPException(status_code=404, detail="Trade not found")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))
    except TradeStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/{trade_id}", status_code=204)
def delete_trade(trade_id: int, session: Session = Depends(get_session)):
    try:
        trade_service.delete_trade(session, trade_id)
    except TradeNotFound:
        raise HTTPException(status_code=404, detail="Trade not found")


@router.post("/{trade_id}/close", response_model=TradeRead)
def close_trade(trade_id: int, body: CloseRequest, session: Session = Depends(get_session)):
    """Close a trade at the given exit price (live or manually entered)."""
    try:
        return trade_service.close_trade(session, trade_id, body.exit_price)
    except TradeNotFound:
        raise HTTPException(status_code=404, detail="Trade not found")
    except TradeStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValuationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/{trade_id}/partial-close", response_model=PartialCloseResponse)
def partial_close(trade_id: int, body: PartialCloseRequest, session: Session = Depends(get_session)):
    try:
        closed, remaining = trade_service.partial_close(session, trade_id, body.percent, body.exit_price)
    except TradeNotFound:
        raise HTTPException(status_code=404, detail="Trade not found")
    except TradeStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValuationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return PartialCloseResponse(
        closed=TradeRead.model_validate(closed),
        remaining=TradeRead.model_validate(remaining) if remaining else None,
    )
