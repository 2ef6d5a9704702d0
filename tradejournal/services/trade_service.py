"""Trade lifecycle: create, close, partial close, corrective edits, journal stats.

Realized P&L is computed once, when a trade is closed, with the same formula
the monitor uses for unrealized P&L, and is never re-marked against live
prices afterwards. Only a corrective edit of a closed trade recomputes it, at
the corrected exit price.
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone

from sqlmodel import Session

from tradejournal.models.trade import Trade, STATUS_OPEN, STATUS_CLOSED
from tradejournal.schemas.trade import TradeCreate, TradeUpdate
from tradejournal.services.valuation import realized_pnl

logger = logging.getLogger(__name__)

JOURNAL_FIELDS = (
    "stop_loss",
    "take_profit",
    "strategy",
    "market_conditions",
    "news_and_fundamentals",
    "emotions",
    "plan_adherence",
    "mistakes",
)

# Fields whose change invalidates a frozen P&L
_PNL_INPUTS = {"direction", "entry_price", "position_size", "leverage", "exit_price"}


class TradeNotFound(LookupError):
    pass


class TradeStateError(Exception):
    """Operation not allowed in the trade's current status."""


def get_trade(session: Session, trade_id: int) -> Trade:
    trade = session.get(Trade, trade_id)
    if trade is None:
        raise TradeNotFound(f"Trade {trade_id} not found")
    return trade


def _freeze(trade: Trade, exit_price: float, closed_at: datetime | None = None):
    trade.exit_price = exit_price
    trade.pnl = round(realized_pnl(trade, exit_price), 2)
    trade.status = STATUS_CLOSED
    trade.closed_at = closed_at or trade.closed_at or datetime.now(timezone.utc)


def create_trade(session: Session, data: TradeCreate) -> Trade:
    """Journal a new trade; one entered with an exit price is stored closed."""
    payload = data.model_dump()
    if payload.get("date_time") is None:
        payload.pop("date_time")
    trade = Trade(**payload)
    if trade.exit_price is not None:
        _freeze(trade, trade.exit_price)
    session.add(trade)
    session.commit()
    session.refresh(trade)
    logger.info(f"Trade {trade.id} created: {trade.crypto_pair} {trade.direction} ({trade.status})")
    return trade


def close_trade(session: Session, trade_id: int, exit_price: float) -> Trade:
    trade = get_trade(session, trade_id)
    if trade.status == STATUS_CLOSED:
        raise TradeStateError(f"Trade {trade_id} is already closed")

    _freeze(trade, exit_price)
    session.add(trade)
    session.commit()
    session.refresh(trade)
    logger.info(f"Trade {trade.id} closed at {exit_price}: PnL={trade.pnl:.2f}")
    return trade


def partial_close(session: Session, trade_id: int, percent: float, exit_price: float) -> tuple[Trade, Trade | None]:
    """Close ``percent`` of an open trade's notional at ``exit_price``.

    Returns (closed_part, remaining). At 100% the trade itself is closed and
    remaining is None; otherwise a new closed trade is split off and the open
    trade keeps the rest of the notional (same entry, so same quantity per dollar).
    """
    if not 0 < percent <= 100:
        raise ValueError(f"Percent must be in (0, 100], got {percent}")

    trade = get_trade(session, trade_id)
    if trade.status == STATUS_CLOSED:
        raise TradeStateError(f"Trade {trade_id} is already closed")

    if percent == 100:
        return close_trade(session, trade_id, exit_price), None

    closed_size = trade.position_size * percent / 100
    part = Trade(
        profile_id=trade.profile_id,
        date_time=trade.date_time,
        crypto_pair=trade.crypto_pair,
        direction=trade.direction,
        entry_price=trade.entry_price,
        position_size=closed_size,
        leverage=trade.leverage,
        notes=f"Partial close ({percent:g}%) of trade #{trade.id}",
        **{f: getattr(trade, f) for f in JOURNAL_FIELDS},
    )
    _freeze(part, exit_price)
    trade.position_size -= closed_size

    session.add(part)
    session.add(trade)
    session.commit()
    session.refresh(part)
    session.refresh(trade)
    logger.info(
        f"Trade {trade.id} partially closed ({percent:g}%) at {exit_price}: "
        f"PnL={part.pnl:.2f}, remaining size={trade.position_size:.2f}"
    )
    return part, trade


def update_trade(session: Session, trade_id: int, data: TradeUpdate) -> Trade:
    """Apply a corrective edit. Raises pydantic ValidationError on an invalid merge."""
    trade = get_trade(session, trade_id)
    update_data = data.model_dump(exclude_unset=True)

    # Validate the merged record so partial updates cannot bypass field rules
    merged = {**trade.model_dump(), **update_data}
    TradeCreate.model_validate(merged)

    for key, value in update_data.items():
        setattr(trade, key, value)

    if trade.exit_price is not None and (
        trade.status == STATUS_OPEN or _PNL_INPUTS & update_data.keys()
    ):
        _freeze(trade, trade.exit_price)
    elif trade.status == STATUS_CLOSED and trade.exit_price is None:
        raise TradeStateError("A closed trade must keep an exit price")

    session.add(trade)
    session.commit()
    session.refresh(trade)
    return trade


def delete_trade(session: Session, trade_id: int):
    trade = get_trade(session, trade_id)
    session.delete(trade)
    session.commit()


def journal_stats(trades: list[Trade], unrealized: dict[int, float] | None = None) -> dict:
    """Dashboard and analytics figures for a user's journal.

    ``unrealized`` maps open trade id to live P&L; open trades without a
    price contribute nothing.
    """
    unrealized = unrealized or {}
    closed = [t for t in trades if t.status == STATUS_CLOSED and t.pnl is not None]
    closed.sort(key=lambda t: t.closed_at or t.date_time)
    open_trades = [t for t in trades if t.status == STATUS_OPEN]

    realized = sum(t.pnl for t in closed)
    live = sum(unrealized.get(t.id, 0.0) for t in open_trades)
    wins = sum(1 for t in closed if t.pnl > 0)
    losses = sum(1 for t in closed if t.pnl < 0)
    closed_count = sum(1 for t in trades if t.status == STATUS_CLOSED)

    running = 0.0
    pnl_over_time = []
    for t in closed:
        running += t.pnl
        pnl_over_time.append({
            "date": (t.closed_at or t.date_time).isoformat(),
            "pnl": round(running, 2),
            "trade_pnl": round(t.pnl, 2),
        })

    by_pair: dict[str, dict] = defaultdict(lambda: {"pnl": 0.0, "trades": 0})
    by_month: dict[str, float] = defaultdict(float)
    for t in closed:
        by_pair[t.crypto_pair]["pnl"] += t.pnl
        by_pair[t.crypto_pair]["trades"] += 1
        by_month[(t.closed_at or t.date_time).strftime("%Y-%m")] += t.pnl

    return {
        "total_trades": len(trades),
        "open_trades": len(open_trades),
        "closed_trades": closed_count,
        "realized_pnl": round(realized, 2),
        "unrealized_pnl": round(live, 2),
        "total_pnl": round(realized + live, 2),
        "win_rate": round(wins / closed_count * 100, 1) if closed_count else 0.0,
        "wins": wins,
        "losses": losses,
        "pnl_over_time": pnl_over_time,
        "pnl_by_pair": sorted(
            (
                {"pair": pair, "pnl": round(v["pnl"], 2), "trades": v["trades"]}
                for pair, v in by_pair.items()
            ),
            key=lambda row: row["pnl"],
            reverse=True,
        ),
        "monthly_pnl": [
            {"month": month, "pnl": round(pnl, 2)} for month, pnl in sorted(by_month.items())
        ],
    }
