"""Tests for the trade lifecycle and journal statistics."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from tradejournal.models.trade import STATUS_CLOSED, STATUS_OPEN
from tradejournal.schemas.trade import TradeCreate, TradeUpdate
from tradejournal.services import trade_service
from tradejournal.services.trade_service import TradeNotFound, TradeStateError
from tests.helpers import make_profile, make_trade


@pytest.fixture
def profile(session):
    p = make_profile()
    session.add(p)
    session.commit()
    session.refresh(p)
    return p


def _create(session, profile, **overrides):
    fields = dict(
        profile_id=profile.id,
        crypto_pair="btc/usdt",
        direction="Long",
        entry_price=100.0,
        position_size=1000.0,
        leverage=10,
    )
    fields.update(overrides)
    return trade_service.create_trade(session, TradeCreate(**fields))


def test_create_normalizes_and_opens(session, profile):
    trade = _create(session, profile)
    assert trade.crypto_pair == "BTC/USDT"
    assert trade.direction == "long"
    assert trade.status == STATUS_OPEN
    assert trade.pnl is None


def test_create_with_exit_price_is_stored_closed(session, profile):
    trade = _create(session, profile, exit_price=105.0)
    assert trade.status == STATUS_CLOSED
    assert trade.pnl == 500.0
    assert trade.closed_at is not None


def test_close_freezes_pnl(session, profile):
    trade = _create(session, profile, direction="short")
    closed = trade_service.close_trade(session, trade.id, 95.0)
    assert closed.status == STATUS_CLOSED
    assert closed.exit_price == 95.0
    assert closed.pnl == 500.0


def test_close_twice_is_rejected(session, profile):
    trade = _create(session, profile)
    trade_service.close_trade(session, trade.id, 95.0)
    with pytest.raises(TradeStateError):
        trade_service.close_trade(session, trade.id, 96.0)


def test_close_missing_trade(session):
    with pytest.raises(TradeNotFound):
        trade_service.close_trade(session, 999, 1.0)


def test_partial_close_splits_off_closed_trade(session, profile):
    trade = _create(session, profile, notes="breakout", strategy="trend")
    part, remaining = trade_service.partial_close(session, trade.id, 25, 110.0)

    assert part.id != trade.id
    assert part.status == STATUS_CLOSED
    assert part.position_size == pytest.approx(250.0)
    assert part.pnl == pytest.approx(250.0)
    assert part.strategy == "trend"
    assert f"#{trade.id}" in part.notes

    assert remaining.id == trade.id
    assert remaining.status == STATUS_OPEN
    assert remaining.position_size == pytest.approx(750.0)
    assert remaining.notes == "breakout"


def test_partial_close_of_everything_closes_trade(session, profile):
    trade = _create(session, profile)
    part, remaining = trade_service.partial_close(session, trade.id, 100, 90.0)
    assert remaining is None
    assert part.id == trade.id
    assert part.pnl == pytest.approx(-1000.0)


def test_partial_close_rejects_bad_percent(session, profile):
    trade = _create(session, profile)
    with pytest.raises(ValueError):
        trade_service.partial_close(session, trade.id, 0, 90.0)


def test_edit_of_closed_trade_recomputes_pnl(session, profile):
    trade = _create(session, profile, exit_price=105.0)
    updated = trade_service.update_trade(session, trade.id, TradeUpdate(entry_price=104.0))
    assert updated.pnl == pytest.approx((105 - 104) * (1000 / 104) * 10, abs=0.01)


def test_journal_edit_keeps_frozen_pnl(session, profile):
    trade = _create(session, profile, exit_price=105.0)
    updated = trade_service.update_trade(session, trade.id, TradeUpdate(emotions="calm"))
    assert updated.pnl == 500.0
    assert updated.emotions == "calm"


def test_setting_exit_price_on_open_trade_closes_it(session, profile):
    trade = _create(session, profile)
    updated = trade_service.update_trade(session, trade.id, TradeUpdate(exit_price=105.0))
    assert updated.status == STATUS_CLOSED
    assert updated.pnl == 500.0


def test_edit_cannot_null_a_required_field(session, profile):
    trade = _create(session, profile)
    with pytest.raises(ValidationError):
        trade_service.update_trade(session, trade.id, TradeUpdate(entry_price=None))


def test_delete(session, profile):
    trade = _create(session, profile)
    trade_service.delete_trade(session, trade.id)
    with pytest.raises(TradeNotFound):
        trade_service.get_trade(session, trade.id)


def test_schema_rejects_bad_input():
    with pytest.raises(ValidationError):
        TradeCreate(profile_id=1, crypto_pair="BTC", direction="up", entry_price=1, position_size=1)
    with pytest.raises(ValidationError):
        TradeCreate(profile_id=1, crypto_pair="BTC", direction="long", entry_price=1, position_size=1, leverage=0)
    with pytest.raises(ValidationError):
        TradeCreate(profile_id=1, crypto_pair=" /USDT", direction="long", entry_price=1, position_size=1)


def test_journal_stats():
    jan = datetime(2026, 1, 10, tzinfo=timezone.utc)
    feb = datetime(2026, 2, 10, tzinfo=timezone.utc)
    trades = [
        make_trade(id=1, status=STATUS_CLOSED, pnl=300.0, closed_at=jan),
        make_trade(id=2, crypto_pair="ETH/USDT", status=STATUS_CLOSED, pnl=-100.0, closed_at=feb),
        make_trade(id=3, status=STATUS_OPEN),
        make_trade(id=4, status=STATUS_OPEN),
    ]
    stats = trade_service.journal_stats(trades, unrealized={3: 50.0})

    assert stats["total_trades"] == 4
    assert stats["open_trades"] == 2
    assert stats["closed_trades"] == 2
    assert stats["realized_pnl"] == 200.0
    assert stats["unrealized_pnl"] == 50.0
    assert stats["total_pnl"] == 250.0
    assert stats["win_rate"] == 50.0
    assert [p["pnl"] for p in stats["pnl_over_time"]] == [300.0, 200.0]
    assert stats["pnl_by_pair"][0] == {"pair": "BTC/USDT", "pnl": 300.0, "trades": 1}
    assert stats["monthly_pnl"] == [
        {"month": "2026-01", "pnl": 300.0},
        {"month": "2026-02", "pnl": -100.0},
    ]


def test_journal_stats_empty():
    stats = trade_service.journal_stats([])
    assert stats["win_rate"] == 0.0
    assert stats["total_pnl"] == 0.0
