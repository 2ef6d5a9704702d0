"""Leveraged position valuation (isolated-margin approximation).

quantity = position_size / entry_price is fixed for the life of a trade, and
P&L scales linearly with leverage:

    pnl = (price - entry_price) * quantity * sign * leverage

Liquidation is taken as the price at which the whole margin is gone, ignoring
fees and funding.
"""

import math
from dataclasses import dataclass

from tradejournal.utils.constants import DIRECTIONS


class ValuationError(ValueError):
    """Trade data cannot be valued (bad leverage, price, size or direction)."""


@dataclass(frozen=True)
class Valuation:
    unrealized_pnl: float
    pnl_percent: float
    liquidation_price: float
    distance_to_liquidation_percent: float  # inf when liquidation price is 0


def direction_sign(direction: str) -> int:
    d = (direction or "").strip().lower()
    if d not in DIRECTIONS:
        raise ValuationError(f"Unknown direction: {direction!r}")
    return 1 if d == "long" else -1


def _check(entry_price: float, leverage: float, position_size: float | None = None):
    if leverage is None or leverage < 1:
        raise ValuationError(f"Leverage must be >= 1, got {leverage}")
    if entry_price is None or entry_price <= 0:
        raise ValuationError(f"Entry price must be > 0, got {entry_price}")
    if position_size is not None and position_size <= 0:
        raise ValuationError(f"Position size must be > 0, got {position_size}")


def _leverage(trade) -> float:
    # None means unlevered; zero stays invalid
    return 1 if trade.leverage is None else trade.leverage


def quantity(trade) -> float:
    """Units of the base asset bought with the notional at entry."""
    _check(trade.entry_price, _leverage(trade), trade.position_size)
    return trade.position_size / trade.entry_price


def compute_pnl(direction: str, entry_price: float, position_size: float, leverage: float, price: float) -> float:
    """Dollar P&L of a position marked at ``price``."""
    _check(entry_price, leverage, position_size or 0.0)
    quantity = position_size / entry_price
    return (price - entry_price) * quantity * direction_sign(direction) * leverage


def liquidation_price(direction: str, entry_price: float, leverage: float) -> float:
    _check(entry_price, leverage)
    if direction_sign(direction) > 0:
        return entry_price * (1 - 1 / leverage)
    return entry_price * (1 + 1 / leverage)


def valuate(trade, live_price: float) -> Valuation:
    """Value an open trade at ``live_price``.

    ``trade`` needs direction, entry_price, position_size and leverage.
    """
    if live_price is None or live_price <= 0:
        raise ValuationError(f"Live price must be > 0, got {live_price}")

    leverage = _leverage(trade)
    pnl = compute_pnl(trade.direction, trade.entry_price, trade.position_size, leverage, live_price)
    liq = liquidation_price(trade.direction, trade.entry_price, leverage)
    distance = abs(live_price - liq) / liq * 100 if liq > 0 else math.inf

    return Valuation(
        unrealized_pnl=pnl,
        pnl_percent=pnl / trade.position_size * 100,
        liquidation_price=liq,
        distance_to_liquidation_percent=distance,
    )


def realized_pnl(trade, exit_price: float) -> float:
    """P&L frozen onto a trade when it is closed at ``exit_price``."""
    if exit_price is None or exit_price <= 0:
        raise ValuationError(f"Exit price must be > 0, got {exit_price}")
    return compute_pnl(
        trade.direction, trade.entry_price, trade.position_size, _leverage(trade), exit_price
    )
