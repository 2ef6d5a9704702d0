"""Alert and report decisions over valued open trades.

Per trade with a price and a reachable recipient:
- liquidation warning when price is within ``liquidation_threshold_pct`` of
  the liquidation price;
- otherwise a profit alert when the user's profit threshold is reached;
- always one block in the user's periodic report.

Liquidation takes precedence over profit: one urgent message per trade per cycle.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from telegram.helpers import escape_markdown

from tradejournal.models.profile import Profile
from tradejournal.models.trade import Trade
from tradejournal.services.valuation import Valuation

logger = logging.getLogger(__name__)

ALERT_LIQUIDATION = "liquidation"
ALERT_PROFIT = "profit"


@dataclass
class ValuedTrade:
    trade: Trade
    price: float | None = None
    valuation: Valuation | None = None  # None when the price is unresolved


@dataclass
class Alert:
    chat_id: str
    text: str
    kind: str
    trade_id: int | None = None


@dataclass
class Report:
    profile_id: int
    chat_id: str
    text: str
    last_message_id: int | None = None


@dataclass
class Analysis:
    alerts: list[Alert] = field(default_factory=list)
    reports: dict[str, Report] = field(default_factory=dict)


def _md(text: str) -> str:
    return escape_markdown(text or "", version=1)


def _trade_title(trade: Trade) -> str:
    return f"*{_md(trade.crypto_pair)}* ({trade.direction.upper()}) x{trade.leverage or 1}"


def _status_icon(pnl: float) -> str:
    return "🟢" if pnl >= 0 else "🔴"


def format_liquidation_alert(trade: Trade, price: float, valuation: Valuation) -> str:
    return (
        f"⚠️ *Liquidation warning*\n"
        f"{_trade_title(trade)} is {valuation.distance_to_liquidation_percent:.2f}% "
        f"away from liquidation.\n"
        f"   - Liquidation Price: `{valuation.liquidation_price:.4f}`\n"
        f"   - Current Price: `{price:.4f}`\n"
        f"   - PNL: {_status_icon(valuation.unrealized_pnl)} "
        f"{valuation.pnl_percent:+.2f}% ({valuation.unrealized_pnl:+.2f} USD)"
    )


def format_profit_alert(trade: Trade, price: float, valuation: Valuation, target_pct: float) -> str:
    return (
        f"🚀 *Profit target reached* ({target_pct:g}%)\n"
        f"{_trade_title(trade)}\n"
        f"   - PNL: {_status_icon(valuation.unrealized_pnl)} "
        f"{valuation.pnl_percent:+.2f}% ({valuation.unrealized_pnl:+.2f} USD)\n"
        f"   - Current Price: `{price:.4f}`"
    )


def format_report_block(trade: Trade, price: float, valuation: Valuation) -> str:
    return (
        f"🔹 {_trade_title(trade)}\n"
        f"   - PNL: {_status_icon(valuation.unrealized_pnl)} "
        f"{valuation.pnl_percent:+.2f}% ({valuation.unrealized_pnl:+.2f} USD)\n"
        f"   - Current Price: `{price:.4f}`\n"
    )


def _footer(now: datetime) -> str:
    return f"\n_Last updated: {now.strftime('%d/%m/%Y, %H:%M:%S')} UTC_"


def build_report(profile: Profile, blocks: list[str], now: datetime) -> str:
    """Assemble a report; an empty ``blocks`` list means no open positions."""
    name = _md(profile.full_name or "trader")
    if not blocks:
        return f"✅ *Hi {name}, you currently have no open positions.*\n" + _footer(now)
    header = f"📊 *Hi {name}, Your Open Positions Report:*\n\n"
    return header + "\n".join(blocks) + _footer(now)


def alert_for(trade: Trade, price: float, valuation: Valuation, profile: Profile,
              liquidation_threshold_pct: float) -> Alert | None:
    alert = None
    target = profile.profit_alert_percent
    if target is not None and valuation.pnl_percent >= target:
        alert = Alert(
            chat_id=profile.telegram_chat_id,
            text=format_profit_alert(trade, price, valuation, target),
            kind=ALERT_PROFIT,
            trade_id=trade.id,
        )
    # Liquidation overrides a profit alert on the same trade
    if valuation.distance_to_liquidation_percent < liquidation_threshold_pct:
        alert = Alert(
            chat_id=profile.telegram_chat_id,
            text=format_liquidation_alert(trade, price, valuation),
            kind=ALERT_LIQUIDATION,
            trade_id=trade.id,
        )
    return alert


def analyze(
    valued: Iterable[ValuedTrade],
    profiles: dict[int, Profile],
    liquidation_threshold_pct: float = 5.0,
    now: datetime | None = None,
) -> Analysis:
    """Partition valued trades into urgent alerts and per-recipient reports.

    ``profiles`` maps profile id to profile; profiles without a chat id are
    ignored. A profile with no open trades gets a "no open positions" report.
    A profile whose open trades are all unpriced gets no report this cycle.
    """
    now = now or datetime.now(timezone.utc)
    result = Analysis()

    blocks: dict[int, list[str]] = {}
    open_counts: dict[int, int] = {}

    for item in valued:
        trade = item.trade
        open_counts[trade.profile_id] = open_counts.get(trade.profile_id, 0) + 1

        profile = profiles.get(trade.profile_id)
        if profile is None or not profile.telegram_chat_id:
            continue
        if item.price is None or item.valuation is None:
            logger.debug(f"Trade {trade.id} ({trade.crypto_pair}) has no price, skipping")
            continue

        alert = alert_for(trade, item.price, item.valuation, profile, liquidation_threshold_pct)
        if alert is not None:
            result.alerts.append(alert)

        blocks.setdefault(trade.profile_id, []).append(
            format_report_block(trade, item.price, item.valuation)
        )

    for profile_id, profile in profiles.items():
        if not profile.telegram_chat_id:
            continue
        has_open = open_counts.get(profile_id, 0) > 0
        user_blocks = blocks.get(profile_id, [])
        if has_open and not user_blocks:
            continue
        result.reports[profile.telegram_chat_id] = Report(
            profile_id=profile_id,
            chat_id=profile.telegram_chat_id,
            text=build_report(profile, user_blocks, now),
            last_message_id=profile.last_report_message_id,
        )

    return result
