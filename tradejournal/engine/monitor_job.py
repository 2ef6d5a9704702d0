"""Monitor cycle: the function APScheduler calls on each interval.

It orchestrates:
load open trades + profiles → resolve symbols → price chain → valuation →
alert/report analysis → Telegram delivery → persist report message ids.

Failure handling by stage:
- store read fails: the cycle aborts with a 500 result and the admin chat is told;
- prices missing: affected trades are skipped silently;
- delivery fails: logged, the rest of the batch continues;
- store write after delivery fails: logged, messages already sent stay sent.
"""

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx
from sqlmodel import Session, select

from tradejournal.config import Settings, settings
from tradejournal.database import engine as default_engine
from tradejournal.models.cycle_log import CycleLog
from tradejournal.models.profile import Profile
from tradejournal.models.trade import Trade, STATUS_OPEN
from tradejournal.services.analyzer import ValuedTrade, Report, analyze
from tradejournal.services.asset_list import load_asset_list
from tradejournal.services.notifier import (
    DeliveryStatus,
    ReportDelivery,
    TelegramTransport,
    Transport,
    dispatch_alerts,
    dispatch_reports,
)
from tradejournal.services.price_providers import CoinGeckoProvider, PriceProviderChain, build_price_chain
from tradejournal.services.symbol_resolver import base_symbol
from tradejournal.services.valuation import ValuationError, valuate
from tradejournal.utils.constants import CYCLE_KINDS, CYCLE_REPORT

logger = logging.getLogger(__name__)

PRICES_UNAVAILABLE = "Live prices are unavailable right now. Please try again in a few minutes."


@dataclass
class CycleResult:
    status_code: int
    message: str
    open_trades: int = 0
    priced_trades: int = 0
    alerts_sent: int = 0
    reports_delivered: int = 0


def load_monitor_inputs(session: Session) -> tuple[list[Trade], dict[int, Profile]]:
    """Open trades plus every profile that can receive messages."""
    trades = session.exec(
        select(Trade).where(Trade.status == STATUS_OPEN).order_by(Trade.date_time)
    ).all()
    profiles = session.exec(
        select(Profile).where(Profile.telegram_chat_id.is_not(None))  # type: ignore[union-attr]
    ).all()
    return list(trades), {p.id: p for p in profiles}


async def price_trades(
    trades: list[Trade],
    session: Session,
    client: httpx.AsyncClient,
    config: Settings,
    chain: PriceProviderChain | None = None,
) -> dict[str, float]:
    """Resolve live prices for the base symbols of ``trades``."""
    symbols = {base_symbol(t.crypto_pair) for t in trades}
    return await price_symbols(symbols, session, client, config, chain)


async def price_symbols(
    symbols: set[str],
    session: Session,
    client: httpx.AsyncClient,
    config: Settings,
    chain: PriceProviderChain | None = None,
) -> dict[str, float]:
    symbols = {s for s in symbols if s}
    if not symbols:
        return {}

    chain = chain or build_price_chain(client, config)
    asset_list = []
    if any(isinstance(p, CoinGeckoProvider) for p in chain.providers):
        try:
            asset_list = await load_asset_list(session, client, config.asset_list_ttl_hours)
        except Exception as e:
            logger.warning(f"Asset list unavailable: {e}")
            session.rollback()

    return await chain.get_live_prices(symbols, asset_list)


def valuate_trades(trades: list[Trade], prices: dict[str, float]) -> list[ValuedTrade]:
    valued = []
    for trade in trades:
        price = prices.get(base_symbol(trade.crypto_pair))
        if price is None:
            valued.append(ValuedTrade(trade))
            continue
        try:
            valued.append(ValuedTrade(trade, price, valuate(trade, price)))
        except ValuationError as e:
            logger.warning(f"Trade {trade.id} ({trade.crypto_pair}) cannot be valued: {e}")
            valued.append(ValuedTrade(trade))
    return valued


def remember_report_message(engine, profile_id: int, message_id: int):
    """Persist the id of a freshly sent report so the next cycle edits it."""
    with Session(engine) as session:
        profile = session.get(Profile, profile_id)
        if profile is None:
            return
        profile.last_report_message_id = message_id
        profile.updated_at = datetime.now(timezone.utc)
        session.add(profile)
        session.commit()


def _persist_deliveries(engine, reports: dict[str, Report], deliveries: dict[str, ReportDelivery]) -> int:
    """Store new message ids; returns how many reports reached their recipient."""
    delivered = 0
    for chat_id, delivery in deliveries.items():
        if delivery.status == DeliveryStatus.FAILED:
            continue
        delivered += 1
        if delivery.status != DeliveryStatus.SENT_NEW:
            continue
        report = reports[chat_id]
        try:
            remember_report_message(engine, report.profile_id, delivery.message_id)
        except Exception as e:
            logger.error(
                f"Could not store report message id {delivery.message_id} "
                f"for profile {report.profile_id}: {e}"
            )
    return delivered


def _log_cycle(engine, kind: str, status: str, **fields):
    try:
        with Session(engine) as session:
            session.add(CycleLog(kind=kind, status=status, **fields))
            session.commit()
    except Exception as e:
        logger.warning(f"Could not write cycle log: {e}")


async def _notify_admin(transport: Transport, config: Settings, message: str):
    if config.admin_chat_id:
        await transport.send(config.admin_chat_id, message)


async def run_monitor_cycle(
    kind: str = CYCLE_REPORT,
    engine=None,
    transport: Transport | None = None,
    client: httpx.AsyncClient | None = None,
    chain: PriceProviderChain | None = None,
    config: Settings | None = None,
) -> CycleResult:
    """Run one monitoring cycle.

    ``kind`` is "alerts" (urgent alerts only) or "report" (alerts plus the
    periodic report). Collaborators default to the configured ones; tests pass
    fakes.
    """
    if kind not in CYCLE_KINDS:
        raise ValueError(f"Unknown cycle kind: {kind}")
    config = config or settings
    engine = engine or default_engine

    async with AsyncExitStack() as stack:
        if transport is None:
            if not config.telegram_bot_token:
                logger.warning("Telegram bot token not configured, skipping cycle")
                return CycleResult(200, "Skipped: Telegram not configured")
            transport = await stack.enter_async_context(
                TelegramTransport.from_token(config.telegram_bot_token)
            )
        if client is None:
            client = await stack.enter_async_context(
                httpx.AsyncClient(timeout=config.http_timeout_seconds)
            )

        return await _run_cycle(kind, engine, transport, client, chain, config)


async def _run_cycle(kind, engine, transport, client, chain, config) -> CycleResult:
    logger.info(f"[{kind}] Starting cycle")

    try:
        with Session(engine) as session:
            trades, profiles = load_monitor_inputs(session)
    except Exception as e:
        logger.error(f"[{kind}] Could not load trades: {e}", exc_info=True)
        await _notify_admin(transport, config, f"[{kind}] monitor cycle failed: {e}")
        _log_cycle(engine, kind, "error", message=f"Load failed: {e}")
        return CycleResult(500, f"Error: {e}")

    # Trades nobody can be notified about are neither priced nor valued
    trades = [t for t in trades if t.profile_id in profiles]

    with Session(engine) as session:
        prices = await price_trades(trades, session, client, config, chain)

    valued = valuate_trades(trades, prices)
    priced = sum(1 for v in valued if v.valuation is not None)
    analysis = analyze(valued, profiles, liquidation_threshold_pct=config.liquidation_alert_pct)

    alerts_sent = await dispatch_alerts(transport, analysis.alerts)

    reports_delivered = 0
    if kind == CYCLE_REPORT:
        deliveries = await dispatch_reports(transport, analysis.reports)
        reports_delivered = _persist_deliveries(engine, analysis.reports, deliveries)

    message = (
        f"{len(trades)} open trades, {priced} priced, {alerts_sent} alerts sent"
        + (f", {reports_delivered}/{len(analysis.reports)} reports delivered" if kind == CYCLE_REPORT else "")
    )
    logger.info(f"[{kind}] Cycle complete: {message}")
    _log_cycle(
        engine, kind, "success",
        open_trades=len(trades),
        priced_trades=priced,
        alerts_sent=alerts_sent,
        reports_delivered=reports_delivered,
        message=message,
    )
    return CycleResult(
        200, message,
        open_trades=len(trades),
        priced_trades=priced,
        alerts_sent=alerts_sent,
        reports_delivered=reports_delivered,
    )


async def report_for_chat(
    chat_id: str,
    engine=None,
    client: httpx.AsyncClient | None = None,
    chain: PriceProviderChain | None = None,
    config: Settings | None = None,
) -> tuple[int, str] | None:
    """Build an on-demand report for one chat.

    Returns (profile_id, text), or None when no profile owns ``chat_id``.
    """
    config = config or settings
    engine = engine or default_engine

    async with AsyncExitStack() as stack:
        if client is None:
            client = await stack.enter_async_context(
                httpx.AsyncClient(timeout=config.http_timeout_seconds)
            )

        with Session(engine) as session:
            profile = session.exec(
                select(Profile).where(Profile.telegram_chat_id == chat_id)
            ).first()
            if profile is None:
                return None
            trades = list(session.exec(
                select(Trade)
                .where(Trade.profile_id == profile.id, Trade.status == STATUS_OPEN)
                .order_by(Trade.date_time)
            ).all())

        # Separate session: an asset list refresh commits and would expire the rows above
        with Session(engine) as session:
            prices = await price_trades(trades, session, client, config, chain)

    analysis = analyze(
        valuate_trades(trades, prices),
        {profile.id: profile},
        liquidation_threshold_pct=config.liquidation_alert_pct,
    )
    report = analysis.reports.get(chat_id)
    if report is None:
        return profile.id, PRICES_UNAVAILABLE
    return profile.id, report.text
