"""Notification delivery: urgent alerts and edit-in-place periodic reports.

Reports per recipient follow a small state machine:

    no prior id        -> send        -> SENT_NEW(id)   (caller persists id)
    prior id           -> edit ok     -> EDITED(same id)
    prior id           -> edit fails  -> send -> SENT_NEW(new id) | FAILED

Nothing in here raises on transport failure; a failed delivery is logged and
reported as FAILED.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError

from tradejournal.services.analyzer import Alert, Report

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def send(self, chat_id: str, text: str, markdown: bool = False) -> int | None: ...

    async def edit(self, chat_id: str, message_id: int, text: str, markdown: bool = False) -> bool: ...


class TelegramTransport:
    """Transport over the Telegram Bot API."""

    def __init__(self, bot: Bot):
        self.bot = bot

    @classmethod
    def from_token(cls, token: str) -> "TelegramTransport":
        return cls(Bot(token))

    async def __aenter__(self) -> "TelegramTransport":
        await self.bot.initialize()
        return self

    async def __aexit__(self, *exc):
        await self.bot.shutdown()

    async def send(self, chat_id: str, text: str, markdown: bool = False) -> int | None:
        parse_mode = ParseMode.MARKDOWN if markdown else None
        try:
            message = await self.bot.send_message(chat_id=chat_id, text=text, parse_mode=parse_mode)
        except BadRequest as e:
            if markdown and "parse entities" in str(e).lower():
                logger.warning(f"Markdown rejected for {chat_id}, resending as plain text")
                return await self.send(chat_id, text, markdown=False)
            logger.warning(f"Failed to send Telegram message to {chat_id}: {e}")
            return None
        except TelegramError as e:
            logger.warning(f"Failed to send Telegram message to {chat_id}: {e}")
            return None
        return message.message_id

    async def edit(self, chat_id: str, message_id: int, text: str, markdown: bool = False) -> bool:
        parse_mode = ParseMode.MARKDOWN if markdown else None
        try:
            await self.bot.edit_message_text(
                text=text, chat_id=chat_id, message_id=message_id, parse_mode=parse_mode
            )
        except BadRequest as e:
            # Same text as last time still counts as delivered
            if "message is not modified" in str(e).lower():
                return True
            logger.info(f"Could not edit message {message_id} in {chat_id}: {e}")
            return False
        except TelegramError as e:
            logger.warning(f"Could not edit message {message_id} in {chat_id}: {e}")
            return False
        return True


class DeliveryStatus(enum.Enum):
    EDITED = "edited"
    SENT_NEW = "sent_new"
    FAILED = "failed"


@dataclass(frozen=True)
class ReportDelivery:
    status: DeliveryStatus
    message_id: int | None = None


async def deliver_report(
    transport: Transport,
    chat_id: str,
    text: str,
    last_message_id: int | None,
) -> ReportDelivery:
    """Edit the previous report in place, else send a new one."""
    if last_message_id is not None:
        try:
            if await transport.edit(chat_id, last_message_id, text, markdown=True):
                return ReportDelivery(DeliveryStatus.EDITED, last_message_id)
        except Exception as e:
            logger.warning(f"Report edit for {chat_id} raised: {e}")
        logger.info(f"Report edit failed for {chat_id}, sending a new message")

    try:
        message_id = await transport.send(chat_id, text, markdown=True)
    except Exception as e:
        logger.warning(f"Report send for {chat_id} raised: {e}")
        message_id = None

    if message_id is None:
        logger.warning(f"Report not delivered to {chat_id} this cycle")
        return ReportDelivery(DeliveryStatus.FAILED)
    return ReportDelivery(DeliveryStatus.SENT_NEW, message_id)


async def _send_alert(transport: Transport, alert: Alert) -> bool:
    try:
        return await transport.send(alert.chat_id, alert.text, markdown=True) is not None
    except Exception as e:
        logger.warning(f"{alert.kind} alert for trade {alert.trade_id} raised: {e}")
        return False


async def dispatch_alerts(transport: Transport, alerts: Iterable[Alert]) -> int:
    """Send every alert as a new message. Returns the number delivered.

    Alerts are not deduplicated across cycles: a standing condition alerts again
    on every run.
    """
    alerts = list(alerts)
    if not alerts:
        return 0
    results = await asyncio.gather(*(_send_alert(transport, a) for a in alerts))
    sent = sum(1 for ok in results if ok)
    if sent < len(alerts):
        logger.warning(f"Delivered {sent}/{len(alerts)} alerts")
    return sent


async def dispatch_reports(transport: Transport, reports: dict[str, Report]) -> dict[str, ReportDelivery]:
    """Deliver each recipient's report concurrently."""
    chat_ids = list(reports)
    deliveries = await asyncio.gather(
        *(
            deliver_report(transport, chat_id, reports[chat_id].text, reports[chat_id].last_message_id)
            for chat_id in chat_ids
        )
    )
    return dict(zip(chat_ids, deliveries))
