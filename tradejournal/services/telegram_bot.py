"""Telegram bot for on-demand position reports."""

import asyncio
import logging
import threading
from typing import Optional

from telegram import Update
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
)

from tradejournal.config import settings
from tradejournal.services.notifier import TelegramTransport

logger = logging.getLogger(__name__)

_bot_instance: Optional["TelegramBot"] = None

PROFILE_NOT_FOUND = (
    "Your profile was not found. Please register your Chat ID in the web app first.\n"
    "Your Chat ID is: {chat_id}"
)


class TelegramBot:
    """Telegram bot running in a background thread with its own event loop."""

    def __init__(self, token: str):
        self.token = token
        self._app: Optional[Application] = None
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def _cmd_chatid(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not update.effective_chat or not update.message:
            return
        await update.message.reply_text(f"Your Chat ID is: {update.effective_chat.id}")

    async def _cmd_report(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Send a fresh positions report; later periodic reports edit this message."""
        if not update.effective_chat or not update.message:
            return

        from tradejournal.engine.monitor_job import (
            PRICES_UNAVAILABLE,
            report_for_chat,
            remember_report_message,
        )
        from tradejournal.database import engine

        chat_id = str(update.effective_chat.id)
        result = await report_for_chat(chat_id)
        if result is None:
            await update.message.reply_text(PROFILE_NOT_FOUND.format(chat_id=chat_id))
            return

        profile_id, text = result
        if text == PRICES_UNAVAILABLE:
            # Not a report: the stored report message stays the edit target
            await update.message.reply_text(text)
            return

        # Falls back to plain text when Telegram rejects the Markdown
        message_id = await TelegramTransport(context.bot).send(chat_id, text, markdown=True)
        if message_id is None:
            return

        try:
            remember_report_message(engine, profile_id, message_id)
        except Exception as e:
            logger.error(f"Could not store report message id for profile {profile_id}: {e}")

    def _run_bot(self):
        """Run the bot in a background thread with its own event loop."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        self._app = (
            Application.builder()
            .token(self.token)
            .build()
        )

        self._app.add_handler(CommandHandler("start", self._cmd_report))
        self._app.add_handler(CommandHandler("report", self._cmd_report))
        self._app.add_handler(CommandHandler("chatid", self._cmd_chatid))

        logger.info("Telegram bot starting...")
        self._loop.run_until_complete(self._app.initialize())
        self._loop.run_until_complete(self._app.start())
        self._loop.run_until_complete(self._app.updater.start_polling())
        self._loop.run_forever()

    def start(self):
        self._thread = threading.Thread(target=self._run_bot, daemon=True)
        self._thread.start()

    def stop(self):
        if self._loop and self._app:
            async def _shutdown():
                await self._app.updater.stop()
                await self._app.stop()
                await self._app.shutdown()

            asyncio.run_coroutine_threadsafe(_shutdown(), self._loop).result(timeout=10)
            self._loop.call_soon_threadsafe(self._loop.stop)


def init_bot() -> TelegramBot:
    """Initialize and return the bot singleton."""
    global _bot_instance
    _bot_instance = TelegramBot(token=settings.telegram_bot_token)
    return _bot_instance

