"""Tests for the on-demand report bot commands."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from telegram.error import BadRequest

from tradejournal.engine.monitor_job import PRICES_UNAVAILABLE
from tradejournal.services.telegram_bot import TelegramBot


def _update(chat_id=100):
    message = MagicMock()
    message.reply_text = AsyncMock(return_value=SimpleNamespace(message_id=1))
    return SimpleNamespace(effective_chat=SimpleNamespace(id=chat_id), message=message)


def _context(message_id=9):
    bot = AsyncMock()
    bot.send_message.return_value = SimpleNamespace(message_id=message_id)
    return SimpleNamespace(bot=bot)


@pytest.mark.asyncio
async def test_report_command_sends_and_remembers_message():
    update, context = _update(), _context()
    with patch(
        "tradejournal.engine.monitor_job.report_for_chat", AsyncMock(return_value=(1, "*report*"))
    ) as report, patch("tradejournal.engine.monitor_job.remember_report_message") as remember:
        await TelegramBot("token")._cmd_report(update, context)

    report.assert_awaited_once_with("100")
    kwargs = context.bot.send_message.call_args.kwargs
    assert kwargs["chat_id"] == "100"
    assert kwargs["text"] == "*report*"
    assert kwargs["parse_mode"] == "Markdown"
    assert remember.call_args.args[1:] == (1, 9)


@pytest.mark.asyncio
async def test_report_command_falls_back_to_plain_text():
    update, context = _update(), _context()
    context.bot.send_message.side_effect = [
        BadRequest("Can't parse entities: can't find end of the entity"),
        SimpleNamespace(message_id=10),
    ]
    with patch(
        "tradejournal.engine.monitor_job.report_for_chat", AsyncMock(return_value=(1, "*broken"))
    ), patch("tradejournal.engine.monitor_job.remember_report_message") as remember:
        await TelegramBot("token")._cmd_report(update, context)

    assert context.bot.send_message.call_args.kwargs["parse_mode"] is None
    assert remember.call_args.args[1:] == (1, 10)


@pytest.mark.asyncio
async def test_report_command_does_not_remember_undelivered_report():
    update, context = _update(), _context()
    context.bot.send_message.side_effect = BadRequest("Chat not found")
    with patch(
        "tradejournal.engine.monitor_job.report_for_chat", AsyncMock(return_value=(1, "report"))
    ), patch("tradejournal.engine.monitor_job.remember_report_message") as remember:
        await TelegramBot("token")._cmd_report(update, context)

    remember.assert_not_called()


@pytest.mark.asyncio
async def test_prices_unavailable_notice_is_not_the_report_message():
    update, context = _update(), _context()
    with patch(
        "tradejournal.engine.monitor_job.report_for_chat",
        AsyncMock(return_value=(1, PRICES_UNAVAILABLE)),
    ), patch("tradejournal.engine.monitor_job.remember_report_message") as remember:
        await TelegramBot("token")._cmd_report(update, context)

    assert update.message.reply_text.call_args.args[0] == PRICES_UNAVAILABLE
    context.bot.send_message.assert_not_called()
    remember.assert_not_called()


@pytest.mark.asyncio
async def test_report_command_for_unregistered_chat():
    update, context = _update(chat_id=555), _context()
    with patch(
        "tradejournal.engine.monitor_job.report_for_chat", AsyncMock(return_value=None)
    ), patch("tradejournal.engine.monitor_job.remember_report_message") as remember:
        await TelegramBot("token")._cmd_report(update, context)

    text = update.message.reply_text.call_args.args[0]
    assert "not found" in text
    assert "555" in text
    remember.assert_not_called()


@pytest.mark.asyncio
async def test_chatid_command():
    update = _update(chat_id=-42)
    await TelegramBot("token")._cmd_chatid(update, None)
    assert update.message.reply_text.call_args.args[0] == "Your Chat ID is: -42"
