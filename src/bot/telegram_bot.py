"""
Okiru Bot — Telegram Bot.

Telegram is the chat transport: every update is translated into a
transport-neutral InboundEvent and handed to ActionService. The daily
aggregation runs on the application's job queue.
"""

from __future__ import annotations

import logging
from datetime import time as dt_time
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.constants import ChatType
from telegram.ext import (
    Application,
    ApplicationBuilder,
    ContextTypes,
    MessageHandler,
    filters,
)

from src.adapters.telegram_messenger import TelegramReplyToken
from src.config import settings
from src.ports.messaging_port import EventKind, InboundEvent

if TYPE_CHECKING:
    from src.core.aggregator import DailyAggregator
    from src.ports.messaging_port import MessagingPort
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)

_GROUP_CHAT_TYPES = (ChatType.GROUP, ChatType.SUPERGROUP)


# ---------------------------------------------------------------------------
# Update translation
# ---------------------------------------------------------------------------


def update_to_event(update: Update, bot_id: int) -> InboundEvent | None:
    """Translate a Telegram update into an InboundEvent, or None to ignore it."""
    message = update.effective_message
    chat = update.effective_chat
    user = update.effective_user
    if message is None or chat is None or user is None:
        return None

    group_id = str(chat.id) if chat.type in _GROUP_CHAT_TYPES else None
    reply_token = TelegramReplyToken(chat_id=chat.id, message_id=message.message_id)

    if message.new_chat_members:
        bot_added = any(member.id == bot_id for member in message.new_chat_members)
        return InboundEvent(
            kind=EventKind.JOIN if bot_added else EventKind.MEMBER_JOINED,
            user_id=str(user.id),
            group_id=group_id,
            reply_token=reply_token,
        )

    if message.text is None:
        return None

    return InboundEvent(
        kind=EventKind.MESSAGE,
        user_id=str(user.id),
        group_id=group_id,
        text=message.text,
        reply_token=reply_token,
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_update(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle text messages and member joins."""
    event = update_to_event(update, context.bot.id)
    if event is None:
        return
    await context.bot_data["action_service"].handle_event(event)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    store: StorePort | None = None,
    messenger: MessagingPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: Store port implementation. Defaults to WakeupStore (SQLite).
        messenger: Messaging port implementation. Defaults to TelegramMessenger
                   (created from the bot instance after app is built).
    """
    from src.core.action_service import ActionService
    from src.core.aggregator import DailyAggregator
    from src.core.bot_text import DEFAULT_BOT_TEXT
    from src.core.group_roster import GroupRoster
    from src.core.time_service import TimeService
    from src.core.user_state import UserStateMachine

    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    # Wire default adapters if not provided
    if store is None:
        from src.data.db import WakeupStore
        store = WakeupStore()

    if messenger is None:
        from src.adapters.telegram_messenger import TelegramMessenger
        messenger = TelegramMessenger(app.bot)

    time_service = TimeService(ZoneInfo(settings.TIMEZONE), settings.WEEK_START_WEEKDAY)
    roster = GroupRoster(store)
    user_state = UserStateMachine(
        store,
        time_service,
        good_sleep_deadline_hour=settings.GOOD_SLEEP_DEADLINE_HOUR,
        weekly_joker_limit=settings.WEEKLY_JOKER_LIMIT,
    )

    app.bot_data["action_service"] = ActionService(
        store,
        roster,
        user_state,
        time_service,
        messenger,
        bot_text=DEFAULT_BOT_TEXT,
        aggregation_hour=settings.AGGREGATION_HOUR,
        aggregation_minute=settings.AGGREGATION_MINUTE,
    )
    aggregator = DailyAggregator(store, roster, time_service, messenger, DEFAULT_BOT_TEXT)
    app.bot_data["aggregator"] = aggregator

    app.add_handler(MessageHandler(filters.TEXT | filters.StatusUpdate.NEW_CHAT_MEMBERS, handle_update))

    # Daily aggregation runs on the Telegram job queue
    _setup_daily_aggregation(app, aggregator)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_daily_aggregation(app: Application, aggregator: DailyAggregator) -> None:
    """Register the daily streak check at the configured local time."""
    tz = ZoneInfo(settings.TIMEZONE)
    check_time = dt_time(
        hour=settings.AGGREGATION_HOUR, minute=settings.AGGREGATION_MINUTE, tzinfo=tz,
    )

    async def _aggregation_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        await aggregator.run_cycle()

    app.job_queue.run_daily(
        _aggregation_job_callback,
        time=check_time,
        name="daily_aggregation",
    )

    logger.info(
        "Daily aggregation scheduled at %02d:%02d %s",
        settings.AGGREGATION_HOUR,
        settings.AGGREGATION_MINUTE,
        settings.TIMEZONE,
    )


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Okiru bot (timezone %s)...", settings.TIMEZONE)
    app = build_app()
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
