"""Telegram messaging adapter — implements MessagingPort.

Wraps a telegram.Bot instance to satisfy the MessagingPort protocol.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from telegram import Bot, ReplyParameters
from telegram.error import TelegramError

from src.core.errors import MessagingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TelegramReplyToken:
    """Where to answer an inbound message."""

    chat_id: int
    message_id: int | None = None


def _reply_parameters(reply_token: TelegramReplyToken) -> ReplyParameters | None:
    if reply_token.message_id is None:
        return None
    return ReplyParameters(
        message_id=reply_token.message_id, allow_sending_without_reply=True,
    )


class TelegramMessenger:
    """Telegram implementation of MessagingPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def get_display_name(self, user_id: str, group_id: str | None = None) -> str:
        try:
            if group_id is not None:
                member = await self._bot.get_chat_member(chat_id=int(group_id), user_id=int(user_id))
                return member.user.full_name
            chat = await self._bot.get_chat(chat_id=int(user_id))
        except TelegramError as exc:
            raise MessagingError(f"Profile lookup failed for {user_id}: {exc}") from exc
        return chat.full_name or chat.first_name or str(user_id)

    async def reply(self, reply_token: TelegramReplyToken, text: str) -> None:
        try:
            await self._bot.send_message(
                chat_id=reply_token.chat_id,
                text=text,
                reply_parameters=_reply_parameters(reply_token),
            )
        except TelegramError as exc:
            raise MessagingError(f"Reply to chat {reply_token.chat_id} failed: {exc}") from exc

    async def broadcast(self, group_id: str, text: str) -> None:
        try:
            await self._bot.send_message(chat_id=int(group_id), text=text)
        except TelegramError as exc:
            raise MessagingError(f"Broadcast to group {group_id} failed: {exc}") from exc
        logger.info("Broadcast sent to group %s", group_id)
