"""Messaging port — abstract interface for talking back to the chat.

Core modules depend on this protocol, never on a specific messaging provider.
Implementations raise src.core.errors.MessagingError on delivery failure.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict


class EventKind(str, Enum):
    MESSAGE = "message"
    JOIN = "join"                    # the bot itself was added to a group
    MEMBER_JOINED = "member_joined"  # someone else joined a group


class InboundEvent(BaseModel):
    """Transport-neutral inbound chat event.

    ``reply_token`` is opaque to the core and handed back to
    MessagingPort.reply unchanged.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: EventKind
    user_id: str
    reply_token: Any
    text: str | None = None
    group_id: str | None = None


class MessagingPort(Protocol):
    """Abstract messaging interface used by core modules."""

    async def get_display_name(self, user_id: str, group_id: str | None = None) -> str: ...

    async def reply(self, reply_token: Any, text: str) -> None: ...

    async def broadcast(self, group_id: str, text: str) -> None: ...
