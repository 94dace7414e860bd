"""
Okiru Bot — UI-Agnostic Action Service.

Service layer that orchestrates every inbound chat event:
upsert user/group/membership -> weekly rollover -> parse command ->
apply state transition -> compose reply -> send reply.

Each transport adapter (Telegram today) translates its updates into
InboundEvent and calls handle_event; replies go back through MessagingPort.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.core.bot_text import DEFAULT_BOT_TEXT
from src.core.errors import (
    CollaboratorFailure,
    GroupOnly,
    NoWakeupTimeSet,
    NotFoundTransient,
    StateConflict,
    ValidationError,
)
from src.core.parser import (
    GoodSleepCancel,
    GoodSleepDeclare,
    Help,
    RecordCheck,
    SetWakeupTime,
    SettingsCheck,
    WakeupReport,
    parse_command,
)
from src.core.responses import compose, compose_error, format_minutes
from src.ports.messaging_port import EventKind

if TYPE_CHECKING:
    from src.core.bot_text import BotText
    from src.core.group_roster import GroupRoster
    from src.core.parser import Intent
    from src.core.time_service import TimeService
    from src.core.user_state import UserStateMachine
    from src.data.models import User
    from src.ports.messaging_port import InboundEvent, MessagingPort
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)


class ActionService:
    """Handles inbound chat events end to end."""

    def __init__(
        self,
        store: StorePort,
        roster: GroupRoster,
        user_state: UserStateMachine,
        time_service: TimeService,
        messenger: MessagingPort,
        bot_text: BotText = DEFAULT_BOT_TEXT,
        aggregation_hour: int = 12,
        aggregation_minute: int = 0,
    ) -> None:
        self._store = store
        self._roster = roster
        self._state = user_state
        self._time = time_service
        self._messenger = messenger
        self._text = bot_text
        self._aggregation_time = f"{aggregation_hour}:{format_minutes(aggregation_minute)}"

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def handle_event(self, event: InboundEvent) -> str | None:
        """Process one event and reply to it.

        Returns the reply text, or None when nothing was sent. Store and
        messaging failures abort this event only; they are logged and the
        user gets no reply.
        """
        try:
            reply = await self.respond(event)
            if reply is None:
                return None
            await self._messenger.reply(event.reply_token, reply)
            return reply
        except (CollaboratorFailure, NotFoundTransient) as exc:
            logger.error("Error handling %s event from %s: %s", event.kind.value, event.user_id, exc)
            return None

    async def respond(self, event: InboundEvent) -> str | None:
        """Apply the event's effects and return the reply text (not sent)."""
        if event.kind in (EventKind.JOIN, EventKind.MEMBER_JOINED):
            if event.group_id:
                self._roster.ensure_group(event.group_id)
            return self._text.welcome_text

        if event.text is None:
            return None

        display_name = await self._messenger.get_display_name(event.user_id, event.group_id)
        self._store.upsert_user(event.user_id, display_name, self._time.current_week_start())
        if event.group_id:
            self._roster.ensure_membership(event.group_id, event.user_id)
        self._state.apply_week_rollover(event.user_id)

        intent = parse_command(event.text, self._text)
        logger.debug("User %s -> %s", event.user_id, intent.intent)
        try:
            return self._dispatch(intent, event, display_name)
        except (ValidationError, StateConflict) as exc:
            logger.info("User %s: %s", event.user_id, exc.message)
            return compose_error(self._text, exc)

    # ------------------------------------------------------------------
    # Command dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, intent: Intent, event: InboundEvent, display_name: str) -> str:
        if isinstance(intent, SetWakeupTime):
            user = self._state.set_wakeup_time(event.user_id, intent.hour, intent.minute)
            return self._format_time(self._text.time_set_success, user, display_name)

        if isinstance(intent, WakeupReport):
            self._state.record_wake_report(event.user_id)
            return compose(self._text.wakeup_success, user_name=display_name)

        if isinstance(intent, GoodSleepDeclare):
            self._state.declare_good_sleep(event.user_id)
            return compose(self._text.good_sleep_success, user_name=display_name)

        if isinstance(intent, GoodSleepCancel):
            self._state.cancel_good_sleep(event.user_id)
            return compose(self._text.good_sleep_cancel_success, user_name=display_name)

        if isinstance(intent, RecordCheck):
            return self._record_status(event.group_id)

        if isinstance(intent, SettingsCheck):
            user = self._store.get_user(event.user_id)
            if user is None:
                raise NotFoundTransient("user", event.user_id)
            if not user.has_wakeup_time:
                raise NoWakeupTimeSet()
            return self._format_time(self._text.user_settings, user, display_name)

        if isinstance(intent, Help):
            return compose(
                self._text.help_text,
                aggregation_time=self._aggregation_time,
                deadline_hour=self._state.deadline_hour,
                weekly_limit=self._state.weekly_limit,
            )

        return self._text.unknown_command

    def _record_status(self, group_id: str | None) -> str:
        if not group_id:
            raise GroupOnly()
        group = self._roster.ensure_group(group_id)
        return compose(
            self._text.record_status,
            streak=group.current_streak,
            best=group.best_streak,
        )

    @staticmethod
    def _format_time(template: str, user: User, display_name: str) -> str:
        return compose(
            template,
            user_name=display_name,
            hours=user.wakeup_hour,
            minutes=format_minutes(user.wakeup_minute or 0),
        )
