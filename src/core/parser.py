"""
Okiru Bot — Command Parser.

Converts raw chat text into exactly one typed intent. Classification is a pure
function of the text and the keyword tables in BotText; range checks on the
extracted wake-up time are left to the user state machine.
"""

from __future__ import annotations

import logging
import re
from typing import Literal

from pydantic import BaseModel, ConfigDict

from src.core.bot_text import BotText

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Intent types
# ---------------------------------------------------------------------------


class _Intent(BaseModel):
    model_config = ConfigDict(frozen=True)


class SetWakeupTime(_Intent):
    """'7時に起きる', '6時30分に起きる', '6:30に起きる'.

    JSON example:
    {"intent": "set_wakeup_time", "hour": 6, "minute": 30}
    """
    intent: Literal["set_wakeup_time"] = "set_wakeup_time"
    hour: int
    minute: int = 0


class WakeupReport(_Intent):
    intent: Literal["wakeup_report"] = "wakeup_report"


class GoodSleepDeclare(_Intent):
    intent: Literal["good_sleep_declare"] = "good_sleep_declare"


class GoodSleepCancel(_Intent):
    intent: Literal["good_sleep_cancel"] = "good_sleep_cancel"


class RecordCheck(_Intent):
    intent: Literal["record_check"] = "record_check"


class SettingsCheck(_Intent):
    intent: Literal["settings_check"] = "settings_check"


class Help(_Intent):
    intent: Literal["help"] = "help"


class Unknown(_Intent):
    intent: Literal["unknown"] = "unknown"


Intent = (
    SetWakeupTime | WakeupReport | GoodSleepDeclare | GoodSleepCancel
    | RecordCheck | SettingsCheck | Help | Unknown
)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

# Hour, then 時 or a colon (ASCII or full-width), then optional minutes
_SET_WAKEUP_TIME = re.compile(r"(?<!\d)(\d{1,2})(?:時|:|：)(?:(\d{1,2})分?)?に起きる")


def _extract_wakeup_time(text: str) -> SetWakeupTime | None:
    match = _SET_WAKEUP_TIME.search(text)
    if match is None:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    return SetWakeupTime(hour=hour, minute=minute)


def parse_command(text: str, bot_text: BotText) -> Intent:
    """Classify a chat message into a single intent.

    Wake keywords match as substrings; every other command must match its
    keyword exactly. Surrounding whitespace is ignored because Telegram
    clients keep trailing newlines and spaces in message text. Slash commands
    sent in groups arrive as ``/help@okiru_bot``; the ``@botname`` suffix is
    dropped so they match the bare ``/help`` keyword.
    """
    wakeup_time = _extract_wakeup_time(text)
    if wakeup_time is not None:
        return wakeup_time

    if any(keyword in text for keyword in bot_text.wakeup_keywords):
        return WakeupReport()

    stripped = text.strip()
    if stripped.startswith("/"):
        stripped = stripped.split("@", 1)[0]
    exact_matches: tuple[tuple[tuple[str, ...], type[_Intent]], ...] = (
        (bot_text.good_sleep_keywords, GoodSleepDeclare),
        (bot_text.good_sleep_cancel_keywords, GoodSleepCancel),
        (bot_text.record_check_keywords, RecordCheck),
        (bot_text.settings_check_keywords, SettingsCheck),
        (bot_text.help_keywords, Help),
    )
    for keywords, intent_cls in exact_matches:
        if stripped in keywords:
            return intent_cls()

    logger.debug("Unrecognized command: %r", text[:80])
    return Unknown()
