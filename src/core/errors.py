"""Domain errors.

User-correctable errors (ValidationError, StateConflict) carry a ``code`` that
doubles as the message-template key used to answer the user. Collaborator
failures are never shown to the chat.
"""

from __future__ import annotations


class OkiruError(Exception):
    """Base class for every error raised by the bot."""

    def __init__(self, message: str, code: str = "error") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ---------------------------------------------------------------------------
# User-correctable
# ---------------------------------------------------------------------------


class ValidationError(OkiruError):
    """Malformed or out-of-range user input."""


class InvalidTime(ValidationError):
    def __init__(self, hour: int, minute: int) -> None:
        self.hour = hour
        self.minute = minute
        super().__init__(f"Invalid wake-up time {hour}:{minute:02d}", "time_format_error")


class StateConflict(OkiruError):
    """The command is well-formed but not allowed in the user's current state."""


class AlreadyReportedToday(StateConflict):
    def __init__(self) -> None:
        super().__init__("Wake-up already reported today", "wakeup_already_reported")


class NoWakeupTimeSet(StateConflict):
    def __init__(self) -> None:
        super().__init__("No wake-up time configured", "no_time_set")


class PastDeadline(StateConflict):
    def __init__(self, deadline_hour: int) -> None:
        self.deadline_hour = deadline_hour
        super().__init__(
            f"Good-sleep must be declared before {deadline_hour}:00", "good_sleep_time_limit",
        )


class WeeklyLimitReached(StateConflict):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(
            f"Good-sleep already used {limit} time(s) this week", "good_sleep_weekly_limit",
        )


class JokerNotUsed(StateConflict):
    def __init__(self) -> None:
        super().__init__("Good-sleep was not declared", "good_sleep_not_used")


class GroupOnly(StateConflict):
    def __init__(self) -> None:
        super().__init__("Command is only available in group chats", "group_only")


# ---------------------------------------------------------------------------
# Internal
# ---------------------------------------------------------------------------


class NotFoundTransient(OkiruError):
    """An entity vanished between upsert and use; never surfaced to the chat."""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found", "not_found")


class CollaboratorFailure(OkiruError):
    """A store or messaging collaborator failed."""


class StoreError(CollaboratorFailure):
    def __init__(self, message: str) -> None:
        super().__init__(message, "store_error")


class MessagingError(CollaboratorFailure):
    def __init__(self, message: str) -> None:
        super().__init__(message, "messaging_error")
