"""
Okiru Bot — Per-user state machine.

Intra-day transitions for one user: wake-up time configuration, wake-up
report, good-sleep (joker) declare/cancel and the weekly joker reset.

Every transition reads the user, decides, then writes with a compare-and-swap
on the fields it read. If another event for the same user won the race, the
transition is re-evaluated against the fresh row, so e.g. two simultaneous
reports yield one success and one AlreadyReportedToday.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from src.core.errors import (
    AlreadyReportedToday,
    InvalidTime,
    JokerNotUsed,
    NoWakeupTimeSet,
    NotFoundTransient,
    PastDeadline,
    StoreError,
    WeeklyLimitReached,
)

if TYPE_CHECKING:
    from src.core.time_service import TimeService
    from src.data.models import User
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)

# (expected, fields) for update_user_if, or None for "nothing to write"
_Change = tuple[dict[str, Any], dict[str, Any]] | None

_MAX_ATTEMPTS = 5


def validate_wakeup_time(hour: int, minute: int) -> None:
    """Raise InvalidTime unless 0 <= hour <= 23 and 0 <= minute <= 59."""
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise InvalidTime(hour, minute)


class UserStateMachine:
    """Applies user commands to persisted user state."""

    def __init__(
        self,
        store: StorePort,
        time_service: TimeService,
        good_sleep_deadline_hour: int = 22,
        weekly_joker_limit: int = 1,
    ) -> None:
        self._store = store
        self._time = time_service
        self._deadline_hour = good_sleep_deadline_hour
        self._weekly_limit = weekly_joker_limit

    @property
    def deadline_hour(self) -> int:
        return self._deadline_hour

    @property
    def weekly_limit(self) -> int:
        return self._weekly_limit

    # ------------------------------------------------------------------
    # CAS loop
    # ------------------------------------------------------------------

    def _load(self, user_id: str) -> User:
        user = self._store.get_user(user_id)
        if user is None:
            raise NotFoundTransient("user", user_id)
        return user

    def _transition(self, user_id: str, decide: Callable[[User], _Change]) -> User:
        for _ in range(_MAX_ATTEMPTS):
            user = self._load(user_id)
            change = decide(user)
            if change is None:
                return user
            expected, fields = change
            if self._store.update_user_if(user_id, expected, fields):
                for name, value in fields.items():
                    setattr(user, name, value)
                return user
            logger.debug("Concurrent update on user %s, re-evaluating", user_id)
        raise StoreError(f"Gave up updating user {user_id} after {_MAX_ATTEMPTS} attempts")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def set_wakeup_time(self, user_id: str, hour: int, minute: int) -> User:
        """Persist the user's wake-up clock time."""
        validate_wakeup_time(hour, minute)

        def decide(user: User) -> _Change:
            return (
                {"wakeup_hour": user.wakeup_hour, "wakeup_minute": user.wakeup_minute},
                {"wakeup_hour": hour, "wakeup_minute": minute},
            )

        user = self._transition(user_id, decide)
        logger.info("User %s wake-up time set to %d:%02d", user_id, hour, minute)
        return user

    def record_wake_report(self, user_id: str) -> User:
        """Record today's wake-up report.

        Only the calendar day is checked, not the configured clock time.
        """

        def decide(user: User) -> _Change:
            now = self._time.now()
            if user.today_reported and self._time.same_calendar_day(user.last_report, now):
                raise AlreadyReportedToday()
            if not user.has_wakeup_time:
                raise NoWakeupTimeSet()
            return (
                {"today_reported": user.today_reported, "last_report": user.last_report},
                {"today_reported": True, "last_report": now},
            )

        user = self._transition(user_id, decide)
        logger.info("User %s reported wake-up at %s", user_id, user.last_report)
        return user

    def declare_good_sleep(self, user_id: str) -> User:
        """Use this week's good-sleep pass for the next aggregation."""

        def decide(user: User) -> _Change:
            hour, _ = self._time.current_local_clock()
            if hour >= self._deadline_hour:
                raise PastDeadline(self._deadline_hour)
            if user.week_joker_count >= self._weekly_limit:
                raise WeeklyLimitReached(self._weekly_limit)
            return (
                {"joker_used": user.joker_used, "week_joker_count": user.week_joker_count},
                {
                    "joker_used": True,
                    "week_joker_count": user.week_joker_count + 1,
                    "last_joker_date": self._time.now(),
                },
            )

        user = self._transition(user_id, decide)
        logger.info("User %s declared good-sleep (%d this week)", user_id, user.week_joker_count)
        return user

    def cancel_good_sleep(self, user_id: str) -> User:
        """Withdraw a pending good-sleep declaration and refund the weekly allowance."""

        def decide(user: User) -> _Change:
            if not user.joker_used:
                raise JokerNotUsed()
            return (
                {"joker_used": True, "week_joker_count": user.week_joker_count},
                {"joker_used": False, "week_joker_count": max(0, user.week_joker_count - 1)},
            )

        user = self._transition(user_id, decide)
        logger.info("User %s cancelled good-sleep", user_id)
        return user

    def apply_week_rollover(self, user_id: str) -> bool:
        """Reset the weekly joker counter when a new week has started.

        Returns True only for the call that actually crossed the boundary.
        """
        rolled = False

        def decide(user: User) -> _Change:
            nonlocal rolled
            current = self._time.current_week_start()
            if user.week_start_date == current:
                rolled = False
                return None
            rolled = True
            return (
                {"week_start_date": user.week_start_date},
                {"week_start_date": current, "week_joker_count": 0},
            )

        self._transition(user_id, decide)
        if rolled:
            logger.info("User %s rolled over to a new week", user_id)
        return rolled
