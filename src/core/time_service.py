"""Calendar-day and week-boundary policy.

Every day/week decision in the bot goes through a TimeService instance built
with an explicit timezone, so the policy is deterministic under test (inject a
fixed clock) and never depends on the process-wide default zone.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

SUNDAY = 6


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimeService:
    """Local-time helpers for one fixed timezone."""

    def __init__(
        self,
        tz: ZoneInfo,
        week_start_weekday: int = SUNDAY,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._tz = tz
        self._week_start_weekday = week_start_weekday
        self._clock = clock

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    def now(self) -> datetime:
        """Current instant as an aware datetime in the local zone."""
        current = self._clock()
        if current.tzinfo is None:
            raise ValueError("clock must return timezone-aware datetimes")
        return current.astimezone(self._tz)

    def today(self) -> date:
        return self.now().date()

    def local_date(self, instant: datetime) -> date:
        if instant.tzinfo is None:
            raise ValueError("instant must be timezone-aware")
        return instant.astimezone(self._tz).date()

    def same_calendar_day(self, a: datetime | None, b: datetime | None) -> bool:
        """True iff both instants fall on the same local calendar day."""
        if a is None or b is None:
            return False
        return self.local_date(a) == self.local_date(b)

    def is_today(self, instant: datetime | None) -> bool:
        return self.same_calendar_day(instant, self.now())

    def week_start(self, day: date) -> date:
        """The first day of the week containing ``day``."""
        offset = (day.weekday() - self._week_start_weekday) % 7
        return day - timedelta(days=offset)

    def current_week_start(self) -> date:
        return self.week_start(self.today())

    def current_local_clock(self) -> tuple[int, int]:
        """Current local (hour, minute)."""
        current = self.now()
        return current.hour, current.minute
