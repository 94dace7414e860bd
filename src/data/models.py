"""
Okiru Bot — Data Models.

Users, groups and memberships persist in SQLite across days, surviving bot
restarts. All three are created lazily on first interaction and never deleted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


@dataclass
class User:
    """A chat member taking part in the wake-up challenge."""

    id: str
    display_name: str
    wakeup_hour: int | None = None
    wakeup_minute: int | None = None
    last_report: datetime | None = None      # aware, UTC
    today_reported: bool = False
    joker_used: bool = False
    last_joker_date: datetime | None = None  # aware, UTC
    week_joker_count: int = 0
    week_start_date: date | None = None

    @property
    def has_wakeup_time(self) -> bool:
        return self.wakeup_hour is not None and self.wakeup_minute is not None


@dataclass
class Group:
    """A chat group sharing one streak."""

    id: str
    current_streak: int = 0
    best_streak: int = 0
