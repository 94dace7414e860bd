"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like a temp store and a controllable clock.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "Asia/Tokyo")

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

JST = ZoneInfo("Asia/Tokyo")

# Wednesday; the Sunday-start week began on 2026-10-11
WEDNESDAY_7AM = datetime(2026, 10, 14, 7, 0, tzinfo=JST)
WEEK_START = date(2026, 10, 11)


class FixedClock:
    """Callable clock for TimeService that tests can move around."""

    def __init__(self, current: datetime) -> None:
        self.current = current

    def __call__(self) -> datetime:
        return self.current

    def set(self, *args: int) -> None:
        self.current = datetime(*args, tzinfo=JST)

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(WEDNESDAY_7AM)


@pytest.fixture
def time_service(clock):
    from src.core.time_service import TimeService
    return TimeService(JST, clock=clock)


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_okiru.db")


@pytest.fixture
def store(tmp_db_path):
    """Return a WakeupStore instance backed by a temp file."""
    from src.data.db import WakeupStore
    return WakeupStore(db_path=tmp_db_path)


@pytest.fixture
def roster(store):
    from src.core.group_roster import GroupRoster
    return GroupRoster(store)


@pytest.fixture
def user_state(store, time_service):
    from src.core.user_state import UserStateMachine
    return UserStateMachine(store, time_service)


@pytest.fixture
def make_user(store):
    """Factory: create a user, optionally with a wake-up time and extra fields."""

    def _make(user_id="U1", name="Taro", wakeup=(7, 0), **fields):
        store.upsert_user(user_id, name, WEEK_START)
        updates = dict(fields)
        if wakeup is not None:
            updates["wakeup_hour"], updates["wakeup_minute"] = wakeup
        store.update_user(user_id, updates)
        return store.get_user(user_id)

    return _make
