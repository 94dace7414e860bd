"""
Okiru Bot — Centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # SQLite
    DATABASE_PATH: str = "data/okiru.db"

    # Day/week boundaries are computed in this zone
    TIMEZONE: str = "Asia/Tokyo"

    # Daily aggregation (local time)
    AGGREGATION_HOUR: int = 12
    AGGREGATION_MINUTE: int = 0

    # Good-sleep pass
    GOOD_SLEEP_DEADLINE_HOUR: int = 22
    WEEKLY_JOKER_LIMIT: int = 1

    # datetime.weekday() numbering: 0 = Monday ... 6 = Sunday
    WEEK_START_WEEKDAY: int = 6

    @field_validator("AGGREGATION_HOUR", mode="before")
    @classmethod
    def parse_hour(cls, v: str | int) -> int:
        hour = int(v)
        if not 0 <= hour <= 23:
            raise ValueError(f"hour out of range: {hour}")
        return hour

    @field_validator("GOOD_SLEEP_DEADLINE_HOUR", mode="before")
    @classmethod
    def parse_deadline(cls, v: str | int) -> int:
        # 24 disables the cutoff
        hour = int(v)
        if not 0 <= hour <= 24:
            raise ValueError(f"deadline hour out of range: {hour}")
        return hour

    @field_validator("AGGREGATION_MINUTE", mode="before")
    @classmethod
    def parse_minute(cls, v: str | int) -> int:
        minute = int(v)
        if not 0 <= minute <= 59:
            raise ValueError(f"minute out of range: {minute}")
        return minute

    @field_validator("WEEKLY_JOKER_LIMIT", mode="before")
    @classmethod
    def parse_limit(cls, v: str | int) -> int:
        limit = int(v)
        if limit < 0:
            raise ValueError(f"weekly limit must be >= 0: {limit}")
        return limit

    @field_validator("WEEK_START_WEEKDAY", mode="before")
    @classmethod
    def parse_weekday(cls, v: str | int) -> int:
        weekday = int(v)
        if not 0 <= weekday <= 6:
            raise ValueError(f"weekday out of range: {weekday}")
        return weekday


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/okiru.db"),
        TIMEZONE=os.getenv("TIMEZONE", "Asia/Tokyo"),
        AGGREGATION_HOUR=os.getenv("AGGREGATION_HOUR", "12"),
        AGGREGATION_MINUTE=os.getenv("AGGREGATION_MINUTE", "0"),
        GOOD_SLEEP_DEADLINE_HOUR=os.getenv("GOOD_SLEEP_DEADLINE_HOUR", "22"),
        WEEKLY_JOKER_LIMIT=os.getenv("WEEKLY_JOKER_LIMIT", "1"),
        WEEK_START_WEEKDAY=os.getenv("WEEK_START_WEEKDAY", "6"),
    )


# Singleton, imported by all other modules as:
#   from src.config import settings
settings = _load_settings()
