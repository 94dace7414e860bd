"""Tests for src.core.responses — template filling."""

from src.core.bot_text import DEFAULT_BOT_TEXT
from src.core.errors import AlreadyReportedToday, PastDeadline, WeeklyLimitReached
from src.core.responses import compose, compose_error, format_minutes


class TestCompose:
    def test_fills_placeholders(self):
        assert compose("{a}-{b}", a=1, b="x") == "1-x"

    def test_repeated_placeholder(self):
        assert compose("{n}/{n}", n=3) == "3/3"

    def test_value_containing_placeholder_is_not_resubstituted(self):
        result = compose("{user_name}さん {streak}日", user_name="{streak}", streak=5)
        assert result == "{streak}さん 5日"

    def test_missing_value_left_untouched(self):
        assert compose("{a} {b}", a="x") == "x {b}"

    def test_no_placeholders(self):
        assert compose("plain text") == "plain text"


class TestFormatMinutes:
    def test_pads_single_digit(self):
        assert format_minutes(5) == "05"

    def test_two_digits_unchanged(self):
        assert format_minutes(30) == "30"


class TestComposeError:
    def test_plain_template(self):
        assert compose_error(DEFAULT_BOT_TEXT, AlreadyReportedToday()) == (
            DEFAULT_BOT_TEXT.wakeup_already_reported
        )

    def test_deadline_is_filled(self):
        assert "22時" in compose_error(DEFAULT_BOT_TEXT, PastDeadline(22))

    def test_weekly_limit_is_filled(self):
        assert "週に1回" in compose_error(DEFAULT_BOT_TEXT, WeeklyLimitReached(1))
