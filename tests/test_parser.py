"""Tests for src.core.parser — command classification."""

import pytest

from src.core.bot_text import DEFAULT_BOT_TEXT, BotText
from src.core.parser import (
    GoodSleepCancel,
    GoodSleepDeclare,
    Help,
    RecordCheck,
    SetWakeupTime,
    SettingsCheck,
    Unknown,
    WakeupReport,
    parse_command,
)


def _parse(text):
    return parse_command(text, DEFAULT_BOT_TEXT)


# ---------------------------------------------------------------------------
# SetWakeupTime
# ---------------------------------------------------------------------------


class TestSetWakeupTime:
    def test_hour_only(self):
        assert _parse("7時に起きる") == SetWakeupTime(hour=7, minute=0)

    def test_hour_and_minute_kanji(self):
        assert _parse("6時30分に起きる") == SetWakeupTime(hour=6, minute=30)

    def test_colon_format(self):
        assert _parse("6:30に起きる") == SetWakeupTime(hour=6, minute=30)

    def test_colon_without_minutes(self):
        assert _parse("6:に起きる") == SetWakeupTime(hour=6, minute=0)

    def test_full_width_colon(self):
        assert _parse("6：05に起きる") == SetWakeupTime(hour=6, minute=5)

    def test_embedded_in_sentence(self):
        assert _parse("明日は5時半…いや5時45分に起きる！") == SetWakeupTime(hour=5, minute=45)

    def test_out_of_range_is_still_extracted(self):
        # range checks belong to the state machine
        assert _parse("24時に起きる") == SetWakeupTime(hour=24, minute=0)
        assert _parse("7:60に起きる") == SetWakeupTime(hour=7, minute=60)

    def test_three_digit_hour_does_not_match_suffix(self):
        assert not isinstance(_parse("123時に起きる"), SetWakeupTime)

    def test_takes_precedence_over_wake_keyword(self):
        # "朝" is a wake keyword, but the time setting wins
        assert _parse("朝7時に起きる") == SetWakeupTime(hour=7, minute=0)


# ---------------------------------------------------------------------------
# Keyword intents
# ---------------------------------------------------------------------------


class TestWakeupReport:
    @pytest.mark.parametrize("text", ["起きた", "おはよう！", "今起床しました", "朝だ"])
    def test_substring_match(self, text):
        assert isinstance(_parse(text), WakeupReport)


class TestExactKeywords:
    @pytest.mark.parametrize("text", ["ぐっすり", "明日パス", "明日休み"])
    def test_good_sleep_declare(self, text):
        assert isinstance(_parse(text), GoodSleepDeclare)

    @pytest.mark.parametrize("text", ["ぐっすり取消", "ぐっすり取り消し", "ぐっすりキャンセル"])
    def test_good_sleep_cancel(self, text):
        assert isinstance(_parse(text), GoodSleepCancel)

    @pytest.mark.parametrize("text", ["記録確認", "記録"])
    def test_record_check(self, text):
        assert isinstance(_parse(text), RecordCheck)

    @pytest.mark.parametrize("text", ["設定確認", "設定"])
    def test_settings_check(self, text):
        assert isinstance(_parse(text), SettingsCheck)

    @pytest.mark.parametrize("text", ["使い方", "ヘルプ", "help", "/help"])
    def test_help(self, text):
        assert isinstance(_parse(text), Help)

    def test_surrounding_whitespace_ignored(self):
        assert isinstance(_parse("  ぐっすり \n"), GoodSleepDeclare)

    @pytest.mark.parametrize("text", ["/help@okiru_bot", "/start@okiru_bot", " /help "])
    def test_slash_command_with_bot_mention(self, text):
        assert isinstance(_parse(text), Help)

    def test_mention_only_stripped_from_slash_commands(self):
        assert isinstance(_parse("help@okiru_bot"), Unknown)

    def test_exact_match_is_not_substring(self):
        assert isinstance(_parse("今日はぐっすりしたい"), Unknown)
        assert isinstance(_parse("記録を見せて"), Unknown)


class TestUnknown:
    def test_free_text(self):
        assert isinstance(_parse("こんにちは"), Unknown)

    def test_empty(self):
        assert isinstance(_parse(""), Unknown)


class TestCustomKeywords:
    def test_uses_given_tables(self):
        text = BotText(help_keywords=("?",))
        assert isinstance(parse_command("?", text), Help)
        assert isinstance(parse_command("help", text), Unknown)

    def test_bot_text_is_frozen(self):
        with pytest.raises(Exception):
            DEFAULT_BOT_TEXT.help_keywords = ("x",)
