"""Tests for src.core.aggregator — daily streak settlement.

The messenger is an AsyncMock; the store is a real temp-file WakeupStore.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from src.core.aggregator import (
    DailyAggregator,
    GroupOutcome,
    compose_outcome_message,
    evaluate_group,
)
from src.core.bot_text import DEFAULT_BOT_TEXT
from src.core.errors import JokerNotUsed, MessagingError, StoreError
from src.data.models import Group, User


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def messenger():
    return AsyncMock()


@pytest.fixture
def aggregator(store, roster, time_service, messenger):
    return DailyAggregator(store, roster, time_service, messenger)


@pytest.fixture
def member(make_user, roster):
    """Factory: create a user and add them to a group."""

    def _member(group_id, user_id, name, **kwargs):
        user = make_user(user_id=user_id, name=name, **kwargs)
        roster.ensure_membership(group_id, user_id)
        return user

    return _member


@pytest.fixture
def morning(clock):
    """Return 07:00 today (report time) and move the clock to noon."""
    reported_at = clock.current
    clock.set(2026, 10, 14, 12, 0)
    return reported_at


# ---------------------------------------------------------------------------
# evaluate_group (pure)
# ---------------------------------------------------------------------------


def _reported(value):
    return lambda instant: value


class TestEvaluateGroup:
    def test_no_tracked_members(self):
        members = [User(id="U1", display_name="Taro")]
        assert evaluate_group(Group(id="G1"), members, _reported(True)) is None

    def test_success_extends_streak_and_best(self):
        group = Group(id="G1", current_streak=4, best_streak=4)
        members = [User(id="U1", display_name="Taro", wakeup_hour=7, wakeup_minute=0)]
        outcome = evaluate_group(group, members, _reported(True))
        assert outcome.success is True
        assert (outcome.previous_streak, outcome.current_streak, outcome.best_streak) == (4, 5, 5)

    def test_failure_keeps_best(self):
        group = Group(id="G1", current_streak=3, best_streak=7)
        members = [User(id="U1", display_name="Taro", wakeup_hour=7, wakeup_minute=0)]
        outcome = evaluate_group(group, members, _reported(False))
        assert outcome.success is False
        assert outcome.current_streak == 0
        assert outcome.best_streak == 7
        assert [u.id for u in outcome.failed_users] == ["U1"]

    def test_exempt_member_is_not_a_failure(self):
        members = [
            User(id="U1", display_name="Taro", wakeup_hour=7, wakeup_minute=0, joker_used=True),
        ]
        outcome = evaluate_group(Group(id="G1"), members, _reported(False))
        assert outcome.success is True
        assert outcome.exempt_user_ids == ["U1"]


class TestComposeOutcomeMessage:
    def test_success_message(self):
        outcome = GroupOutcome("G1", True, 1, 2, 2)
        message = compose_outcome_message(outcome, DEFAULT_BOT_TEXT)
        assert "2日目" in message

    def test_failure_lists_names_in_order(self):
        failed = [User(id="U1", display_name="Taro"), User(id="U2", display_name="Hanako")]
        outcome = GroupOutcome("G1", False, 5, 0, 5, failed_users=failed)
        message = compose_outcome_message(outcome, DEFAULT_BOT_TEXT)
        assert "Taro、Hanako" in message
        assert "5日でした" in message


# ---------------------------------------------------------------------------
# run_cycle
# ---------------------------------------------------------------------------


class TestRunCycle:
    @pytest.mark.asyncio
    async def test_everyone_reported(self, aggregator, store, member, messenger, morning):
        member("G1", "U1", "Taro", today_reported=True, last_report=morning)
        member("G1", "U2", "Hanako", today_reported=True, last_report=morning)
        store.update_group("G1", {"current_streak": 2, "best_streak": 2})

        outcomes = await aggregator.run_cycle()

        assert len(outcomes) == 1
        assert outcomes[0].success is True
        assert store.get_group("G1") == Group(id="G1", current_streak=3, best_streak=3)
        messenger.broadcast.assert_awaited_once()
        group_id, text = messenger.broadcast.await_args.args
        assert group_id == "G1"
        assert "3日目" in text
        assert store.get_user("U1").today_reported is False

    @pytest.mark.asyncio
    async def test_someone_overslept(self, aggregator, store, member, messenger, morning):
        member("G1", "U1", "Taro", today_reported=True, last_report=morning)
        member("G1", "U2", "Hanako")
        store.update_group("G1", {"current_streak": 3, "best_streak": 5})

        outcomes = await aggregator.run_cycle()

        assert outcomes[0].success is False
        assert store.get_group("G1") == Group(id="G1", current_streak=0, best_streak=5)
        _, text = messenger.broadcast.await_args.args
        assert "Hanako" in text
        assert "Taro" not in text
        assert "3日でした" in text

    @pytest.mark.asyncio
    async def test_good_sleep_exempts_member(self, aggregator, store, member, morning, clock):
        member("G1", "U1", "Taro", today_reported=True, last_report=morning)
        member("G1", "U2", "Hanako", joker_used=True,
               last_joker_date=morning - timedelta(hours=12))

        outcomes = await aggregator.run_cycle()

        assert outcomes[0].success is True
        assert outcomes[0].exempt_user_ids == ["U2"]
        assert store.get_group("G1").current_streak == 1
        assert store.get_user("U2").joker_used is False

    @pytest.mark.asyncio
    async def test_yesterdays_report_does_not_count(self, aggregator, store, member, morning):
        member("G1", "U1", "Taro", today_reported=True, last_report=morning - timedelta(days=1))
        outcomes = await aggregator.run_cycle()
        assert outcomes[0].success is False

    @pytest.mark.asyncio
    async def test_untracked_members_are_ignored(self, aggregator, store, member, morning):
        member("G1", "U1", "Taro", today_reported=True, last_report=morning)
        member("G1", "U2", "Hanako", wakeup=None)
        outcomes = await aggregator.run_cycle()
        assert outcomes[0].success is True
        assert outcomes[0].tracked_user_ids == ["U1"]

    @pytest.mark.asyncio
    async def test_groups_without_tracked_members_are_skipped(
        self, aggregator, store, member, messenger, morning,
    ):
        store.upsert_group("G-empty")
        member("G-idle", "U1", "Taro", wakeup=None)
        store.update_group("G-idle", {"current_streak": 4, "best_streak": 4})

        outcomes = await aggregator.run_cycle()

        assert outcomes == []
        messenger.broadcast.assert_not_awaited()
        assert store.get_group("G-idle").current_streak == 4

    @pytest.mark.asyncio
    async def test_good_sleep_counts_in_every_group(self, aggregator, store, member, morning):
        member("G1", "U1", "Taro", joker_used=True, last_joker_date=morning - timedelta(hours=12))
        member("G2", "U1", "Taro")
        member("G2", "U2", "Hanako", today_reported=True, last_report=morning)

        outcomes = await aggregator.run_cycle()

        assert [o.success for o in outcomes] == [True, True]
        assert store.get_user("U1").joker_used is False

    @pytest.mark.asyncio
    async def test_mixed_outcome_names_only_the_sleeper(
        self, aggregator, store, member, messenger, morning,
    ):
        member("G1", "UA", "Akira", today_reported=True, last_report=morning)
        member("G1", "UB", "Botan", joker_used=True, week_joker_count=1,
               last_joker_date=morning - timedelta(hours=12))
        member("G1", "UC", "Chiyo")
        store.update_group("G1", {"current_streak": 6, "best_streak": 6})

        outcomes = await aggregator.run_cycle()

        outcome = outcomes[0]
        assert outcome.success is False
        assert [u.id for u in outcome.failed_users] == ["UC"]
        assert outcome.exempt_user_ids == ["UB"]
        _, text = messenger.broadcast.await_args.args
        assert "Chiyo" in text
        assert "Botan" not in text
        assert "Akira" not in text
        assert store.get_group("G1") == Group(id="G1", current_streak=0, best_streak=6)
        assert store.get_user("UB").week_joker_count == 1

    @pytest.mark.asyncio
    async def test_good_sleep_cannot_be_refunded_during_broadcast(
        self, aggregator, store, member, messenger, user_state, morning,
    ):
        member("G1", "U1", "Taro", joker_used=True, week_joker_count=1,
               last_joker_date=morning - timedelta(hours=12))
        member("G1", "U2", "Hanako", today_reported=True, last_report=morning)
        attempts = []

        async def cancel_while_announcing(group_id, text):
            with pytest.raises(JokerNotUsed):
                user_state.cancel_good_sleep("U1")
            attempts.append(group_id)

        messenger.broadcast.side_effect = cancel_while_announcing

        outcomes = await aggregator.run_cycle()

        assert outcomes[0].exempt_user_ids == ["U1"]
        assert attempts == ["G1"]
        user = store.get_user("U1")
        assert user.joker_used is False
        assert user.week_joker_count == 1

    @pytest.mark.asyncio
    async def test_reset_failure_commits_nothing(
        self, aggregator, store, member, messenger, morning, monkeypatch,
    ):
        member("G1", "U1", "Taro", today_reported=True, last_report=morning)

        def broken(*args, **kwargs):
            raise StoreError("disk I/O error")

        monkeypatch.setattr(store, "reset_daily_flags", broken)

        assert await aggregator.run_cycle() == []
        assert store.get_group("G1").current_streak == 0
        assert store.get_user("U1").today_reported is True
        messenger.broadcast.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_report_during_broadcast_is_kept(
        self, aggregator, store, member, messenger, morning, clock,
    ):
        member("G1", "U1", "Taro", today_reported=True, last_report=morning)
        member("G2", "U2", "Hanako")

        async def late_report(group_id, text):
            if group_id == "G1":
                clock.advance(seconds=5)
                store.update_user("U2", {"today_reported": True, "last_report": clock.current})

        messenger.broadcast.side_effect = late_report

        await aggregator.run_cycle()

        assert store.get_user("U1").today_reported is False
        assert store.get_user("U2").today_reported is True

    @pytest.mark.asyncio
    async def test_broadcast_failure_does_not_stop_cycle(
        self, aggregator, store, member, messenger, morning,
    ):
        member("G1", "U1", "Taro", today_reported=True, last_report=morning)
        member("G2", "U2", "Hanako", today_reported=True, last_report=morning)
        messenger.broadcast.side_effect = [MessagingError("down"), None]

        outcomes = await aggregator.run_cycle()

        assert len(outcomes) == 2
        assert messenger.broadcast.await_count == 2
        assert store.get_group("G1").current_streak == 1
        assert store.get_group("G2").current_streak == 1

    @pytest.mark.asyncio
    async def test_failing_group_is_isolated(
        self, store, roster, time_service, member, messenger, morning,
    ):
        member("G1", "U1", "Taro", today_reported=True, last_report=morning)
        member("G2", "U2", "Hanako", today_reported=True, last_report=morning)

        class BrokenRoster:
            def list_members(self, group_id, session=None):
                if group_id == "G1":
                    raise RuntimeError("boom")
                return roster.list_members(group_id, session=session)

        aggregator = DailyAggregator(store, BrokenRoster(), time_service, messenger)
        outcomes = await aggregator.run_cycle()

        assert [o.group_id for o in outcomes] == ["G2"]
        assert store.get_group("G1").current_streak == 0
        assert store.get_group("G2").current_streak == 1
        # G1 was never settled, so its member keeps today's flag
        assert store.get_user("U1").today_reported is True
        assert store.get_user("U2").today_reported is False

    @pytest.mark.asyncio
    async def test_no_groups(self, aggregator, messenger):
        assert await aggregator.run_cycle() == []
        messenger.broadcast.assert_not_awaited()


class TestSettleGroup:
    def test_uses_given_cycle_day(self, aggregator, store, member, morning):
        member("G1", "U1", "Taro", today_reported=True, last_report=morning)
        # evaluated as of the next day, this morning's report is stale
        outcome = aggregator.settle_group("G1", as_of=morning + timedelta(days=1))
        assert outcome.success is False
        assert store.get_group("G1").current_streak == 0
        assert store.get_user("U1").today_reported is False

    def test_empty_group_writes_nothing(self, aggregator, store):
        store.upsert_group("G1")
        store.update_group("G1", {"current_streak": 2, "best_streak": 2})
        assert aggregator.settle_group("G1") is None
        assert store.get_group("G1").current_streak == 2
