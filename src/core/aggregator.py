"""
Okiru Bot — Daily Aggregation.

Once a day (noon Asia/Tokyo by default) every group is settled: if every
time-configured member either reported a wake-up today or declared
good-sleep, the group's streak grows; otherwise it resets to zero and the
group is told who overslept.

All groups are settled and the daily flags of every settled member are reset
in a single store transaction, each group inside its own savepoint: one
broken group is rolled back and logged and the cycle moves on. A member of
several groups is judged on the same flags everywhere, and no command can
slip in between a group's evaluation and the reset. Results are broadcast
only after the commit.

This module is transport-agnostic: it depends on StorePort and MessagingPort
protocols, not on specific implementations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from src.core.bot_text import DEFAULT_BOT_TEXT
from src.core.errors import NotFoundTransient
from src.core.responses import compose

if TYPE_CHECKING:
    from datetime import datetime

    from src.core.bot_text import BotText
    from src.core.group_roster import GroupRoster
    from src.core.time_service import TimeService
    from src.data.models import Group, User
    from src.ports.messaging_port import MessagingPort
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)


@dataclass
class GroupOutcome:
    """Result of settling one group for one cycle."""

    group_id: str
    success: bool
    previous_streak: int
    current_streak: int
    best_streak: int
    failed_users: list[User] = field(default_factory=list)
    exempt_user_ids: list[str] = field(default_factory=list)
    tracked_user_ids: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pure evaluation
# ---------------------------------------------------------------------------


def evaluate_group(
    group: Group,
    members: list[User],
    reported_today: Callable[[datetime | None], bool],
) -> GroupOutcome | None:
    """Decide one group's outcome from its members' daily flags.

    Members without a wake-up time are left out entirely. Returns None when
    nobody in the group is tracked.
    """
    tracked = [u for u in members if u.has_wakeup_time]
    if not tracked:
        return None

    exempt = [u for u in tracked if u.joker_used]
    candidates = [u for u in tracked if not u.joker_used]
    failed = [u for u in candidates if not reported_today(u.last_report)]

    if failed:
        current = 0
        best = group.best_streak
    else:
        current = group.current_streak + 1
        best = max(group.best_streak, current)

    return GroupOutcome(
        group_id=group.id,
        success=not failed,
        previous_streak=group.current_streak,
        current_streak=current,
        best_streak=best,
        failed_users=failed,
        exempt_user_ids=[u.id for u in exempt],
        tracked_user_ids=[u.id for u in tracked],
    )


def compose_outcome_message(outcome: GroupOutcome, bot_text: BotText) -> str:
    if outcome.success:
        return compose(bot_text.all_success, streak=outcome.current_streak)
    names = bot_text.failed_users_separator.join(u.display_name for u in outcome.failed_users)
    return compose(
        bot_text.someone_failure,
        failed_users=names,
        old_streak=outcome.previous_streak,
    )


# ---------------------------------------------------------------------------
# Cycle runner
# ---------------------------------------------------------------------------


class DailyAggregator:
    """Settles every group's streak once per scheduling cycle."""

    def __init__(
        self,
        store: StorePort,
        roster: GroupRoster,
        time_service: TimeService,
        messenger: MessagingPort,
        bot_text: BotText = DEFAULT_BOT_TEXT,
    ) -> None:
        self._store = store
        self._roster = roster
        self._time = time_service
        self._messenger = messenger
        self._text = bot_text

    async def run_cycle(self) -> list[GroupOutcome]:
        """Settle all groups and reset daily flags in one commit, then broadcast."""
        cycle_start = self._time.now()
        logger.info("Running daily report check at %s", cycle_start.strftime("%Y-%m-%d %H:%M:%S"))

        try:
            outcomes = self._settle_all(cycle_start)
        except Exception as exc:
            logger.error("Daily check aborted, nothing committed: %s", exc)
            return []

        for outcome in outcomes:
            message = compose_outcome_message(outcome, self._text)
            try:
                await self._messenger.broadcast(outcome.group_id, message)
            except Exception as exc:
                logger.error("Failed to broadcast result to group %s: %s", outcome.group_id, exc)

        logger.info(
            "Daily check done: %d group(s) settled, %d succeeded",
            len(outcomes), sum(1 for o in outcomes if o.success),
        )
        return outcomes

    def _settle_all(self, cycle_start: datetime) -> list[GroupOutcome]:
        outcomes: list[GroupOutcome] = []
        with self._store.transaction() as session:
            for group in self._store.list_all_groups(session=session):
                try:
                    with self._store.savepoint(session, "settle_group"):
                        outcome = self._settle(group.id, cycle_start, session)
                except Exception as exc:
                    logger.error("Daily check failed for group %s: %s", group.id, exc)
                    continue
                if outcome is not None:
                    outcomes.append(outcome)

            # Once per cycle, so a member of several groups keeps the same flags everywhere
            settled_ids = {uid for o in outcomes for uid in o.tracked_user_ids}
            self._store.reset_daily_flags(
                sorted(settled_ids), before=cycle_start, session=session,
            )
        return outcomes

    def settle_group(self, group_id: str, as_of: datetime | None = None) -> GroupOutcome | None:
        """Evaluate one group, persist its new streak and reset its members' flags.

        A report counts when it falls on the same local day as ``as_of``
        (default: now). Returns None (nothing written) when the group has no
        tracked members.
        """
        if as_of is None:
            as_of = self._time.now()
        with self._store.transaction() as session:
            outcome = self._settle(group_id, as_of, session)
            if outcome is not None:
                self._store.reset_daily_flags(
                    outcome.tracked_user_ids, before=as_of, session=session,
                )
        return outcome

    def _settle(self, group_id: str, as_of: datetime, session: Any) -> GroupOutcome | None:
        def reported_today(instant: datetime | None) -> bool:
            return self._time.same_calendar_day(instant, as_of)

        member_ids = self._roster.list_members(group_id, session=session)
        if not member_ids:
            logger.debug("Group %s has no members, skipping", group_id)
            return None

        group = self._store.get_group(group_id, session=session)
        if group is None:
            raise NotFoundTransient("group", group_id)

        members = self._store.get_users_by_ids(member_ids, session=session)
        outcome = evaluate_group(group, members, reported_today)
        if outcome is None:
            logger.debug("Group %s has no member with a wake-up time, skipping", group_id)
            return None

        self._store.update_group(
            group_id,
            {"current_streak": outcome.current_streak, "best_streak": outcome.best_streak},
            session=session,
        )

        if outcome.success:
            logger.info("Group %s: all up, streak now %d", group_id, outcome.current_streak)
        else:
            logger.info(
                "Group %s: %d overslept, streak of %d reset",
                group_id, len(outcome.failed_users), outcome.previous_streak,
            )
        for uid in outcome.exempt_user_ids:
            logger.info("User %s used good-sleep, skipping", uid)
        return outcome
