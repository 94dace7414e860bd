"""Store port — abstract key-addressed persistence.

Core modules depend on this protocol, never on a specific database.
Single-entity lookups return None when the row does not exist; that is the
cue for upsert-on-miss, not an error. Implementations raise
src.core.errors.StoreError on any backend failure.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date, datetime
from typing import Any, Iterable, Protocol

from src.data.models import Group, User


class StorePort(Protocol):
    """Abstract persistence interface used by core modules."""

    def get_user(self, user_id: str, session: Any = None) -> User | None: ...

    def upsert_user(
        self, user_id: str, display_name: str, week_start_date: date,
    ) -> User: ...

    def update_user(self, user_id: str, fields: dict[str, Any], session: Any = None) -> None: ...

    def update_user_if(
        self, user_id: str, expected: dict[str, Any], fields: dict[str, Any],
    ) -> bool: ...

    def get_users_by_ids(self, user_ids: Iterable[str], session: Any = None) -> list[User]: ...

    def reset_daily_flags(
        self, user_ids: Iterable[str], before: datetime, session: Any = None,
    ) -> None: ...

    def get_group(self, group_id: str, session: Any = None) -> Group | None: ...

    def upsert_group(self, group_id: str) -> Group: ...

    def update_group(self, group_id: str, fields: dict[str, Any], session: Any = None) -> None: ...

    def list_all_groups(self, session: Any = None) -> list[Group]: ...

    def list_group_members(self, group_id: str, session: Any = None) -> set[str]: ...

    def add_group_member(self, group_id: str, user_id: str) -> bool: ...

    def transaction(self) -> AbstractContextManager[Any]: ...

    def savepoint(self, session: Any, name: str = "unit") -> AbstractContextManager[Any]: ...
