"""
Okiru Bot — SQLite Store.

Implements StorePort on top of sqlite3. Users, groups and memberships are
upserted on first interaction; per-user transitions go through
update_user_if, a compare-and-swap that only writes when the row still holds
the values the caller read.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator

from src.core.errors import StoreError
from src.data.models import Group, User

logger = logging.getLogger(__name__)

_USER_COLUMNS = frozenset({
    "display_name",
    "wakeup_hour",
    "wakeup_minute",
    "last_report",
    "today_reported",
    "joker_used",
    "last_joker_date",
    "week_joker_count",
    "week_start_date",
})

_GROUP_COLUMNS = frozenset({"current_streak", "best_streak"})


def _to_db(value: Any) -> Any:
    """Serialize a model value into its SQLite column representation."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise ValueError("datetimes must be timezone-aware")
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    if isinstance(value, date):
        return value.isoformat()
    return value


def _parse_datetime(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    return datetime.fromisoformat(raw)


def _parse_date(raw: str | None) -> date | None:
    if raw is None:
        return None
    return date.fromisoformat(raw)


def _check_columns(fields: Iterable[str], allowed: frozenset[str]) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown column(s): {', '.join(sorted(unknown))}")


class WakeupStore:
    """SQLite-backed storage for users, groups and memberships."""

    def __init__(self, db_path: str | None = None, busy_timeout: float = 5.0) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        self._busy_timeout = busy_timeout
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection; commit on success, roll back and wrap errors otherwise."""
        try:
            conn = sqlite3.connect(self._db_path, timeout=self._busy_timeout)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open database {self._db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(str(exc)) from exc
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _session(self, session: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        """Reuse an open transaction when given one, else open a short-lived connection."""
        if session is not None:
            yield session
            return
        with self._connect() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Exclusive write transaction; pass the yielded handle as ``session``."""
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            yield conn

    @contextmanager
    def savepoint(
        self, session: sqlite3.Connection, name: str = "unit",
    ) -> Iterator[sqlite3.Connection]:
        """Nested unit inside an open transaction; on error only its own writes are undone."""
        session.execute(f"SAVEPOINT {name}")
        try:
            yield session
        except BaseException:
            session.execute(f"ROLLBACK TO SAVEPOINT {name}")
            session.execute(f"RELEASE SAVEPOINT {name}")
            raise
        session.execute(f"RELEASE SAVEPOINT {name}")

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS users (
                    id               TEXT    PRIMARY KEY,
                    display_name     TEXT    NOT NULL,
                    wakeup_hour      INTEGER,
                    wakeup_minute    INTEGER,
                    last_report      TEXT,
                    today_reported   INTEGER NOT NULL DEFAULT 0,
                    joker_used       INTEGER NOT NULL DEFAULT 0,
                    last_joker_date  TEXT,
                    week_joker_count INTEGER NOT NULL DEFAULT 0 CHECK (week_joker_count >= 0),
                    week_start_date  TEXT
                );

                CREATE TABLE IF NOT EXISTS groups (
                    id             TEXT    PRIMARY KEY,
                    current_streak INTEGER NOT NULL DEFAULT 0 CHECK (current_streak >= 0),
                    best_streak    INTEGER NOT NULL DEFAULT 0 CHECK (best_streak >= 0)
                );

                CREATE TABLE IF NOT EXISTS group_users (
                    group_id TEXT NOT NULL REFERENCES groups(id),
                    user_id  TEXT NOT NULL REFERENCES users(id),
                    PRIMARY KEY (group_id, user_id)
                );
            """)
        logger.debug("Store initialized at %s", self._db_path)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            display_name=row["display_name"],
            wakeup_hour=row["wakeup_hour"],
            wakeup_minute=row["wakeup_minute"],
            last_report=_parse_datetime(row["last_report"]),
            today_reported=bool(row["today_reported"]),
            joker_used=bool(row["joker_used"]),
            last_joker_date=_parse_datetime(row["last_joker_date"]),
            week_joker_count=row["week_joker_count"],
            week_start_date=_parse_date(row["week_start_date"]),
        )

    @staticmethod
    def _row_to_group(row: sqlite3.Row) -> Group:
        return Group(
            id=row["id"],
            current_streak=row["current_streak"],
            best_streak=row["best_streak"],
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user(self, user_id: str, session: sqlite3.Connection | None = None) -> User | None:
        """Fetch a user by ID."""
        with self._session(session) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def upsert_user(self, user_id: str, display_name: str, week_start_date: date) -> User:
        """Create the user on first sight, otherwise refresh the display name.

        ``week_start_date`` only applies to newly created rows.
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (id, display_name, week_start_date)
                VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET display_name = excluded.display_name
                """,
                (user_id, display_name, _to_db(week_start_date)),
            )
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row)

    def update_user(
        self,
        user_id: str,
        fields: dict[str, Any],
        session: sqlite3.Connection | None = None,
    ) -> None:
        """Unconditionally overwrite the given columns."""
        if not fields:
            return
        _check_columns(fields, _USER_COLUMNS)
        assignments = ", ".join(f"{col} = ?" for col in fields)
        params = [_to_db(v) for v in fields.values()] + [user_id]
        with self._session(session) as conn:
            conn.execute(f"UPDATE users SET {assignments} WHERE id = ?", params)

    def update_user_if(
        self, user_id: str, expected: dict[str, Any], fields: dict[str, Any],
    ) -> bool:
        """Compare-and-swap: write ``fields`` only if every ``expected`` column still matches.

        Returns False when the row changed (or vanished) since it was read.
        """
        _check_columns(fields, _USER_COLUMNS)
        _check_columns(expected, _USER_COLUMNS)
        assignments = ", ".join(f"{col} = ?" for col in fields)
        conditions = "".join(f" AND {col} IS ?" for col in expected)
        params = (
            [_to_db(v) for v in fields.values()]
            + [user_id]
            + [_to_db(v) for v in expected.values()]
        )
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE users SET {assignments} WHERE id = ?{conditions}", params,
            )
        return cursor.rowcount == 1

    def get_users_by_ids(
        self, user_ids: Iterable[str], session: sqlite3.Connection | None = None,
    ) -> list[User]:
        """Fetch several users at once; unknown IDs are silently absent."""
        ids = list(user_ids)
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        with self._session(session) as conn:
            rows = conn.execute(
                f"SELECT * FROM users WHERE id IN ({placeholders}) ORDER BY id", ids,
            ).fetchall()
        return [self._row_to_user(r) for r in rows]

    def reset_daily_flags(
        self,
        user_ids: Iterable[str],
        before: datetime,
        session: sqlite3.Connection | None = None,
    ) -> None:
        """Nightly reset of today_reported / joker_used for the given users.

        A flag set at or after ``before`` (a report or declaration that raced
        the aggregation) belongs to the next cycle and is kept.
        """
        ids = list(user_ids)
        if not ids:
            return
        placeholders = ", ".join("?" for _ in ids)
        cutoff = _to_db(before)
        with self._session(session) as conn:
            conn.execute(
                f"""
                UPDATE users SET today_reported = 0
                WHERE id IN ({placeholders}) AND (last_report IS NULL OR last_report < ?)
                """,
                [*ids, cutoff],
            )
            conn.execute(
                f"""
                UPDATE users SET joker_used = 0
                WHERE id IN ({placeholders}) AND (last_joker_date IS NULL OR last_joker_date < ?)
                """,
                [*ids, cutoff],
            )

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def get_group(self, group_id: str, session: sqlite3.Connection | None = None) -> Group | None:
        """Fetch a group by ID."""
        with self._session(session) as conn:
            row = conn.execute("SELECT * FROM groups WHERE id = ?", (group_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_group(row)

    def upsert_group(self, group_id: str) -> Group:
        """Create the group if missing; never touches existing streaks."""
        with self._connect() as conn:
            cursor = conn.execute("INSERT OR IGNORE INTO groups (id) VALUES (?)", (group_id,))
            row = conn.execute("SELECT * FROM groups WHERE id = ?", (group_id,)).fetchone()
        if cursor.rowcount > 0:
            logger.info("Group registered: %s", group_id)
        return self._row_to_group(row)

    def update_group(
        self,
        group_id: str,
        fields: dict[str, Any],
        session: sqlite3.Connection | None = None,
    ) -> None:
        if not fields:
            return
        _check_columns(fields, _GROUP_COLUMNS)
        assignments = ", ".join(f"{col} = ?" for col in fields)
        params = [_to_db(v) for v in fields.values()] + [group_id]
        with self._session(session) as conn:
            conn.execute(f"UPDATE groups SET {assignments} WHERE id = ?", params)

    def list_all_groups(self, session: sqlite3.Connection | None = None) -> list[Group]:
        """Return every known group."""
        with self._session(session) as conn:
            rows = conn.execute("SELECT * FROM groups ORDER BY id").fetchall()
        return [self._row_to_group(r) for r in rows]

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def list_group_members(
        self, group_id: str, session: sqlite3.Connection | None = None,
    ) -> set[str]:
        with self._session(session) as conn:
            rows = conn.execute(
                "SELECT user_id FROM group_users WHERE group_id = ?", (group_id,),
            ).fetchall()
        return {r["user_id"] for r in rows}

    def add_group_member(self, group_id: str, user_id: str) -> bool:
        """Add a membership. Returns False if it already existed."""
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO group_users (group_id, user_id) VALUES (?, ?)",
                (group_id, user_id),
            )
        added = cursor.rowcount > 0
        if added:
            logger.info("User %s joined group %s", user_id, group_id)
        return added


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    store = WakeupStore(db_path="data/test_okiru.db")
    user = store.upsert_user("U1", "Taro", date.today())
    print(f"Upserted: {user}")

    store.upsert_group("G1")
    store.add_group_member("G1", "U1")
    print(f"Members of G1: {store.list_group_members('G1')}")
