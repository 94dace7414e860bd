"""Group membership management."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.data.models import Group
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)


class GroupRoster:
    """Lazily creates groups and memberships; both operations are idempotent."""

    def __init__(self, store: StorePort) -> None:
        self._store = store

    def ensure_group(self, group_id: str) -> Group:
        return self._store.upsert_group(group_id)

    def ensure_membership(self, group_id: str, user_id: str) -> None:
        """Make sure the group exists and ``user_id`` belongs to it."""
        self.ensure_group(group_id)
        if self._store.add_group_member(group_id, user_id):
            logger.debug("Membership created: %s in %s", user_id, group_id)

    def list_members(self, group_id: str, session: Any = None) -> set[str]:
        return self._store.list_group_members(group_id, session=session)
