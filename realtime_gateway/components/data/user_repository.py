"""
User presence store.

The gateway records online status and last activity in the user store on
admission and disconnect. Both writes are fire-and-forget from the
gateway's point of view (see ConnectionLifecycle), so they may land out of
order: a write older than the stored last_active is ignored. Implementations
just raise on failure and the caller turns that into a PersistenceError.

Implementations:
- SqlUserPresenceStore: SQLAlchemy, run in a worker thread so the event
  loop is never blocked by the database.
- InMemoryUserPresenceStore: dict-backed, for tests and local runs.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import or_, update

from shared.config.logging import get_logger

from realtime_gateway.components.data.models import User

logger = get_logger(__name__)


class UserPresenceStore(Protocol):
    """Collaborator that persists presence by user id."""

    async def mark_online(self, user_id: str, at: datetime) -> bool:
        """Set the user online. Returns False if the user does not exist or a newer write won."""
        ...

    async def mark_offline(self, user_id: str, at: datetime) -> bool:
        """Set the user offline with last_active=at. Returns False if the user does not exist or a newer write won."""
        ...


class SqlUserPresenceStore:
    """
    SQLAlchemy-backed presence store.

    Usage:
        store = SqlUserPresenceStore(timeout=5.0)
        await store.mark_offline("u1", datetime.now(timezone.utc))
    """

    def __init__(self, timeout: float = 5.0) -> None:
        """
        Args:
            timeout: Seconds to wait for the database before giving up.
        """
        self._timeout = timeout

    async def mark_online(self, user_id: str, at: datetime) -> bool:
        return await self._run(user_id, True, at)

    async def mark_offline(self, user_id: str, at: datetime) -> bool:
        return await self._run(user_id, False, at)

    async def _run(self, user_id: str, online: bool, at: datetime) -> bool:
        return await asyncio.wait_for(
            asyncio.to_thread(self._update_sync, user_id, online, at),
            timeout=self._timeout,
        )

    def _update_sync(self, user_id: str, online: bool, at: datetime) -> bool:
        """
        Synchronous presence update.

        Errors propagate to the caller.
        """
        from shared.infrastructure.db import get_db_context

        with get_db_context() as db:
            result = db.execute(
                update(User)
                .where(
                    User.id == user_id,
                    or_(User.last_active.is_(None), User.last_active <= at),
                )
                .values(is_online=online, last_active=at)
            )
            db.commit()

        if result.rowcount == 0:
            logger.debug(
                "Presence update skipped: unknown user or newer write",
                user_id=user_id,
                online=online,
            )
            return False
        return True


@dataclass
class PresenceRecord:
    is_online: bool
    last_active: datetime


class InMemoryUserPresenceStore:
    """
    Dict-backed store. Unknown users are created on first write; writes
    older than the stored last_active are ignored.

    fail_with makes every call raise the given exception (for failure-path tests).
    """

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.records: dict[str, PresenceRecord] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_with = fail_with

    async def mark_online(self, user_id: str, at: datetime) -> bool:
        return self._write("mark_online", user_id, True, at)

    async def mark_offline(self, user_id: str, at: datetime) -> bool:
        return self._write("mark_offline", user_id, False, at)

    def _write(self, operation: str, user_id: str, online: bool, at: datetime) -> bool:
        self.calls.append((operation, user_id))
        if self.fail_with is not None:
            raise self.fail_with
        current = self.records.get(user_id)
        if current is not None and current.last_active > at:
            return False
        self.records[user_id] = PresenceRecord(is_online=online, last_active=at)
        return True
