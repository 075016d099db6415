"""
Tests for the user presence stores.
"""

from datetime import datetime, timedelta, timezone

import pytest

from shared.infrastructure.db import get_db_context
from realtime_gateway.components.data.models import User
from realtime_gateway.components.data.user_repository import (
    InMemoryUserPresenceStore,
    SqlUserPresenceStore,
)


AT = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def add_user(user_id: str, online: bool = False) -> None:
    with get_db_context() as db:
        db.add(User(id=user_id, email=f"{user_id}@example.com", is_online=online))
        db.commit()


def load_user(user_id: str) -> User:
    with get_db_context() as db:
        user = db.get(User, user_id)
        db.expunge(user)
        return user


class TestSqlUserPresenceStore:
    """SqlUserPresenceStore against an in-memory SQLite database."""

    @pytest.mark.asyncio
    async def test_mark_online(self, sqlite_engine):
        add_user("u1")

        assert await SqlUserPresenceStore().mark_online("u1", AT) is True

        user = load_user("u1")
        assert user.is_online is True
        assert user.last_active.replace(tzinfo=None) == AT.replace(tzinfo=None)

    @pytest.mark.asyncio
    async def test_mark_offline(self, sqlite_engine):
        add_user("u1", online=True)

        assert await SqlUserPresenceStore().mark_offline("u1", AT) is True

        user = load_user("u1")
        assert user.is_online is False
        assert user.last_active is not None

    @pytest.mark.asyncio
    async def test_unknown_user_returns_false(self, sqlite_engine):
        assert await SqlUserPresenceStore().mark_offline("ghost", AT) is False

    @pytest.mark.asyncio
    async def test_other_users_untouched(self, sqlite_engine):
        add_user("u1", online=True)
        add_user("u2", online=True)

        await SqlUserPresenceStore().mark_offline("u1", AT)

        assert load_user("u2").is_online is True

    @pytest.mark.asyncio
    async def test_older_write_does_not_overwrite_newer(self, sqlite_engine):
        add_user("u1")
        store = SqlUserPresenceStore()

        assert await store.mark_online("u1", AT) is True
        assert await store.mark_offline("u1", AT - timedelta(seconds=1)) is False

        user = load_user("u1")
        assert user.is_online is True
        assert user.last_active.replace(tzinfo=None) == AT.replace(tzinfo=None)


class TestInMemoryUserPresenceStore:
    """InMemoryUserPresenceStore used by the rest of the suite."""

    @pytest.mark.asyncio
    async def test_records_writes(self):
        store = InMemoryUserPresenceStore()

        await store.mark_online("u1", AT)
        await store.mark_offline("u1", AT)

        assert store.records["u1"].is_online is False
        assert store.calls == [("mark_online", "u1"), ("mark_offline", "u1")]

    @pytest.mark.asyncio
    async def test_fail_with_raises(self):
        store = InMemoryUserPresenceStore(fail_with=RuntimeError("down"))

        with pytest.raises(RuntimeError):
            await store.mark_offline("u1", AT)

        assert store.records == {}
        assert store.calls == [("mark_offline", "u1")]

    @pytest.mark.asyncio
    async def test_older_write_is_ignored(self):
        store = InMemoryUserPresenceStore()

        await store.mark_online("u1", AT)
        assert await store.mark_offline("u1", AT - timedelta(seconds=1)) is False

        assert store.records["u1"].is_online is True
        assert store.records["u1"].last_active == AT
