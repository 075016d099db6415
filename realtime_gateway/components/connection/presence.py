"""
Presence Registry.

Process-wide mapping from user identity to the metadata of the connection
that currently represents it. Owned by the ConnectionManager and passed to
the components that need it; never accessed as a module global.

Only four operations mutate or read it: register, touch, remove, snapshot.
All of them run on the event loop thread and never await, so no locking
is needed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable

from shared.config.logging import get_logger

if TYPE_CHECKING:
    from shared.security.auth import Identity

logger = get_logger(__name__)

_ONE_MICROSECOND = timedelta(microseconds=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_after(previous: datetime, now: datetime) -> datetime:
    """Return now, or previous + 1µs if the clock has not advanced past previous."""
    if now <= previous:
        return previous + _ONE_MICROSECOND
    return now


@dataclass(frozen=True, slots=True)
class PresenceEntry:
    """
    Presence of one identity.

    connection_id identifies the connection that owns the entry; a newer
    admission for the same identity replaces it.
    """

    user_id: str
    connection_id: str
    connected_at: datetime
    last_seen_at: datetime
    email: str | None = None

    def to_dict(self) -> dict[str, str]:
        return {
            "userId": self.user_id,
            "connectionId": self.connection_id,
            "connectedAt": self.connected_at.isoformat(),
            "lastSeenAt": self.last_seen_at.isoformat(),
        }


class PresenceRegistry:
    """
    Identity -> PresenceEntry, at most one entry per identity.

    Usage:
        registry = PresenceRegistry()
        registry.register(identity, connection_id)
        registry.touch(identity.user_id)
        registry.remove(identity.user_id, connection_id)
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._entries: dict[str, PresenceEntry] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._entries

    def register(
        self,
        identity: "Identity",
        connection_id: str,
        connected_at: datetime | None = None,
        last_seen_at: datetime | None = None,
    ) -> PresenceEntry:
        """
        Insert or replace the entry for identity. Always succeeds.

        Args:
            identity: Admitted identity.
            connection_id: ID of the connection that now owns the entry.
            connected_at: Admission time. Defaults to now.
            last_seen_at: Last activity to carry over (handover). Never earlier
                than connected_at.

        Returns:
            The new entry.
        """
        now = connected_at or self._clock()
        previous = self._entries.get(identity.user_id)
        if previous is not None and previous.connection_id != connection_id:
            logger.debug(
                "Presence entry replaced by newer connection",
                user_id=identity.user_id,
                previous_connection=previous.connection_id[:8],
            )

        entry = PresenceEntry(
            user_id=identity.user_id,
            connection_id=connection_id,
            connected_at=now,
            last_seen_at=max(now, last_seen_at) if last_seen_at is not None else now,
            email=identity.email,
        )
        self._entries[identity.user_id] = entry
        return entry

    def touch(self, user_id: str) -> PresenceEntry | None:
        """
        Refresh last_seen_at of an existing entry.

        Never creates an entry. last_seen_at strictly increases on every
        touch, even when the clock has not moved.

        Returns:
            The updated entry, or None if the identity is not present.
        """
        entry = self._entries.get(user_id)
        if entry is None:
            return None

        updated = replace(entry, last_seen_at=next_after(entry.last_seen_at, self._clock()))
        self._entries[user_id] = updated
        return updated

    def remove(self, user_id: str, connection_id: str | None = None) -> bool:
        """
        Delete the entry for user_id. Idempotent.

        When connection_id is given, the entry is only removed if that
        connection still owns it, so tearing down a stale connection never
        removes the entry of a newer one.

        Returns:
            True if an entry was removed.
        """
        entry = self._entries.get(user_id)
        if entry is None:
            return False
        if connection_id is not None and entry.connection_id != connection_id:
            return False
        del self._entries[user_id]
        return True

    def get(self, user_id: str) -> PresenceEntry | None:
        return self._entries.get(user_id)

    def snapshot(self) -> dict[str, PresenceEntry]:
        """Copy of the current mapping for diagnostics."""
        return dict(self._entries)
