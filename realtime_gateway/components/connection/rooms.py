"""
Room Membership.

Rooms are plain string ids. A room exists only while it has members: the
index drops a room as soon as its last member leaves, so there is no
explicit create or delete.

Each Connection also keeps the set of rooms it joined, which is what lets
leave_all run without scanning every room.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shared.config.logging import get_logger

if TYPE_CHECKING:
    from realtime_gateway.components.connection.connection import Connection

logger = get_logger(__name__)


class RoomMembership:
    """
    room_id -> set of member connections.

    Usage:
        rooms = RoomMembership()
        rooms.join(connection, "group-7")
        for member in rooms.members("group-7"):
            ...
        rooms.leave_all(connection)
    """

    def __init__(self) -> None:
        self._members: dict[str, set[Connection]] = {}

    def join(self, connection: "Connection", room_id: str) -> bool:
        """
        Add connection to room_id. Idempotent.

        Returns:
            True if the connection was not already a member.
        """
        members = self._members.setdefault(room_id, set())
        if connection in members:
            return False
        members.add(connection)
        connection.rooms.add(room_id)
        return True

    def members(self, room_id: str) -> frozenset["Connection"]:
        """Current members of room_id (empty if the room does not exist)."""
        return frozenset(self._members.get(room_id, ()))

    def leave_all(self, connection: "Connection") -> list[str]:
        """
        Remove connection from every room it joined.

        Returns:
            The room ids the connection left.
        """
        left = list(connection.rooms)
        for room_id in left:
            members = self._members.get(room_id)
            if members is None:
                continue
            members.discard(connection)
            if not members:
                del self._members[room_id]
        connection.rooms.clear()
        return left

    def has_room(self, room_id: str) -> bool:
        return room_id in self._members

    def room_counts(self) -> dict[str, int]:
        """Member count per room, for diagnostics."""
        return {room_id: len(members) for room_id, members in self._members.items()}

    @property
    def room_count(self) -> int:
        return len(self._members)
