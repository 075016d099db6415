"""
Connection management components.

Presence registry, room membership, per-connection outbound queue and
the idle sweeper.
"""

from realtime_gateway.components.connection.presence import (
    PresenceEntry,
    PresenceRegistry,
    utc_now,
)
from realtime_gateway.components.connection.rooms import RoomMembership
from realtime_gateway.components.connection.connection import Connection, is_ws_connected
from realtime_gateway.components.connection.heartbeat import IdleSweeper

__all__ = [
    "PresenceEntry",
    "PresenceRegistry",
    "utc_now",
    "RoomMembership",
    "Connection",
    "is_ws_connected",
    "IdleSweeper",
]
