"""
Realtime Gateway Core Module.

Components the ConnectionManager composes:
- connection/: Connection lifecycle, broadcasting, cleanup, stats
"""

from realtime_gateway.core.connection import (
    ConnectionLifecycle,
    ConnectionBroadcaster,
    ConnectionCleanup,
    ConnectionStats,
)

__all__ = [
    "ConnectionLifecycle",
    "ConnectionBroadcaster",
    "ConnectionCleanup",
    "ConnectionStats",
]
