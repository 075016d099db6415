"""
Connection Management Module.

Components composed by ConnectionManager:
- lifecycle.py: Connection accept/teardown and presence persistence
- broadcaster.py: Outbound frame fan-out
- cleanup.py: Idle eviction and shutdown close
- stats.py: Statistics aggregation
"""

from realtime_gateway.core.connection.lifecycle import ConnectionLifecycle
from realtime_gateway.core.connection.broadcaster import ConnectionBroadcaster
from realtime_gateway.core.connection.cleanup import ConnectionCleanup
from realtime_gateway.core.connection.stats import ConnectionStats

__all__ = [
    "ConnectionLifecycle",
    "ConnectionBroadcaster",
    "ConnectionCleanup",
    "ConnectionStats",
]
