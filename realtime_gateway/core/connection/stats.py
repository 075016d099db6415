"""
Connection Statistics.

Aggregates statistics from the registry, room index, lifecycle and
metrics collector for the health and metrics endpoints.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from realtime_gateway.components.connection.presence import PresenceRegistry
    from realtime_gateway.components.connection.rooms import RoomMembership
    from realtime_gateway.components.metrics.collector import MetricsCollector
    from realtime_gateway.core.connection.cleanup import ConnectionCleanup
    from realtime_gateway.core.connection.lifecycle import ConnectionLifecycle


class ConnectionStats:
    """Aggregates connection statistics from components."""

    def __init__(
        self,
        registry: "PresenceRegistry",
        rooms: "RoomMembership",
        metrics: "MetricsCollector",
        lifecycle: "ConnectionLifecycle",
        cleanup: "ConnectionCleanup",
    ) -> None:
        self._registry = registry
        self._rooms = rooms
        self._metrics = metrics
        self._lifecycle = lifecycle
        self._cleanup = cleanup

    def get_stats(self) -> dict[str, Any]:
        """
        Get connection statistics.

        Top-level keys are gauges; "metrics" holds the collector counters.
        """
        connections = self._lifecycle.connections()
        return {
            "total_connections": len(connections),
            "users_present": len(self._registry),
            "rooms": self._rooms.room_count,
            "pending_persistence": self._lifecycle.pending_persistence,
            "pending_frames": sum(c.pending_frames for c in connections),
            "idle_timeout_seconds": self._cleanup.idle_timeout,
            "idle_eviction_enabled": self._cleanup.idle_eviction_enabled,
            "shutting_down": self._lifecycle.is_shutdown,
            "metrics": self._metrics.get_snapshot(),
        }

    def get_presence(self) -> dict[str, Any]:
        """Presence snapshot and room sizes for the diagnostics endpoint."""
        entries = sorted(self._registry.snapshot().values(), key=lambda e: e.connected_at)
        return {
            "users": [entry.to_dict() for entry in entries],
            "count": len(entries),
            "rooms": self._rooms.room_counts(),
        }
