"""
Realtime Connection Manager.

Thin orchestrator that owns the gateway's shared state and composes the
components that act on it:
- PresenceRegistry: identity -> presence entry
- RoomMembership: room -> member connections
- ConnectionLifecycle: admit/tear down connections
- ConnectionBroadcaster: queue outbound frames
- EventRelay: inbound event -> broadcast
- ConnectionCleanup: idle eviction and shutdown close
- ConnectionStats: statistics aggregation

Each application (and each test) builds its own manager; nothing here is
a module-level singleton.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from shared.config.settings import Settings, settings as default_settings

from realtime_gateway.components.connection.presence import PresenceRegistry
from realtime_gateway.components.connection.rooms import RoomMembership
from realtime_gateway.components.core.constants import WSCloseCode, WSConstants
from realtime_gateway.components.events.relay import EventRelay, RelayResult
from realtime_gateway.components.metrics.collector import MetricsCollector
from realtime_gateway.core.connection import (
    ConnectionBroadcaster,
    ConnectionCleanup,
    ConnectionLifecycle,
    ConnectionStats,
)

if TYPE_CHECKING:
    from fastapi import WebSocket

    from shared.security.auth import Identity
    from realtime_gateway.components.connection.connection import Connection
    from realtime_gateway.components.data.user_repository import UserPresenceStore


class ConnectionManager:
    """
    Manages realtime connections, presence and rooms.

    Configuration from settings:
    - ws_outbound_queue_size: Pending frames per connection (default: 256)
    - ws_send_timeout: Per-frame send timeout (default: 5.0)
    - ws_heartbeat_interval: Advertised to clients (default: 30)
    - ws_idle_timeout: Idle eviction timeout, 0 disables (default: 0)
    """

    def __init__(
        self,
        user_store: "UserPresenceStore | None" = None,
        config: Settings | None = None,
    ) -> None:
        """
        Args:
            user_store: Presence persistence collaborator. Defaults to the SQL store.
            config: Settings to read limits from. Defaults to the process settings.
        """
        config = config or default_settings
        if user_store is None:
            from realtime_gateway.components.data.user_repository import SqlUserPresenceStore
            user_store = SqlUserPresenceStore()

        self.config = config
        self.registry = PresenceRegistry()
        self.rooms = RoomMembership()
        self.metrics = MetricsCollector()
        self.user_store = user_store

        self.broadcaster = ConnectionBroadcaster(
            rooms=self.rooms,
            metrics=self.metrics,
            all_connections=lambda: self._lifecycle.connections(),
        )
        self._lifecycle = ConnectionLifecycle(
            registry=self.registry,
            rooms=self.rooms,
            broadcaster=self.broadcaster,
            metrics=self.metrics,
            user_store=user_store,
            outbound_queue_size=config.ws_outbound_queue_size,
            send_timeout=config.ws_send_timeout,
            heartbeat_interval=config.ws_heartbeat_interval,
        )
        self.relay = EventRelay(
            registry=self.registry,
            rooms=self.rooms,
            broadcaster=self.broadcaster,
            metrics=self.metrics,
        )
        self._cleanup = ConnectionCleanup(
            lifecycle=self._lifecycle,
            metrics=self.metrics,
            idle_timeout=config.ws_idle_timeout,
        )
        self._stats = ConnectionStats(
            registry=self.registry,
            rooms=self.rooms,
            metrics=self.metrics,
            lifecycle=self._lifecycle,
            cleanup=self._cleanup,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def total_connections(self) -> int:
        return self._lifecycle.total_connections

    @property
    def is_shutdown(self) -> bool:
        return self._lifecycle.is_shutdown

    def connections(self) -> list["Connection"]:
        return self._lifecycle.connections()

    def connections_for_user(self, user_id: str) -> list["Connection"]:
        return self._lifecycle.connections_for_user(user_id)

    async def connect(self, websocket: "WebSocket", identity: "Identity") -> "Connection":
        """Accept and register an authenticated websocket."""
        return await self._lifecycle.connect(websocket, identity)

    async def disconnect(self, connection: "Connection", reason: str = "client_disconnect") -> bool:
        """Tear down a connection. Safe to call more than once."""
        return await self._lifecycle.disconnect(connection, reason)

    def handle_frame(self, connection: "Connection", raw: str | bytes) -> RelayResult:
        """Relay one inbound frame from connection."""
        return self.relay.handle_frame(connection, raw)

    # =========================================================================
    # Cleanup
    # =========================================================================

    async def evict_idle(self) -> int:
        """Close connections idle for longer than ws_idle_timeout (no-op when 0)."""
        return await self._cleanup.evict_idle()

    async def close_for_malformed(self, connection: "Connection") -> None:
        """Close a connection that exceeded the malformed frame limit."""
        self.metrics.increment_closed_malformed()
        await connection.close(WSCloseCode.POLICY_VIOLATION, WSConstants.REASON_MALFORMED)
        await self.disconnect(connection, reason="malformed_events")

    async def shutdown(self, timeout: float | None = None) -> None:
        """
        Stop admitting, close every connection with 1001 and wait for
        pending user store writes.
        """
        self._lifecycle.set_shutdown(True)
        await self._cleanup.close_all()
        await self._lifecycle.drain_persistence(
            timeout if timeout is not None else self.config.ws_shutdown_timeout
        )

    async def drain_persistence(self, timeout: float = 5.0) -> int:
        return await self._lifecycle.drain_persistence(timeout)

    # =========================================================================
    # Stats
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        return self._stats.get_stats()

    def get_presence(self) -> dict[str, Any]:
        return self._stats.get_presence()
