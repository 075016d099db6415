"""
Connection Lifecycle Management.

Admission and teardown of connections: accept, presence registration,
personal room, online/offline notices and user store bookkeeping.

Everything that touches the registry or room membership runs without an
await in between, so other handlers never observe a half-registered or
half-removed connection. User store writes run as background tasks and
never delay admission or teardown.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING

from shared.config.logging import get_logger

from realtime_gateway.components.connection.connection import Connection
from realtime_gateway.components.connection.presence import utc_now
from realtime_gateway.components.core.constants import WSConstants, user_room
from realtime_gateway.components.core.exceptions import BroadcastDeliveryError, PersistenceError
from realtime_gateway.components.events.types import OutboundEvent

if TYPE_CHECKING:
    from fastapi import WebSocket

    from shared.security.auth import Identity
    from realtime_gateway.components.connection.presence import PresenceRegistry
    from realtime_gateway.components.connection.rooms import RoomMembership
    from realtime_gateway.components.data.user_repository import UserPresenceStore
    from realtime_gateway.components.metrics.collector import MetricsCollector
    from realtime_gateway.core.connection.broadcaster import ConnectionBroadcaster

logger = get_logger(__name__)


class ConnectionLifecycle:
    """
    Manages the lifecycle of admitted connections.

    Responsibilities:
    - Accept and register new connections
    - Tear down connections (idempotent)
    - Schedule fire-and-forget presence persistence
    """

    def __init__(
        self,
        registry: "PresenceRegistry",
        rooms: "RoomMembership",
        broadcaster: "ConnectionBroadcaster",
        metrics: "MetricsCollector",
        user_store: "UserPresenceStore",
        outbound_queue_size: int,
        send_timeout: float,
        heartbeat_interval: int,
    ) -> None:
        self._registry = registry
        self._rooms = rooms
        self._broadcaster = broadcaster
        self._metrics = metrics
        self._user_store = user_store
        self._outbound_queue_size = outbound_queue_size
        self._send_timeout = send_timeout
        self._heartbeat_interval = heartbeat_interval

        self._connections: dict[str, Connection] = {}
        # Strong references: the event loop only keeps weak ones
        self._persistence_tasks: set[asyncio.Task[None]] = set()
        self._shutdown = False

    @property
    def total_connections(self) -> int:
        return len(self._connections)

    @property
    def pending_persistence(self) -> int:
        return len(self._persistence_tasks)

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def set_shutdown(self, value: bool) -> None:
        self._shutdown = value

    def connections(self) -> list[Connection]:
        """Snapshot of admitted connections."""
        return list(self._connections.values())

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def connections_for_user(self, user_id: str) -> list[Connection]:
        return [c for c in self._connections.values() if c.user_id == user_id]

    # =========================================================================
    # Admission
    # =========================================================================

    async def connect(
        self,
        websocket: "WebSocket",
        identity: "Identity",
        timeout: float = WSConstants.WS_ACCEPT_TIMEOUT,
    ) -> Connection:
        """
        Accept an authenticated websocket and register it.

        Raises:
            ConnectionError: If the server is shutting down or accept fails.
        """
        if self._shutdown:
            raise ConnectionError("Server is shutting down")

        try:
            await asyncio.wait_for(websocket.accept(), timeout=timeout)
        except asyncio.TimeoutError:
            raise ConnectionError("WebSocket accept timed out")
        except Exception as e:
            raise ConnectionError(f"WebSocket accept failed: {e}")

        connection = Connection(
            websocket,
            identity,
            queue_size=self._outbound_queue_size,
            send_timeout=self._send_timeout,
            on_writer_failure=self._on_writer_failure,
        )
        connection.start_writer()
        self._register(connection)
        return connection

    def _register(self, connection: Connection) -> None:
        """Synchronous part of admission."""
        user_id = connection.user_id
        self._connections[connection.connection_id] = connection
        self._registry.register(connection.identity, connection.connection_id, connection.connected_at)
        self._rooms.join(connection, user_room(user_id))
        self._metrics.increment_connections_admitted()

        self._broadcaster.send_to_connection(
            connection,
            OutboundEvent.connected(user_id, connection.connection_id, self._heartbeat_interval),
        )
        self._broadcaster.broadcast_all(OutboundEvent.user_online(user_id), exclude=connection)
        self.schedule_persistence("mark_online", user_id, connection.connected_at)

    # =========================================================================
    # Teardown
    # =========================================================================

    async def disconnect(self, connection: Connection, reason: str = "client_disconnect") -> bool:
        """
        Tear down a connection. Idempotent.

        Order: leave every room, drop presence, notify everyone, persist.
        When another connection of the same identity is still open it takes
        over the presence entry and no offline notice is sent.

        Returns:
            True if this call tore the connection down.
        """
        if not self._teardown(connection, reason):
            return False
        await connection.stop_writer()
        return True

    def _teardown(self, connection: Connection, reason: str) -> bool:
        """Synchronous part of teardown."""
        if connection.torn_down:
            return False
        connection.torn_down = True

        user_id = connection.user_id
        self._connections.pop(connection.connection_id, None)
        self._rooms.leave_all(connection)
        self._metrics.increment_connections_disconnected()

        remaining = self.connections_for_user(user_id)
        if remaining:
            entry = self._registry.get(user_id)
            if entry is not None and entry.connection_id == connection.connection_id:
                newest = max(remaining, key=lambda c: c.connected_at)
                # lastSeenAt of the identity never moves backwards
                self._registry.register(
                    newest.identity,
                    newest.connection_id,
                    newest.connected_at,
                    last_seen_at=max(entry.last_seen_at, newest.last_seen_at),
                )
            logger.debug(
                "Connection closed; identity still online",
                user_id=user_id,
                reason=reason,
                remaining=len(remaining),
            )
            return True

        self._registry.remove(user_id, connection.connection_id)
        self._broadcaster.broadcast_all(OutboundEvent.user_offline(user_id))
        self.schedule_persistence("mark_offline", user_id, utc_now())
        logger.info("User offline", user_id=user_id, reason=reason)
        return True

    def _on_writer_failure(self, connection: Connection, error: BroadcastDeliveryError) -> None:
        # Teardown itself happens when the endpoint's receive loop ends
        self._metrics.increment_writer_failures()

    # =========================================================================
    # Persistence
    # =========================================================================

    def schedule_persistence(self, operation: str, user_id: str, at: datetime) -> None:
        """Run a user store write in the background. Never raises."""
        task = asyncio.create_task(
            self._persist(operation, user_id, at),
            name=f"presence-{operation}-{user_id}",
        )
        self._persistence_tasks.add(task)
        task.add_done_callback(self._persistence_tasks.discard)

    async def _call_store(self, operation: str, user_id: str, at: datetime) -> bool:
        method = getattr(self._user_store, operation)
        try:
            return await method(user_id, at)
        except Exception as e:
            raise PersistenceError(user_id, operation, error=f"{type(e).__name__}: {e}") from e

    async def _persist(self, operation: str, user_id: str, at: datetime) -> None:
        try:
            await self._call_store(operation, user_id, at)
        except PersistenceError:
            self._metrics.increment_persistence_failures()
        else:
            self._metrics.increment_persistence_succeeded()

    async def drain_persistence(self, timeout: float) -> int:
        """
        Wait for in-flight user store writes.

        Returns:
            Number of writes still pending after the timeout.
        """
        pending = set(self._persistence_tasks)
        if not pending:
            return 0
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            logger.warning("User store writes still pending at shutdown", count=len(still_pending))
        return len(still_pending)
