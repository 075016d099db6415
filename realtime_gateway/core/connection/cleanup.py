"""
Connection Cleanup Management.

Server-initiated teardown: opt-in idle eviction and the close-everything
pass run at shutdown. Both close the transport first and then run the
normal disconnect handling for the connection.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable, TYPE_CHECKING

from shared.config.logging import audit_ws_connection, get_logger

from realtime_gateway.components.connection.presence import utc_now
from realtime_gateway.components.core.constants import WSCloseCode, WSConstants

if TYPE_CHECKING:
    from realtime_gateway.components.connection.connection import Connection
    from realtime_gateway.components.metrics.collector import MetricsCollector
    from realtime_gateway.core.connection.lifecycle import ConnectionLifecycle

logger = get_logger(__name__)


class ConnectionCleanup:
    """
    Closes connections the server decided to drop.

    Idle eviction is disabled when idle_timeout is 0: connections then stay
    registered until the transport reports a disconnect.
    """

    def __init__(
        self,
        lifecycle: "ConnectionLifecycle",
        metrics: "MetricsCollector",
        idle_timeout: float = 0,
        endpoint: str = "/ws/realtime",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Args:
            lifecycle: Owns the admitted connections and their teardown.
            metrics: Collects eviction metrics.
            idle_timeout: Seconds without a heartbeat before eviction; 0 disables.
            endpoint: Endpoint path recorded in the audit log.
            clock: Time source (injectable for tests).
        """
        self._lifecycle = lifecycle
        self._metrics = metrics
        self._idle_timeout = idle_timeout
        self._endpoint = endpoint
        self._clock = clock

    @property
    def idle_timeout(self) -> float:
        return self._idle_timeout

    @property
    def idle_eviction_enabled(self) -> bool:
        return self._idle_timeout > 0

    def find_idle(self, now: datetime | None = None) -> list["Connection"]:
        """Connections whose last heartbeat is older than the idle timeout."""
        if not self.idle_eviction_enabled:
            return []
        now = now or self._clock()
        return [
            c for c in self._lifecycle.connections()
            if c.idle_seconds(now) > self._idle_timeout
        ]

    async def evict_idle(self, now: datetime | None = None) -> int:
        """
        Close idle connections with 1000 and tear them down.

        Returns:
            Number of connections evicted.
        """
        idle = self.find_idle(now)
        # One stalled peer must not delay the others
        results = await asyncio.gather(
            *(self._evict(connection, connection.idle_seconds(now)) for connection in idle),
            return_exceptions=True,
        )
        evicted = self._count_closed(idle, results)
        if evicted:
            logger.info("Evicted idle connections", count=evicted, timeout=self._idle_timeout)
        return evicted

    async def close_all(
        self,
        code: int = WSCloseCode.GOING_AWAY,
        reason: str = WSConstants.REASON_SHUTDOWN,
    ) -> int:
        """
        Close every admitted connection and run disconnect handling.

        Returns:
            Number of connections closed.
        """
        connections = self._lifecycle.connections()
        results = await asyncio.gather(
            *(self._close(connection, code, reason) for connection in connections),
            return_exceptions=True,
        )
        closed = self._count_closed(connections, results)
        if closed:
            logger.info("Closed connections", count=closed, code=int(code))
        return closed

    async def _evict(self, connection: "Connection", idle_for: float) -> bool:
        await connection.close(WSCloseCode.NORMAL, WSConstants.REASON_IDLE)
        if not await self._lifecycle.disconnect(connection, reason="idle_timeout"):
            return False
        self._metrics.increment_idle_evicted()
        audit_ws_connection(
            event_type="IDLE_EVICTED",
            endpoint=self._endpoint,
            user_id=connection.user_id,
            reason="idle_timeout",
            connection_id=connection.connection_id,
            idle_seconds=round(idle_for, 1),
        )
        return True

    async def _close(self, connection: "Connection", code: int, reason: str) -> bool:
        await connection.close(code, reason)
        return await self._lifecycle.disconnect(connection, reason="server_shutdown")

    def _count_closed(self, connections: list["Connection"], results: list[Any]) -> int:
        closed = 0
        for connection, result in zip(connections, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Failed to close connection",
                    target_connection=connection.connection_id[:8],
                    error=str(result),
                )
            elif result:
                closed += 1
        return closed
