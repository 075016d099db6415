"""
Connection Broadcaster.

Fans outbound events out to connections. Every send is send-and-forget:
frames are queued on each recipient's outbox synchronously, and a
recipient that cannot take the frame (closed, queue full) is counted and
skipped without affecting the sender or the other recipients.
"""

from __future__ import annotations

from typing import Callable, Iterable, TYPE_CHECKING

from shared.config.logging import get_logger

from realtime_gateway.components.core.exceptions import BroadcastDeliveryError

if TYPE_CHECKING:
    from realtime_gateway.components.connection.connection import Connection
    from realtime_gateway.components.connection.rooms import RoomMembership
    from realtime_gateway.components.events.types import OutboundEvent
    from realtime_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class ConnectionBroadcaster:
    """
    Delivers OutboundEvents to one connection, a room, or everyone.

    Usage:
        broadcaster = ConnectionBroadcaster(rooms, metrics, connections_provider)
        broadcaster.send_to_connection(conn, OutboundEvent.heartbeat_ack())
        broadcaster.broadcast_to_room("group-7", event, exclude=sender)
    """

    def __init__(
        self,
        rooms: "RoomMembership",
        metrics: "MetricsCollector",
        all_connections: Callable[[], Iterable["Connection"]],
    ) -> None:
        """
        Args:
            rooms: Room membership index used for room broadcasts.
            metrics: Metrics collector for delivery counters.
            all_connections: Returns every admitted connection (global broadcasts).
        """
        self._rooms = rooms
        self._metrics = metrics
        self._all_connections = all_connections

    def send_to_connection(self, connection: "Connection", event: "OutboundEvent") -> bool:
        """
        Queue one event for one connection.

        Returns:
            True if the frame was queued, False if it was dropped.
        """
        try:
            connection.enqueue(event.to_frame())
        except BroadcastDeliveryError:
            self._metrics.add_failed_recipients(1)
            return False
        self._metrics.add_frames_enqueued(1)
        return True

    def broadcast(
        self,
        connections: Iterable["Connection"],
        event: "OutboundEvent",
        exclude: "Connection | None" = None,
    ) -> int:
        """
        Queue one event for many connections.

        The frame dict is built once and shared; the writer only serializes it.

        Returns:
            Number of connections the frame was queued for.
        """
        self._metrics.increment_broadcast_total()
        frame = event.to_frame()
        queued = 0
        failed = 0

        for connection in connections:
            if connection is exclude:
                continue
            try:
                connection.enqueue(frame)
                queued += 1
            except BroadcastDeliveryError:
                failed += 1

        if queued:
            self._metrics.add_frames_enqueued(queued)
        if failed:
            self._metrics.add_failed_recipients(failed)
            logger.debug(
                "Broadcast partially dropped",
                event_kind=event.kind,
                queued=queued,
                failed=failed,
            )
        return queued

    def broadcast_to_room(
        self,
        room_id: str,
        event: "OutboundEvent",
        exclude: "Connection | None" = None,
    ) -> int:
        """Queue an event for every member of room_id except exclude."""
        return self.broadcast(self._rooms.members(room_id), event, exclude=exclude)

    def broadcast_all(self, event: "OutboundEvent", exclude: "Connection | None" = None) -> int:
        """Queue an event for every admitted connection except exclude."""
        # Snapshot first: handlers may admit/remove connections later
        return self.broadcast(list(self._all_connections()), event, exclude=exclude)
