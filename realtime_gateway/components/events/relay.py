"""
Event Relay - turns inbound client events into outbound broadcasts.

One event at a time per connection: the endpoint awaits nothing between
receiving a frame and returning from handle_frame, so events from a
connection are relayed in receipt order. Broadcasts are queued on each
recipient's outbox and never awaited.

Routing:
    join-room / join-study-group  -> join, user-joined-group to the room (sender excluded)
    collaboration-update          -> room (sender excluded)
    practice-update               -> session-<sessionId> (sender excluded)
    typing                        -> user-typing to the room (sender excluded)
    heartbeat                     -> touch presence, heartbeat-ack to the sender only

Usage:
    relay = EventRelay(registry, rooms, broadcaster, metrics)
    result = relay.handle_frame(connection, raw_text)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, assert_never

from shared.config.logging import get_logger

from realtime_gateway.components.core.constants import InboundEventName, WSConstants
from realtime_gateway.components.core.context import sanitize_log_data
from realtime_gateway.components.core.exceptions import MalformedEventError
from realtime_gateway.components.events.types import (
    CollaborationUpdate,
    Heartbeat,
    InboundEvent,
    JoinRoom,
    OutboundEvent,
    PracticeUpdate,
    Typing,
    parse_inbound,
)

if TYPE_CHECKING:
    from realtime_gateway.components.connection.connection import Connection
    from realtime_gateway.components.connection.presence import PresenceRegistry
    from realtime_gateway.components.connection.rooms import RoomMembership
    from realtime_gateway.components.metrics.collector import MetricsCollector
    from realtime_gateway.core.connection.broadcaster import ConnectionBroadcaster

logger = get_logger(__name__)


@dataclass
class RelayResult:
    """Result of relaying one inbound frame."""

    event: InboundEvent | None = None
    recipients: int = 0
    malformed: bool = False


class EventRelay:
    """
    Relays typed inbound events to room members.

    The sender identity is always taken from the connection; nothing in the
    frame can change who an event is attributed to.
    """

    def __init__(
        self,
        registry: "PresenceRegistry",
        rooms: "RoomMembership",
        broadcaster: "ConnectionBroadcaster",
        metrics: "MetricsCollector",
        max_rooms_per_connection: int = WSConstants.MAX_ROOMS_PER_CONNECTION,
    ) -> None:
        self._registry = registry
        self._rooms = rooms
        self._broadcaster = broadcaster
        self._metrics = metrics
        self._max_rooms = max_rooms_per_connection

    def handle_frame(self, connection: "Connection", raw: str | bytes) -> RelayResult:
        """
        Parse and relay one raw frame.

        Malformed frames are logged, counted on the connection and in
        metrics, and dropped. The connection stays open.
        """
        try:
            event = parse_inbound(raw)
        except MalformedEventError as e:
            connection.malformed_events += 1
            self._metrics.increment_events_malformed()
            logger.debug(
                "Dropped malformed frame",
                user_id=connection.user_id,
                event_name=e.event_name,
                error=e.message,
                malformed_count=connection.malformed_events,
            )
            return RelayResult(malformed=True)

        return RelayResult(event=event, recipients=self.dispatch(connection, event))

    def dispatch(self, connection: "Connection", event: InboundEvent) -> int:
        """
        Relay a parsed event.

        Returns:
            Number of connections a frame was queued for.
        """
        user_id = connection.user_id

        match event:
            case JoinRoom():
                kind = InboundEventName.JOIN_ROOM
                recipients = self._join(connection, event)
            case CollaborationUpdate():
                kind = InboundEventName.COLLABORATION_UPDATE
                recipients = self._broadcaster.broadcast_to_room(
                    event.room_id,
                    OutboundEvent.collaboration_update(user_id, event),
                    exclude=connection,
                )
            case PracticeUpdate():
                kind = InboundEventName.PRACTICE_UPDATE
                recipients = self._broadcaster.broadcast_to_room(
                    event.room_id,
                    OutboundEvent.practice_update(user_id, event),
                    exclude=connection,
                )
            case Typing():
                kind = InboundEventName.TYPING
                recipients = self._broadcaster.broadcast_to_room(
                    event.room_id,
                    OutboundEvent.user_typing(user_id),
                    exclude=connection,
                )
            case Heartbeat():
                kind = InboundEventName.HEARTBEAT
                recipients = self._heartbeat(connection)
            case _:
                assert_never(event)

        self._metrics.increment_events_processed(kind)
        return recipients

    def _join(self, connection: "Connection", event: JoinRoom) -> int:
        if event.room_id not in connection.rooms and len(connection.rooms) >= self._max_rooms:
            logger.warning(
                "Join refused: room limit reached",
                user_id=connection.user_id,
                room_id=sanitize_log_data(event.room_id),
                max_rooms=self._max_rooms,
            )
            self._broadcaster.send_to_connection(
                connection, OutboundEvent.error(WSConstants.ERROR_JOIN_FAILED)
            )
            return 0

        self._rooms.join(connection, event.room_id)
        logger.info(
            "User joined room",
            user_id=connection.user_id,
            room_id=sanitize_log_data(event.room_id),
        )
        return self._broadcaster.broadcast_to_room(
            event.room_id,
            OutboundEvent.user_joined_group(connection.user_id, event.group_id),
            exclude=connection,
        )

    def _heartbeat(self, connection: "Connection") -> int:
        connection.touch()
        self._registry.touch(connection.user_id)
        self._metrics.increment_heartbeats()
        sent = self._broadcaster.send_to_connection(connection, OutboundEvent.heartbeat_ack())
        return 1 if sent else 0
