"""
Event Value Objects for the realtime gateway.

Inbound frames are parsed into one of a closed set of immutable variants
(JoinRoom, CollaborationUpdate, PracticeUpdate, Typing, Heartbeat); the
relay matches on them exhaustively. Anything that does not parse raises
MalformedEventError.

Wire format (both directions):
    {"event": "<name>", "data": {...}}

The sender identity is never read from the frame; the relay attaches it
from the admitted connection.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Self, TypeAlias

from realtime_gateway.components.connection.presence import utc_now
from realtime_gateway.components.core.constants import (
    InboundEventName,
    OutboundEventName,
    WSConstants,
    group_room,
    session_room,
)
from realtime_gateway.components.core.context import sanitize_log_data
from realtime_gateway.components.core.exceptions import MalformedEventError


# =============================================================================
# Field helpers
# =============================================================================


def _require(data: dict[str, Any], key: str, event_name: str) -> Any:
    if key not in data:
        raise MalformedEventError(f"{key} is required", event_name=event_name)
    return data[key]


def _as_id(value: Any, key: str, event_name: str) -> str:
    """Accept a non-empty string or an integer id; return it as a string."""
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise MalformedEventError(f"{key} must be a string or integer", event_name=event_name)
    text = str(value).strip()
    if not text:
        raise MalformedEventError(f"{key} must not be empty", event_name=event_name)
    if len(text) > WSConstants.MAX_ROOM_ID_LENGTH:
        raise MalformedEventError(f"{key} is too long", event_name=event_name)
    return text


def _as_number(value: Any, key: str, event_name: str) -> int | float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedEventError(f"{key} must be a number", event_name=event_name)
    return value


def _as_object(data: Any, event_name: str) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedEventError("data must be an object", event_name=event_name)
    return data


# =============================================================================
# Inbound variants
# =============================================================================


@dataclass(frozen=True, slots=True)
class JoinRoom:
    """
    Join a room and announce it to the other members.

    group_id is the value echoed in the user-joined-group notice: the room
    id itself for join-room, the raw group id for join-study-group.
    """

    room_id: str
    group_id: str | int

    @classmethod
    def from_data(cls, data: Any) -> Self:
        name = InboundEventName.JOIN_ROOM
        room_id = _as_id(_require(_as_object(data, name), "roomId", name), "roomId", name)
        return cls(room_id=room_id, group_id=room_id)

    @classmethod
    def from_study_group(cls, data: Any) -> Self:
        """join-study-group takes {"groupId": ...} or the bare group id."""
        name = InboundEventName.JOIN_STUDY_GROUP
        raw = data.get("groupId") if isinstance(data, dict) else data
        if raw is None:
            raise MalformedEventError("groupId is required", event_name=name)
        group_id = _as_id(raw, "groupId", name)
        return cls(room_id=group_room(group_id), group_id=raw)


@dataclass(frozen=True, slots=True)
class CollaborationUpdate:
    """Relay a collaboration change to a room. type/content are opaque."""

    room_id: str
    type: Any
    content: Any

    @classmethod
    def from_data(cls, data: Any) -> Self:
        name = InboundEventName.COLLABORATION_UPDATE
        payload = _as_object(data, name)
        if "roomId" in payload:
            room_id = _as_id(payload["roomId"], "roomId", name)
        elif "groupId" in payload:
            room_id = group_room(_as_id(payload["groupId"], "groupId", name))
        else:
            raise MalformedEventError("roomId is required", event_name=name)
        return cls(
            room_id=room_id,
            type=_require(payload, "type", name),
            content=_require(payload, "content", name),
        )


@dataclass(frozen=True, slots=True)
class PracticeUpdate:
    """Relay practice progress to the session room."""

    session_id: str
    progress: int | float
    accuracy: int | float

    @property
    def room_id(self) -> str:
        return session_room(self.session_id)

    @classmethod
    def from_data(cls, data: Any) -> Self:
        name = InboundEventName.PRACTICE_UPDATE
        payload = _as_object(data, name)
        return cls(
            session_id=_as_id(_require(payload, "sessionId", name), "sessionId", name),
            progress=_as_number(_require(payload, "progress", name), "progress", name),
            accuracy=_as_number(_require(payload, "accuracy", name), "accuracy", name),
        )


@dataclass(frozen=True, slots=True)
class Typing:
    room_id: str

    @classmethod
    def from_data(cls, data: Any) -> Self:
        name = InboundEventName.TYPING
        room_id = _as_id(_require(_as_object(data, name), "roomId", name), "roomId", name)
        return cls(room_id=room_id)


@dataclass(frozen=True, slots=True)
class Heartbeat:
    @classmethod
    def from_data(cls, data: Any) -> Self:
        # Payload is ignored
        return cls()


InboundEvent: TypeAlias = JoinRoom | CollaborationUpdate | PracticeUpdate | Typing | Heartbeat

_PARSERS = {
    InboundEventName.JOIN_ROOM: JoinRoom.from_data,
    InboundEventName.JOIN_STUDY_GROUP: JoinRoom.from_study_group,
    InboundEventName.COLLABORATION_UPDATE: CollaborationUpdate.from_data,
    InboundEventName.PRACTICE_UPDATE: PracticeUpdate.from_data,
    InboundEventName.TYPING: Typing.from_data,
    InboundEventName.HEARTBEAT: Heartbeat.from_data,
}

INBOUND_EVENT_NAMES: frozenset[str] = frozenset(_PARSERS)


def parse_inbound(raw: str | bytes | dict[str, Any]) -> InboundEvent:
    """
    Parse one inbound frame.

    Args:
        raw: JSON text/bytes, or an already decoded frame object.

    Returns:
        The typed inbound event.

    Raises:
        MalformedEventError: If the frame is not valid JSON, not an object,
            names an unknown event, or is missing required fields.
    """
    if isinstance(raw, (str, bytes)):
        try:
            frame = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise MalformedEventError("Frame is not valid JSON")
    else:
        frame = raw

    if not isinstance(frame, dict):
        raise MalformedEventError("Frame must be a JSON object")

    name = frame.get("event")
    if not isinstance(name, str):
        raise MalformedEventError("Frame has no event name")

    parser = _PARSERS.get(name)
    if parser is None:
        raise MalformedEventError("Unknown event", event_name=sanitize_log_data(name, max_length=64))

    return parser(frame.get("data"))


# =============================================================================
# Outbound
# =============================================================================


def _timestamp(at: datetime | None = None) -> str:
    return (at or utc_now()).isoformat()


@dataclass(frozen=True, slots=True)
class OutboundEvent:
    """
    Server -> client event.

    Attributes:
        kind: Outbound event name.
        payload: Kind-specific fields.
        sender_id: Identity the event is attributed to (None for acks).
        timestamp: Server-assigned ISO-8601 UTC timestamp.
    """

    kind: str
    payload: dict[str, Any] = field(default_factory=dict)
    sender_id: str | None = None
    timestamp: str = field(default_factory=_timestamp)

    def to_frame(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.sender_id is not None:
            data["userId"] = self.sender_id
        data.update(self.payload)
        data["timestamp"] = self.timestamp
        return {"event": self.kind, "data": data}

    @classmethod
    def connected(cls, user_id: str, connection_id: str, heartbeat_interval: int) -> Self:
        return cls(
            OutboundEventName.CONNECTED,
            {"connectionId": connection_id, "heartbeatInterval": heartbeat_interval},
            sender_id=user_id,
        )

    @classmethod
    def user_online(cls, user_id: str) -> Self:
        return cls(OutboundEventName.USER_ONLINE, sender_id=user_id)

    @classmethod
    def user_offline(cls, user_id: str) -> Self:
        return cls(OutboundEventName.USER_OFFLINE, sender_id=user_id)

    @classmethod
    def user_joined_group(cls, user_id: str, group_id: str | int) -> Self:
        return cls(OutboundEventName.USER_JOINED_GROUP, {"groupId": group_id}, sender_id=user_id)

    @classmethod
    def collaboration_update(cls, user_id: str, event: CollaborationUpdate) -> Self:
        return cls(
            OutboundEventName.COLLABORATION_UPDATE,
            {"type": event.type, "content": event.content},
            sender_id=user_id,
        )

    @classmethod
    def practice_update(cls, user_id: str, event: PracticeUpdate) -> Self:
        return cls(
            OutboundEventName.PRACTICE_UPDATE,
            {"progress": event.progress, "accuracy": event.accuracy},
            sender_id=user_id,
        )

    @classmethod
    def user_typing(cls, user_id: str) -> Self:
        return cls(OutboundEventName.USER_TYPING, sender_id=user_id)

    @classmethod
    def heartbeat_ack(cls) -> Self:
        return cls(OutboundEventName.HEARTBEAT_ACK)

    @classmethod
    def error(cls, message: str) -> Self:
        return cls(OutboundEventName.ERROR, {"message": message})
