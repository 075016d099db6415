"""
Event handling components.

Typed inbound/outbound events and the room relay.
"""

from realtime_gateway.components.events.types import (
    JoinRoom,
    CollaborationUpdate,
    PracticeUpdate,
    Typing,
    Heartbeat,
    InboundEvent,
    OutboundEvent,
    INBOUND_EVENT_NAMES,
    parse_inbound,
)
from realtime_gateway.components.events.relay import EventRelay, RelayResult

__all__ = [
    # Event types
    "JoinRoom",
    "CollaborationUpdate",
    "PracticeUpdate",
    "Typing",
    "Heartbeat",
    "InboundEvent",
    "OutboundEvent",
    "INBOUND_EVENT_NAMES",
    "parse_inbound",
    # Relay
    "EventRelay",
    "RelayResult",
]
