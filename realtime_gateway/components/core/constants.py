"""
Realtime Gateway Constants.

Close codes, protocol event names, room prefixes and origin validation.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "InboundEventName",
    "OutboundEventName",
    "USER_ROOM_PREFIX",
    "GROUP_ROOM_PREFIX",
    "SESSION_ROOM_PREFIX",
    "user_room",
    "group_room",
    "session_room",
    "validate_websocket_origin",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    Custom codes (4000-4999) for application-specific errors.
    """

    # Standard codes (RFC 6455)
    NORMAL = 1000  # Normal closure (also idle eviction)
    GOING_AWAY = 1001  # Server shutting down or client navigating away
    PROTOCOL_ERROR = 1002
    UNSUPPORTED_DATA = 1003
    POLICY_VIOLATION = 1008  # Repeated malformed frames (opt-in strict mode)
    MESSAGE_TOO_BIG = 1009
    SERVER_ERROR = 1011

    # Custom application codes (4000-4999)
    AUTH_FAILED = 4001  # Missing/invalid/expired token
    FORBIDDEN = 4003  # Origin not allowed


class WSConstants:
    """
    Gateway operational constants that are not worth a setting.
    """

    # WS_ACCEPT_TIMEOUT: 5 seconds
    # WebSocket handshake should complete within TCP timeout.
    WS_ACCEPT_TIMEOUT: Final[float] = 5.0

    # CLOSE_TIMEOUT: 2 seconds
    # Upper bound for a close frame to be written during eviction/shutdown.
    CLOSE_TIMEOUT: Final[float] = 2.0

    # MAX_ROOM_ID_LENGTH: room ids come from clients; bound them
    MAX_ROOM_ID_LENGTH: Final[int] = 200

    # MAX_ROOMS_PER_CONNECTION: joins beyond this fail with an error frame
    MAX_ROOMS_PER_CONNECTION: Final[int] = 100

    # Rejection reasons sent as the close reason string
    REASON_NO_TOKEN: Final[str] = "authentication error: no token"
    REASON_INVALID_TOKEN: Final[str] = "authentication error: invalid token"
    REASON_ORIGIN: Final[str] = "origin not allowed"
    REASON_IDLE: Final[str] = "Connection idle timeout"
    REASON_SHUTDOWN: Final[str] = "Server shutdown"
    REASON_MALFORMED: Final[str] = "Too many malformed events"

    # Error frame messages
    ERROR_JOIN_FAILED: Final[str] = "Failed to join study group"


class InboundEventName:
    """Client -> server event names."""

    JOIN_ROOM: Final[str] = "join-room"
    JOIN_STUDY_GROUP: Final[str] = "join-study-group"
    COLLABORATION_UPDATE: Final[str] = "collaboration-update"
    PRACTICE_UPDATE: Final[str] = "practice-update"
    TYPING: Final[str] = "typing"
    HEARTBEAT: Final[str] = "heartbeat"


class OutboundEventName:
    """Server -> client event names."""

    CONNECTED: Final[str] = "connected"
    USER_ONLINE: Final[str] = "user-online"
    USER_OFFLINE: Final[str] = "user-offline"
    USER_JOINED_GROUP: Final[str] = "user-joined-group"
    COLLABORATION_UPDATE: Final[str] = "collaboration-update"
    PRACTICE_UPDATE: Final[str] = "practice-update"
    USER_TYPING: Final[str] = "user-typing"
    HEARTBEAT_ACK: Final[str] = "heartbeat-ack"
    ERROR: Final[str] = "error"


# Server-assigned room prefixes
USER_ROOM_PREFIX: Final[str] = "user-"
GROUP_ROOM_PREFIX: Final[str] = "group-"
SESSION_ROOM_PREFIX: Final[str] = "session-"


def user_room(user_id: str) -> str:
    """Personal room every connection of a user joins at admission."""
    return f"{USER_ROOM_PREFIX}{user_id}"


def group_room(group_id: str | int) -> str:
    return f"{GROUP_ROOM_PREFIX}{group_id}"


def session_room(session_id: str | int) -> str:
    return f"{SESSION_ROOM_PREFIX}{session_id}"


def validate_websocket_origin(origin: str | None, allowed_origins: list[str]) -> bool:
    """
    Validate WebSocket origin header against allowed origins.

    Browsers always send Origin on websocket upgrades; non-browser clients
    (mobile apps, CLI tools, tests) usually don't, so a missing header is allowed.

    Args:
        origin: The Origin header value, or None if not present.
        allowed_origins: Allowed origins; "*" allows any.

    Returns:
        True if origin is allowed, False otherwise.
    """
    if not origin:
        return True
    if "*" in allowed_origins:
        return True
    return origin in allowed_origins
