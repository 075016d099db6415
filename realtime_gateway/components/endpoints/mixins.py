"""
WebSocket Endpoint Mixins.

Each mixin handles a single concern for WebSocket endpoints.

Mixins:
    MessageValidationMixin: Frame size and malformed-frame limits
    ConnectionLifecycleMixin: Lifecycle logging and audit events

Usage:
    class MyEndpoint(MessageValidationMixin, ConnectionLifecycleMixin, WebSocketEndpointBase):
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from fastapi import WebSocket

from shared.config.logging import get_logger

if TYPE_CHECKING:
    from realtime_gateway.connection_manager import ConnectionManager
    from realtime_gateway.components.connection.connection import Connection
    from realtime_gateway.components.core.context import WebSocketContext

logger = get_logger(__name__)


# =============================================================================
# Protocols for mixin dependencies
# =============================================================================


class HasWebSocket(Protocol):
    """Protocol for classes with websocket attribute."""

    websocket: WebSocket
    endpoint_name: str
    context: "WebSocketContext | None"


class HasLimits(Protocol):
    """Protocol for classes with frame limits and a manager."""

    manager: "ConnectionManager"
    endpoint_name: str
    max_message_size: int
    max_malformed_events: int


# =============================================================================
# MessageValidationMixin
# =============================================================================


class MessageValidationMixin:
    """
    Mixin for inbound frame validation.

    Oversized frames are dropped and counted as malformed; the connection
    is only closed when a malformed-frame limit is configured and reached.

    Requires:
        - self.manager: ConnectionManager
        - self.max_message_size: int
        - self.max_malformed_events: int (0 = never close)
    """

    def validate_message_size(self: HasLimits, connection: "Connection", data: str | bytes) -> bool:
        """
        Check frame size against the configured limit.

        Returns:
            True if the frame may be relayed, False if it was dropped.
        """
        size = len(data.encode("utf-8")) if isinstance(data, str) else len(data)
        if size <= self.max_message_size:
            return True

        connection.malformed_events += 1
        self.manager.metrics.increment_events_malformed()
        logger.warning(
            "Frame size exceeded limit",
            endpoint=self.endpoint_name,
            user_id=connection.user_id,
            size=size,
            max_size=self.max_message_size,
        )
        return False

    def malformed_limit_reached(self: HasLimits, connection: "Connection") -> bool:
        """True when strict mode is on and the connection used up its allowance."""
        return 0 < self.max_malformed_events <= connection.malformed_events


# =============================================================================
# ConnectionLifecycleMixin
# =============================================================================


class ConnectionLifecycleMixin:
    """
    Mixin for connection lifecycle logging.

    Provides standardized lifecycle event logging plus the matching
    security audit entries.

    Requires:
        - self.endpoint_name: str
        - self.context: WebSocketContext | None
    """

    def log_connect(self: HasWebSocket) -> None:
        """Log connection event."""
        if self.context is None:
            return
        logger.info("User connected", **self.context.to_audit_dict("CONNECT"))
        self.context.audit("CONNECT")

    def log_disconnect(self: HasWebSocket, reason: str = "client_disconnect") -> None:
        """Log disconnection event."""
        if self.context is None:
            return
        logger.info("User disconnected", **self.context.to_audit_dict("DISCONNECT", reason=reason))
        self.context.audit("DISCONNECT", reason=reason)

    def log_connect_rejected(self: HasWebSocket, reason: str) -> None:
        """Log a connection refused after authentication succeeded."""
        logger.warning(
            "Connection rejected",
            endpoint=self.endpoint_name,
            identifier=self.context.identifier if self.context else "unknown",
            reason=reason,
        )
        if self.context:
            self.context.audit("CONNECT_REJECTED", reason=reason)


__all__ = [
    "MessageValidationMixin",
    "ConnectionLifecycleMixin",
    # Protocols
    "HasWebSocket",
    "HasLimits",
]
