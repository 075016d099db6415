"""
Realtime gateway error taxonomy.

Every error logs itself on construction with structured context, so call
sites only decide whether to raise, count, or swallow.

Only AdmissionError ever reaches a client (as a close code + reason). The
others are caught at the component boundary where they occur:

    AdmissionError          -> gate closes the socket before accept
    MalformedEventError     -> relay logs, counts, drops the frame
    BroadcastDeliveryError  -> connection enqueue/writer counts and swallows
    PersistenceError        -> background persistence task logs and counts

Usage:
    from realtime_gateway.components.core.exceptions import MalformedEventError

    raise MalformedEventError("roomId is required", event_name="typing")
"""

from __future__ import annotations

from typing import Any

from shared.config.logging import get_logger

from realtime_gateway.components.core.constants import WSCloseCode

logger = get_logger(__name__)


class RealtimeError(Exception):
    """
    Base exception with automatic logging.

    All gateway exceptions inherit from this class to ensure consistent
    structured logging.
    """

    def __init__(
        self,
        message: str,
        log_level: str = "warning",
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(message, error_type=type(self).__name__, **log_context)

        super().__init__(message)
        self.message = message


class AdmissionError(RealtimeError):
    """
    Connection attempt refused by the gate.

    Attributes:
        close_code: WebSocket close code sent to the client.
        audit_reason: Short reason code for the security audit log.
    """

    def __init__(
        self,
        message: str,
        close_code: int = WSCloseCode.AUTH_FAILED,
        audit_reason: str = "auth_failed",
        **log_context: Any,
    ):
        self.close_code = close_code
        self.audit_reason = audit_reason
        super().__init__(
            message,
            log_level="info",
            close_code=int(close_code),
            audit_reason=audit_reason,
            **log_context,
        )


class MalformedEventError(RealtimeError):
    """Inbound frame that cannot be turned into a known event."""

    def __init__(self, message: str, event_name: str | None = None, **log_context: Any):
        self.event_name = event_name
        super().__init__(message, log_level="warning", event_name=event_name, **log_context)


class BroadcastDeliveryError(RealtimeError):
    """Frame could not be delivered to a torn-down or backpressured connection."""

    def __init__(self, connection_id: str, reason: str, **log_context: Any):
        self.connection_id = connection_id
        self.reason = reason
        # Expected during teardown races; keep at debug
        super().__init__(
            f"Delivery to connection {connection_id[:8]} failed: {reason}",
            log_level="debug",
            target_connection=connection_id,
            reason=reason,
            **log_context,
        )


class PersistenceError(RealtimeError):
    """User store write failed during presence bookkeeping."""

    def __init__(self, user_id: str, operation: str, **log_context: Any):
        self.user_id = user_id
        self.operation = operation
        super().__init__(
            f"User store {operation} failed",
            log_level="error",
            user_id=user_id,
            operation=operation,
            **log_context,
        )
