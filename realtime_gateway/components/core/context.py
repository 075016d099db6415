"""
WebSocket Context for audit logging.

Encapsulates connection metadata for consistent audit logging.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import WebSocket

    from shared.security.auth import Identity


# Control characters, zero-width marks and bidi overrides
_CONTROL_CHAR_PATTERN = re.compile(
    r'[\x00-\x1f\x7f-\x9f'  # ASCII control characters
    r'\u200b-\u200f'  # Zero-width and direction marks
    r'\u202a-\u202e'  # Bidirectional text formatting (RTL override, etc.)
    r'\u2066-\u2069'  # Isolate formatting characters
    r'\ufeff]'  # BOM / Zero-width no-break space
)


def sanitize_log_data(data: Any, max_length: int = 100) -> str:
    """
    Sanitize user-provided data before logging.

    Strips control and direction-override characters and escapes
    JSON-dangerous characters. Truncation happens before escaping so the
    output length stays consistent.

    Args:
        data: Raw user data (non-strings are converted with str()).
        max_length: Maximum length to include in logs.

    Returns:
        Sanitized, truncated string safe for structured logging.
    """
    if not isinstance(data, str):
        data = str(data)

    truncated = data[:max_length] if len(data) > max_length else data
    was_truncated = len(data) > max_length

    sanitized = _CONTROL_CHAR_PATTERN.sub('', truncated)

    # Replace backslashes first to avoid double-escaping
    sanitized = sanitized.replace('\\', '\\\\')
    sanitized = sanitized.replace('"', '\\"')

    if was_truncated:
        return sanitized + "..."
    return sanitized


@dataclass
class WebSocketContext:
    """
    Context object for WebSocket connection metadata.

    Usage:
        ctx = WebSocketContext.from_websocket(websocket, "/ws/realtime")
        ctx.audit("AUTH_FAILED", reason="no_token")
        # ... after admission
        ctx = ctx.with_identity(identity, connection_id)
        ctx.audit("CONNECT")
    """

    endpoint: str
    origin: str | None = None
    client_host: str | None = None

    user_id: str | None = None
    email: str | None = None
    connection_id: str | None = None

    @classmethod
    def from_websocket(cls, websocket: "WebSocket", endpoint: str) -> "WebSocketContext":
        """
        Create context from a WebSocket connection.

        Only extracts basic connection info. Call with_identity() once the
        gate has admitted the connection.
        """
        client = websocket.client
        return cls(
            endpoint=endpoint,
            origin=websocket.headers.get("origin"),
            client_host=client.host if client else None,
        )

    def with_identity(self, identity: "Identity", connection_id: str) -> "WebSocketContext":
        return WebSocketContext(
            endpoint=self.endpoint,
            origin=self.origin,
            client_host=self.client_host,
            user_id=identity.user_id,
            email=identity.email,
            connection_id=connection_id,
        )

    def to_audit_dict(self, event_type: str, **extra: Any) -> dict[str, Any]:
        """
        Convert to dictionary for audit logging.

        Only includes non-None fields to reduce log noise. Email is masked.
        """
        from shared.config.logging import mask_email

        result: dict[str, Any] = {
            "event_type": event_type,
            "endpoint": self.endpoint,
        }

        if self.origin:
            result["origin"] = sanitize_log_data(self.origin)
        if self.client_host:
            result["client_host"] = self.client_host
        if self.user_id:
            result["user_id"] = self.user_id
        if self.email:
            result["email"] = mask_email(self.email)
        if self.connection_id:
            result["connection_id"] = self.connection_id

        result.update(extra)
        return result

    def audit(
        self,
        event_type: str,
        logger_func: Any = None,
        **extra: Any,
    ) -> None:
        """
        Log an audit event.

        Args:
            event_type: The audit event type.
            logger_func: Optional custom logger function (default: audit_ws_connection).
            **extra: Additional fields to log.
        """
        if logger_func is None:
            from shared.config.logging import audit_ws_connection
            logger_func = audit_ws_connection

        audit_dict = self.to_audit_dict(event_type, **extra)
        logger_func(**audit_dict)

    @property
    def identifier(self) -> str:
        """Human-readable identifier for this connection."""
        if self.user_id:
            return f"user:{self.user_id}"
        return "anonymous"
