"""
WebSocket endpoint components.

Base class, mixins, and the concrete endpoint handler.
"""

from realtime_gateway.components.endpoints.base import WebSocketEndpointBase
from realtime_gateway.components.endpoints.mixins import (
    MessageValidationMixin,
    ConnectionLifecycleMixin,
)
from realtime_gateway.components.endpoints.handlers import (
    RealtimeEndpoint,
    extract_handshake_token,
)

__all__ = [
    # Base classes
    "WebSocketEndpointBase",
    # Mixins
    "MessageValidationMixin",
    "ConnectionLifecycleMixin",
    # Handlers
    "RealtimeEndpoint",
    "extract_handshake_token",
]
