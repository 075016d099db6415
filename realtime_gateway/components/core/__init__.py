"""
Core Realtime Gateway components.

Foundational components: constants, context, and exceptions.
"""

from realtime_gateway.components.core.constants import WSCloseCode, WSConstants
from realtime_gateway.components.core.context import WebSocketContext, sanitize_log_data
from realtime_gateway.components.core.exceptions import (
    RealtimeError,
    AdmissionError,
    MalformedEventError,
    BroadcastDeliveryError,
    PersistenceError,
)

__all__ = [
    # Constants
    "WSCloseCode",
    "WSConstants",
    # Context
    "WebSocketContext",
    "sanitize_log_data",
    # Exceptions
    "RealtimeError",
    "AdmissionError",
    "MalformedEventError",
    "BroadcastDeliveryError",
    "PersistenceError",
]
