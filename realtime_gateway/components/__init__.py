"""
Realtime Gateway Components.

Organized into domain-specific modules:
- core/       - Foundational components (constants, context, exceptions)
- connection/ - Connection state (presence, rooms, outbound queue, idle sweeper)
- events/     - Event handling (typed events, relay)
- auth/       - Authentication strategies (JWT)
- endpoints/  - WebSocket endpoints (base, mixins, handlers)
- metrics/    - Observability (collector, prometheus)
- data/       - User store (model, presence persistence)

New code should import from specific submodules for clarity.
"""

# =============================================================================
# Core Components
# =============================================================================
from realtime_gateway.components.core.constants import (
    WSCloseCode,
    WSConstants,
    InboundEventName,
    OutboundEventName,
    validate_websocket_origin,
)
from realtime_gateway.components.core.context import WebSocketContext, sanitize_log_data
from realtime_gateway.components.core.exceptions import (
    RealtimeError,
    AdmissionError,
    MalformedEventError,
    BroadcastDeliveryError,
    PersistenceError,
)

# =============================================================================
# Connection State
# =============================================================================
from realtime_gateway.components.connection.presence import PresenceEntry, PresenceRegistry
from realtime_gateway.components.connection.rooms import RoomMembership
from realtime_gateway.components.connection.connection import Connection, is_ws_connected
from realtime_gateway.components.connection.heartbeat import IdleSweeper

# =============================================================================
# Events
# =============================================================================
from realtime_gateway.components.events.types import (
    InboundEvent,
    OutboundEvent,
    parse_inbound,
)
from realtime_gateway.components.events.relay import EventRelay, RelayResult

# =============================================================================
# Authentication
# =============================================================================
from realtime_gateway.components.auth.strategies import (
    AuthStrategy,
    AuthResult,
    JWTAuthStrategy,
    NullAuthStrategy,
)

# =============================================================================
# Metrics
# =============================================================================
from realtime_gateway.components.metrics.collector import MetricsCollector
from realtime_gateway.components.metrics.prometheus import (
    PrometheusFormatter,
    generate_prometheus_metrics,
)

# =============================================================================
# Data Access
# =============================================================================
from realtime_gateway.components.data.user_repository import (
    UserPresenceStore,
    SqlUserPresenceStore,
    InMemoryUserPresenceStore,
)

__all__ = [
    # Core
    "WSCloseCode",
    "WSConstants",
    "InboundEventName",
    "OutboundEventName",
    "validate_websocket_origin",
    "WebSocketContext",
    "sanitize_log_data",
    "RealtimeError",
    "AdmissionError",
    "MalformedEventError",
    "BroadcastDeliveryError",
    "PersistenceError",
    # Connection
    "PresenceEntry",
    "PresenceRegistry",
    "RoomMembership",
    "Connection",
    "is_ws_connected",
    "IdleSweeper",
    # Events
    "InboundEvent",
    "OutboundEvent",
    "parse_inbound",
    "EventRelay",
    "RelayResult",
    # Authentication
    "AuthStrategy",
    "AuthResult",
    "JWTAuthStrategy",
    "NullAuthStrategy",
    # Metrics
    "MetricsCollector",
    "PrometheusFormatter",
    "generate_prometheus_metrics",
    # Data
    "UserPresenceStore",
    "SqlUserPresenceStore",
    "InMemoryUserPresenceStore",
]
