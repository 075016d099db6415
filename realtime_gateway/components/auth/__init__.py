"""
Authentication components.

Handshake admission strategies.
"""

from realtime_gateway.components.auth.strategies import (
    AuthStrategy,
    AuthResult,
    JWTAuthStrategy,
    NullAuthStrategy,
    create_realtime_auth_strategy,
)

__all__ = [
    "AuthStrategy",
    "AuthResult",
    "JWTAuthStrategy",
    "NullAuthStrategy",
    "create_realtime_auth_strategy",
]
