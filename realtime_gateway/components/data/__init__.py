"""
Data access components.

User table and presence persistence.
"""

from realtime_gateway.components.data.models import Base, User
from realtime_gateway.components.data.user_repository import (
    UserPresenceStore,
    SqlUserPresenceStore,
    InMemoryUserPresenceStore,
    PresenceRecord,
)

__all__ = [
    "Base",
    "User",
    "UserPresenceStore",
    "SqlUserPresenceStore",
    "InMemoryUserPresenceStore",
    "PresenceRecord",
]
