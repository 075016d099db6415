"""
Infrastructure module: Database and log correlation.

Provides:
- Database engine and sessions for the user store (db.py)
- Connection ID propagation into log records (correlation.py)
"""

from shared.infrastructure.db import (
    get_engine,
    get_session_factory,
    get_db_context,
    reset_engine,
)
from shared.infrastructure.correlation import (
    connection_id_var,
    get_connection_id,
    CorrelationIdFilter,
)

__all__ = [
    # db
    "get_engine",
    "get_session_factory",
    "get_db_context",
    "reset_engine",
    # correlation
    "connection_id_var",
    "get_connection_id",
    "CorrelationIdFilter",
]
