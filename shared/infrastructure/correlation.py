"""
Connection Correlation for logging.

Every websocket handler runs inside its own task, so a ContextVar holding the
connection ID follows all log lines emitted while serving that connection.
"""

import logging
from contextvars import ContextVar, Token


# Context variable for the websocket connection being served
connection_id_var: ContextVar[str] = ContextVar("connection_id", default="")


def get_connection_id() -> str:
    """Get the current connection ID."""
    return connection_id_var.get()


def bind_connection_id(connection_id: str) -> Token[str]:
    """Bind a connection ID to the current context. Returns a reset token."""
    return connection_id_var.set(connection_id)


def unbind_connection_id(token: Token[str]) -> None:
    """Restore the previous connection ID."""
    connection_id_var.reset(token)


class CorrelationIdFilter(logging.Filter):
    """
    Logging filter that adds connection_id to log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.connection_id = connection_id_var.get() or "-"
        return True
