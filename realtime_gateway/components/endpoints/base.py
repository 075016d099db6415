"""
WebSocket Endpoint Base Class.

Runs one connection from handshake to teardown:
1. Authenticate (before accept; rejected handshakes are closed unaccepted)
2. Register with the ConnectionManager
3. Receive loop, relaying each frame
4. Teardown, whatever ended the loop
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from shared.config.logging import get_logger
from shared.infrastructure.correlation import bind_connection_id, unbind_connection_id

from realtime_gateway.components.core.constants import WSCloseCode, WSConstants
from realtime_gateway.components.core.context import WebSocketContext
from realtime_gateway.components.core.exceptions import AdmissionError
from realtime_gateway.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
)

if TYPE_CHECKING:
    from shared.security.auth import Identity
    from realtime_gateway.connection_manager import ConnectionManager
    from realtime_gateway.components.connection.connection import Connection

logger = get_logger(__name__)


class WebSocketEndpointBase(
    MessageValidationMixin,
    ConnectionLifecycleMixin,
    ABC,
):
    """
    Base class for WebSocket endpoints.

    Subclasses implement authenticate(), returning the identity for the
    connection or raising AdmissionError.

    Usage:
        endpoint = RealtimeEndpoint(websocket, manager, strategy, token)
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        endpoint_name: str,
        max_message_size: int | None = None,
        max_malformed_events: int | None = None,
    ):
        """
        Args:
            websocket: The WebSocket connection.
            manager: ConnectionManager instance.
            endpoint_name: Path used in logs and audit entries.
            max_message_size: Largest accepted frame in bytes.
            max_malformed_events: Close after this many malformed frames; 0 = never.
        """
        self.websocket = websocket
        self.manager = manager
        self.endpoint_name = endpoint_name
        config = manager.config
        self.max_message_size = (
            max_message_size if max_message_size is not None else config.ws_max_message_size
        )
        self.max_malformed_events = (
            max_malformed_events
            if max_malformed_events is not None
            else config.ws_max_malformed_events
        )

        self.context: WebSocketContext = WebSocketContext.from_websocket(websocket, endpoint_name)
        self.connection: "Connection | None" = None

    @abstractmethod
    async def authenticate(self) -> "Identity":
        """
        Decide whether this handshake may become a connection.

        Raises:
            AdmissionError: If the connection must be refused.
        """

    async def reject(self, error: AdmissionError) -> None:
        """Close an unaccepted handshake with the error's code and reason."""
        self.manager.metrics.increment_connection_rejected(error.audit_reason)
        self.context.audit("AUTH_FAILED", reason=error.audit_reason)
        try:
            await self.websocket.close(code=error.close_code, reason=error.message)
        except RuntimeError as e:
            logger.debug("Close after rejection failed", error=str(e))

    async def run(self) -> None:
        """Main entry point - run the WebSocket endpoint."""
        try:
            identity = await self.authenticate()
        except AdmissionError as e:
            await self.reject(e)
            return

        try:
            connection = await self.manager.connect(self.websocket, identity)
        except ConnectionError as e:
            self.log_connect_rejected(str(e))
            try:
                await self.websocket.close(code=WSCloseCode.GOING_AWAY, reason=WSConstants.REASON_SHUTDOWN)
            except RuntimeError as close_error:
                logger.debug("Close after failed registration failed", error=str(close_error))
            return

        self.connection = connection
        self.context = self.context.with_identity(identity, connection.connection_id)
        token = bind_connection_id(connection.connection_id)
        self.log_connect()

        reason = "client_disconnect"
        try:
            reason = await self._message_loop(connection)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            reason = "server_error"
            logger.error(
                "Unexpected error in receive loop",
                identifier=self.context.identifier,
                error=str(e),
                exc_info=True,
            )
        finally:
            await self.manager.disconnect(connection, reason=reason)
            self.log_disconnect(reason)
            unbind_connection_id(token)

    async def _message_loop(self, connection: "Connection") -> str:
        """
        Receive and relay frames until the client goes away.

        Returns:
            Disconnect reason when the loop ends without WebSocketDisconnect.
        """
        while True:
            data = await self._receive_frame()

            if self.validate_message_size(connection, data):
                self.manager.handle_frame(connection, data)

            if self.malformed_limit_reached(connection):
                logger.info(
                    "Closing connection after malformed frames",
                    user_id=connection.user_id,
                    malformed_count=connection.malformed_events,
                )
                await self.manager.close_for_malformed(connection)
                return "malformed_events"

    async def _receive_frame(self) -> str | bytes:
        """
        Receive one text or binary frame.

        Raises:
            WebSocketDisconnect: When the client closed the connection.
        """
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
            if message.get("text") is not None:
                return message["text"]
            if message.get("bytes") is not None:
                return message["bytes"]
