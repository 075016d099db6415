"""
Concrete WebSocket Endpoint Implementations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import WebSocket

from shared.security.auth import Identity, get_bearer_token

from realtime_gateway.components.endpoints.base import WebSocketEndpointBase

if TYPE_CHECKING:
    from realtime_gateway.connection_manager import ConnectionManager
    from realtime_gateway.components.auth.strategies import AuthStrategy


REALTIME_ENDPOINT = "/ws/realtime"


def extract_handshake_token(websocket: WebSocket, query_token: str | None) -> str | None:
    """
    Credential presented with the handshake.

    The ?token= query parameter wins; browsers cannot set headers on a
    websocket upgrade, other clients may send Authorization: Bearer.
    """
    if query_token:
        return query_token
    return get_bearer_token(websocket.headers.get("authorization"))


class RealtimeEndpoint(WebSocketEndpointBase):
    """
    Collaboration and presence endpoint.

    Features:
    - Token authentication via a pluggable AuthStrategy
    - Presence, rooms and event relay through the ConnectionManager
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        auth_strategy: "AuthStrategy",
        token: str | None,
        **kwargs,
    ):
        super().__init__(
            websocket=websocket,
            manager=manager,
            endpoint_name=REALTIME_ENDPOINT,
            **kwargs,
        )
        self.auth_strategy = auth_strategy
        self.token = extract_handshake_token(websocket, token)

    async def authenticate(self) -> Identity:
        result = await self.auth_strategy.authenticate(self.websocket, self.token)
        if not result.success or result.identity is None:
            raise result.to_admission_error()
        return result.identity
