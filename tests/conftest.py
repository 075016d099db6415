"""
Pytest configuration and fixtures for realtime gateway tests.
"""

import asyncio
import time
from types import SimpleNamespace
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from shared.config.settings import Settings
from shared.security.auth import Identity, sign_jwt
from realtime_gateway.connection_manager import ConnectionManager
from realtime_gateway.components.auth.strategies import JWTAuthStrategy
from realtime_gateway.components.connection.connection import Connection
from realtime_gateway.components.data.user_repository import InMemoryUserPresenceStore
from realtime_gateway.main import create_app


TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
ALLOWED_ORIGIN = "http://localhost:3000"


# =============================================================================
# Helpers
# =============================================================================


class FakeWebSocket:
    """
    Minimal stand-in for a Starlette WebSocket.

    Records every frame sent and the close call; send failures can be
    switched on to exercise the writer failure path.
    """

    def __init__(self, headers: dict[str, str] | None = None, fail_sends: bool = False):
        self.headers = headers or {}
        self.client = SimpleNamespace(host="127.0.0.1", port=50000)
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self.sent: list[dict[str, Any]] = []
        self.closed_with: tuple[int, str] | None = None
        self.fail_sends = fail_sends

    async def accept(self) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.fail_sends:
            raise RuntimeError("socket is broken")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)
        self.application_state = WebSocketState.DISCONNECTED

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.sent]


async def settle(rounds: int = 20) -> None:
    """Let writer and persistence tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def drain_outbox(connection: Connection) -> list[dict[str, Any]]:
    """Pop every frame queued on a connection whose writer is not running."""
    frames = []
    while not connection._outbox.empty():
        frames.append(connection._outbox.get_nowait())
    return frames


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll predicate from the test thread while the app runs in its portal."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def gateway_settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        environment="test",
        debug=False,
        jwt_secret=TEST_SECRET,
        allowed_origins=ALLOWED_ORIGIN,
        ws_idle_timeout=0,
        ws_max_malformed_events=0,
    )


@pytest.fixture
def user_store() -> InMemoryUserPresenceStore:
    return InMemoryUserPresenceStore()


@pytest.fixture
def manager(user_store, gateway_settings) -> ConnectionManager:
    """A fresh manager per test; nothing is shared between tests."""
    return ConnectionManager(user_store=user_store, config=gateway_settings)


@pytest.fixture
def make_connection() -> Callable[..., Connection]:
    """Build a Connection over a FakeWebSocket without starting its writer."""

    def _make(user_id: str = "u1", email: str | None = None, **kwargs: Any) -> Connection:
        websocket = FakeWebSocket()
        websocket.client_state = WebSocketState.CONNECTED
        websocket.application_state = WebSocketState.CONNECTED
        return Connection(websocket, Identity(user_id=user_id, email=email), **kwargs)

    return _make


@pytest.fixture
def token_factory() -> Callable[..., str]:
    """Sign gateway-compatible tokens with the test secret."""

    def _token(user_id: str | int = "u1", ttl_seconds: int = 3600, **claims: Any) -> str:
        return sign_jwt({"userId": user_id, **claims}, ttl_seconds=ttl_seconds, secret=TEST_SECRET)

    return _token


@pytest.fixture
def auth_strategy() -> JWTAuthStrategy:
    return JWTAuthStrategy(allowed_origins=[ALLOWED_ORIGIN], secret=TEST_SECRET)


@pytest.fixture
def app(manager, auth_strategy):
    return create_app(manager=manager, auth_strategy=auth_strategy, create_tables=False)


@pytest.fixture
def client(app):
    """TestClient with lifespan; all websocket sessions share one event loop."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sqlite_engine():
    """Bind the process-wide engine to a fresh in-memory SQLite database."""
    from shared.infrastructure.db import reset_engine
    from realtime_gateway.components.data.models import Base

    engine = reset_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        reset_engine()
