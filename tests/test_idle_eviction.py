"""
Tests for opt-in idle eviction.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import FakeWebSocket, settle
from shared.security.auth import Identity
from realtime_gateway.components.connection.heartbeat import IdleSweeper
from realtime_gateway.components.core.constants import WSCloseCode, WSConstants
from realtime_gateway.connection_manager import ConnectionManager


@pytest.fixture
def idle_manager(user_store, gateway_settings):
    config = gateway_settings.model_copy(update={"ws_idle_timeout": 30})
    return ConnectionManager(user_store=user_store, config=config)


class TestEvictIdle:
    """Tests for ConnectionManager.evict_idle()."""

    @pytest.mark.asyncio
    async def test_idle_connection_is_closed_and_removed(self, idle_manager):
        websocket = FakeWebSocket()
        conn = await idle_manager.connect(websocket, Identity(user_id="u1"))
        conn.last_seen_at -= timedelta(seconds=60)

        evicted = await idle_manager.evict_idle()

        assert evicted == 1
        assert websocket.closed_with == (WSCloseCode.NORMAL, WSConstants.REASON_IDLE)
        assert "u1" not in idle_manager.registry
        assert idle_manager.total_connections == 0
        assert idle_manager.metrics.get_snapshot()["connections_idle_evicted"] == 1

    @pytest.mark.asyncio
    async def test_active_connection_survives(self, idle_manager):
        websocket = FakeWebSocket()
        conn = await idle_manager.connect(websocket, Identity(user_id="u1"))
        conn.last_seen_at -= timedelta(seconds=60)
        idle_manager.handle_frame(conn, '{"event": "heartbeat"}')

        assert await idle_manager.evict_idle() == 0
        assert websocket.closed_with is None

        await idle_manager.disconnect(conn)

    @pytest.mark.asyncio
    async def test_others_told_evicted_user_is_offline(self, idle_manager):
        watcher_ws = FakeWebSocket()
        watcher = await idle_manager.connect(watcher_ws, Identity(user_id="w"))
        idle = await idle_manager.connect(FakeWebSocket(), Identity(user_id="u1"))
        idle.last_seen_at -= timedelta(seconds=60)

        await idle_manager.evict_idle()
        await settle()

        assert watcher_ws.events()[-1] == "user-offline"

        await idle_manager.disconnect(watcher)

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, manager):
        websocket = FakeWebSocket()
        conn = await manager.connect(websocket, Identity(user_id="u1"))
        conn.last_seen_at -= timedelta(days=1)

        assert await manager.evict_idle() == 0
        assert manager.total_connections == 1

        await manager.disconnect(conn)


class TestIdleSweeper:
    """Tests for the IdleSweeper background task."""

    @pytest.mark.asyncio
    async def test_sweep_once_calls_evict(self):
        evict = AsyncMock(return_value=2)
        sweeper = IdleSweeper(evict, interval=60)

        assert await sweeper.sweep_once() == 2
        assert sweeper.sweeps == 1
        evict.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_runs_periodically_until_stopped(self):
        evict = AsyncMock(return_value=0)
        sweeper = IdleSweeper(evict, interval=0.01)

        sweeper.start()
        await asyncio.sleep(0.1)
        await sweeper.stop()

        assert evict.await_count >= 2
        assert not sweeper.running

    @pytest.mark.asyncio
    async def test_keeps_running_after_error(self):
        calls = []

        async def flaky_evict():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return 0

        evict = AsyncMock(side_effect=flaky_evict)
        sweeper = IdleSweeper(evict, interval=0.01)

        sweeper.start()
        await asyncio.sleep(0.1)
        running = sweeper.running
        await sweeper.stop()

        assert running
        assert evict.await_count >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        sweeper = IdleSweeper(AsyncMock(), interval=1)

        await sweeper.stop()

        assert not sweeper.running
