"""
Tests for the HTTP diagnostics routes.
"""

import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import wait_until


class TestHealth:
    """GET /ws/health"""

    def test_health_when_idle(self, client):
        response = client.get("/ws/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "realtime-gateway"
        assert body["total_connections"] == 0
        assert body["metrics"]["connections_admitted"] == 0

    def test_health_counts_open_connections(self, client, token_factory, manager):
        with client.websocket_connect(f"/ws/realtime?token={token_factory('u1')}") as ws:
            ws.receive_json()

            body = client.get("/ws/health").json()

        assert body["total_connections"] == 1
        assert body["users_present"] == 1


class TestPresence:
    """GET /ws/presence"""

    def test_lists_online_users(self, client, token_factory):
        with client.websocket_connect(f"/ws/realtime?token={token_factory('u1')}") as ws:
            ws.receive_json()

            body = client.get("/ws/presence").json()

        assert body["count"] == 1
        assert body["users"][0]["userId"] == "u1"
        assert body["rooms"] == {"user-u1": 1}

    def test_empty_after_disconnect(self, client, token_factory, manager):
        with client.websocket_connect(f"/ws/realtime?token={token_factory('u1')}") as ws:
            ws.receive_json()

        assert wait_until(lambda: len(manager.registry) == 0)
        assert client.get("/ws/presence").json() == {"users": [], "count": 0, "rooms": {}}


class TestMetricsRoute:
    """GET /ws/metrics"""

    def test_prometheus_exposition(self, client):
        response = client.get("/ws/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain; version=0.0.4")
        assert "realtime_gateway_connections_active 0" in response.text.splitlines()

    def test_rejections_are_counted(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws/realtime"):
                pass

        text = client.get("/ws/metrics").text
        assert 'realtime_gateway_connections_rejected_total{reason="no_token"} 1' in text.splitlines()
