"""
End-to-end tests for the /ws/realtime endpoint.

Each test drives real websocket sessions through TestClient; all sessions
share the application's event loop, so a heartbeat round trip is used to
know that everything a client sent before it has been handled.
"""

import json

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import ALLOWED_ORIGIN, wait_until
from realtime_gateway.components.core.constants import WSCloseCode, WSConstants
from realtime_gateway.connection_manager import ConnectionManager
from realtime_gateway.main import create_app


def send_event(ws, event: str, data=None) -> None:
    body = {"event": event}
    if data is not None:
        body["data"] = data
    ws.send_text(json.dumps(body))


def sync(ws) -> list[dict]:
    """Round-trip a heartbeat; returns the frames received before the ack."""
    send_event(ws, "heartbeat")
    frames = []
    while True:
        frame = ws.receive_json()
        if frame["event"] == "heartbeat-ack":
            return frames
        frames.append(frame)


def receive_until(ws, event: str) -> dict:
    while True:
        frame = ws.receive_json()
        if frame["event"] == event:
            return frame


@pytest.fixture
def connect(client, token_factory):
    """Open an admitted session for user_id and consume its connected frame."""

    def _connect(user_id: str):
        session = client.websocket_connect(f"/ws/realtime?token={token_factory(user_id)}")
        ws = session.__enter__()
        assert ws.receive_json()["event"] == "connected"
        return session, ws

    return _connect


class TestGate:
    """Rejected handshakes never touch gateway state."""

    def test_missing_token(self, client, manager):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/realtime"):
                pass

        assert exc_info.value.code == WSCloseCode.AUTH_FAILED
        assert exc_info.value.reason == WSConstants.REASON_NO_TOKEN
        assert manager.total_connections == 0
        assert len(manager.registry) == 0

    def test_invalid_token(self, client, manager):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/realtime?token=not-a-token"):
                pass

        assert exc_info.value.code == WSCloseCode.AUTH_FAILED
        assert exc_info.value.reason == WSConstants.REASON_INVALID_TOKEN
        assert manager.metrics.get_snapshot()["connections_rejected_invalid_token"] == 1

    def test_expired_token(self, client, token_factory):
        token = token_factory("u1", ttl_seconds=-60)

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/ws/realtime?token={token}"):
                pass

        assert exc_info.value.reason == WSConstants.REASON_INVALID_TOKEN

    def test_disallowed_origin(self, client, token_factory, manager):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(
                f"/ws/realtime?token={token_factory('u1')}",
                headers={"origin": "http://evil.example"},
            ):
                pass

        assert exc_info.value.code == WSCloseCode.FORBIDDEN
        assert exc_info.value.reason == WSConstants.REASON_ORIGIN
        assert "u1" not in manager.registry

    def test_allowed_origin(self, client, token_factory):
        with client.websocket_connect(
            f"/ws/realtime?token={token_factory('u1')}",
            headers={"origin": ALLOWED_ORIGIN},
        ) as ws:
            assert ws.receive_json()["event"] == "connected"

    def test_authorization_header(self, client, token_factory):
        with client.websocket_connect(
            "/ws/realtime",
            headers={"authorization": f"Bearer {token_factory('u1')}"},
        ) as ws:
            frame = ws.receive_json()

        assert frame["event"] == "connected"
        assert frame["data"]["userId"] == "u1"


class TestPresence:
    """Online and offline notices."""

    def test_online_notice(self, connect):
        s1, ws1 = connect("u1")
        s2, ws2 = connect("u2")

        notice = ws1.receive_json()

        assert notice["event"] == "user-online"
        assert notice["data"]["userId"] == "u2"
        assert "timestamp" in notice["data"]

        s2.__exit__(None, None, None)
        s1.__exit__(None, None, None)

    def test_offline_notice_on_close(self, connect, manager, user_store):
        s1, ws1 = connect("u1")
        s2, _ = connect("u2")

        s2.__exit__(None, None, None)
        notice = receive_until(ws1, "user-offline")

        assert notice["data"]["userId"] == "u2"
        assert "u2" not in manager.registry
        assert wait_until(lambda: ("mark_offline", "u2") in user_store.calls)

        s1.__exit__(None, None, None)

    def test_second_tab_keeps_user_online(self, connect, manager):
        watcher_session, watcher = connect("w")
        tab1_session, _ = connect("u1")
        tab2_session, _ = connect("u1")

        tab2_session.__exit__(None, None, None)
        assert wait_until(lambda: len(manager.connections_for_user("u1")) == 1)
        frames = sync(watcher)

        assert [f["event"] for f in frames] == ["user-online", "user-online"]
        assert "u1" in manager.registry

        tab1_session.__exit__(None, None, None)
        assert receive_until(watcher, "user-offline")["data"]["userId"] == "u1"

        watcher_session.__exit__(None, None, None)


class TestRooms:
    """Joining rooms and relaying room events."""

    def test_join_notifies_existing_members(self, connect):
        s1, ws1 = connect("u1")
        s2, ws2 = connect("u2")
        send_event(ws1, "join-study-group", {"groupId": 7})
        sync(ws1)

        send_event(ws2, "join-study-group", {"groupId": 7})
        assert sync(ws2) == []

        notice = receive_until(ws1, "user-joined-group")
        assert notice["data"]["userId"] == "u2"
        assert notice["data"]["groupId"] == 7

        s2.__exit__(None, None, None)
        s1.__exit__(None, None, None)

    def test_collaboration_update_relayed_to_others_only(self, connect):
        s1, ws1 = connect("u1")
        s2, ws2 = connect("u2")
        for ws in (ws1, ws2):
            send_event(ws, "join-room", {"roomId": "group-7"})
            sync(ws)
        receive_until(ws1, "user-joined-group")

        send_event(ws1, "collaboration-update", {
            "roomId": "group-7", "type": "edit", "content": {"text": "hello"},
        })
        # The sender's next frame is the ack: it never sees its own update
        assert sync(ws1) == []

        update = receive_until(ws2, "collaboration-update")
        assert update["data"]["userId"] == "u1"
        assert update["data"]["content"] == {"text": "hello"}

        s2.__exit__(None, None, None)
        s1.__exit__(None, None, None)

    def test_typing_relayed(self, connect):
        s1, ws1 = connect("u1")
        s2, ws2 = connect("u2")
        send_event(ws2, "join-room", {"roomId": "r1"})
        sync(ws2)

        send_event(ws1, "typing", {"roomId": "r1"})
        sync(ws1)

        assert receive_until(ws2, "user-typing")["data"]["userId"] == "u1"

        s2.__exit__(None, None, None)
        s1.__exit__(None, None, None)


class TestMalformedFrames:
    """Malformed and oversized frames."""

    def test_malformed_frame_keeps_connection_open(self, client, token_factory, manager):
        with client.websocket_connect(f"/ws/realtime?token={token_factory('u1')}") as ws:
            ws.receive_json()
            ws.send_text("{definitely not json")
            send_event(ws, "leave-everything", {})

            assert sync(ws) == []

        assert manager.metrics.get_snapshot()["events_malformed"] == 2

    def test_binary_frame_is_parsed(self, client, token_factory):
        with client.websocket_connect(f"/ws/realtime?token={token_factory('u1')}") as ws:
            ws.receive_json()
            ws.send_bytes(b'{"event": "heartbeat"}')

            assert ws.receive_json()["event"] == "heartbeat-ack"

    def test_oversized_frame_dropped(self, client, token_factory, manager):
        with client.websocket_connect(f"/ws/realtime?token={token_factory('u1')}") as ws:
            ws.receive_json()
            ws.send_text("x" * (manager.config.ws_max_message_size + 1))

            assert sync(ws) == []

        assert manager.metrics.get_snapshot()["events_malformed"] == 1

    def test_frame_size_counts_bytes(self, gateway_settings, user_store, auth_strategy, token_factory):
        config = gateway_settings.model_copy(update={"ws_max_message_size": 64})
        manager = ConnectionManager(user_store=user_store, config=config)
        app = create_app(manager=manager, auth_strategy=auth_strategy, create_tables=False)
        # 63 characters, 83 bytes in UTF-8
        frame = json.dumps({"event": "heartbeat", "data": {"pad": "é" * 20}}, ensure_ascii=False)

        with TestClient(app) as client:
            with client.websocket_connect(f"/ws/realtime?token={token_factory('u1')}") as ws:
                ws.receive_json()
                ws.send_text(frame)

                assert sync(ws) == []

            snapshot = manager.metrics.get_snapshot()
            assert snapshot["events_malformed"] == 1
            assert snapshot["events_heartbeats"] == 1

    def test_collaboration_update_without_room_not_relayed(self, connect, manager):
        s1, ws1 = connect("u1")
        s2, ws2 = connect("u2")
        for ws in (ws1, ws2):
            send_event(ws, "join-room", {"roomId": "r1"})
            sync(ws)
        receive_until(ws1, "user-joined-group")

        send_event(ws1, "collaboration-update", {"type": "edit", "content": "x"})
        # Still served: the next heartbeat is acked with nothing before it
        assert sync(ws1) == []

        assert "collaboration-update" not in [f["event"] for f in sync(ws2)]
        assert manager.metrics.get_snapshot()["events_malformed"] == 1

        s2.__exit__(None, None, None)
        s1.__exit__(None, None, None)

    def test_strict_mode_closes_with_policy_violation(
        self, gateway_settings, user_store, auth_strategy, token_factory,
    ):
        config = gateway_settings.model_copy(update={"ws_max_malformed_events": 2})
        manager = ConnectionManager(user_store=user_store, config=config)
        app = create_app(manager=manager, auth_strategy=auth_strategy, create_tables=False)

        with TestClient(app) as client:
            with client.websocket_connect(f"/ws/realtime?token={token_factory('u1')}") as ws:
                ws.receive_json()
                ws.send_text("nope")
                ws.send_text("still nope")

                with pytest.raises(WebSocketDisconnect) as exc_info:
                    ws.receive_json()

            assert exc_info.value.code == WSCloseCode.POLICY_VIOLATION
            assert wait_until(lambda: manager.total_connections == 0)
            assert manager.metrics.get_snapshot()["connections_closed_malformed"] == 1


class TestHeartbeat:
    def test_heartbeat_ack(self, client, token_factory, manager):
        with client.websocket_connect(f"/ws/realtime?token={token_factory('u1')}") as ws:
            ws.receive_json()
            before = manager.registry.get("u1").last_seen_at

            send_event(ws, "heartbeat")
            ack = ws.receive_json()

            assert ack["event"] == "heartbeat-ack"
            assert manager.registry.get("u1").last_seen_at > before
