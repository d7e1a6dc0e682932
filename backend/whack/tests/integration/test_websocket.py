"""Integration tests for the WebSocket and HTTP endpoints.

These drive the full stack (Starlette app, MessagePack framing, router,
registry, real timers) through the test client.
"""

from unittest.mock import patch

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from whack.server import websocket as ws_module
from whack.server.app import create_app
from whack.server.settings import GameServerSettings
from whack.tests.helpers.websocket import recv_until, recv_ws, send_ws


def _create_and_join(ws, name: str) -> dict:
    send_ws(ws, {"type": "createSession"})
    created = recv_ws(ws)
    assert created["type"] == "sessionCreated"
    return _join(ws, created["sessionId"], name)


def _join(ws, session_id: str, name: str) -> dict:
    send_ws(ws, {"type": "joinSession", "sessionId": session_id, "playerName": name})
    joined = recv_ws(ws)
    assert joined["type"] == "sessionJoined"
    recv_until(ws, "playersUpdate")
    return joined


class TestGameFlow:
    @pytest.fixture
    def server_settings(self):
        # stay long enough that a test hit always lands before the auto-hide
        return GameServerSettings(
            cube_spawn_delay_min=0.05,
            cube_spawn_delay_max=0.05,
            cube_stay_duration=5.0,
            rate_limit_rate=1000.0,
            rate_limit_burst=1000,
        )

    def test_two_players_start_and_hit(self, client):
        with client.websocket_connect("/ws") as host, client.websocket_connect("/ws") as guest:
            joined = _create_and_join(host, "Alice")
            session_id = joined["sessionId"]
            _join(guest, session_id, "Bob")
            recv_until(host, "playersUpdate")

            send_ws(guest, {"type": "startGame"})
            assert recv_ws(guest)["code"] == "not_host"

            send_ws(host, {"type": "startGame"})
            assert recv_until(host, "gameStarted") == {"type": "gameStarted", "status": "active"}
            assert recv_until(guest, "gameStarted")["status"] == "active"

            cube = recv_until(host, "cubeSpawned")
            assert recv_until(guest, "cubeSpawned") == cube

            send_ws(host, {"type": "cubeHit", "isRed": cube["isRed"]})
            score = recv_until(host, "scoreUpdate")
            if cube["isRed"]:
                assert (score["score"], score["lives"]) == (0, 2)
            else:
                assert (score["score"], score["lives"]) == (1, 3)

            update = recv_until(guest, "playersUpdate")
            assert update["players"][0]["name"] == "Alice"
            assert recv_until(guest, "cubeHidden") == {"type": "cubeHidden"}

    def test_host_disconnect_hands_over(self, client):
        with client.websocket_connect("/ws") as guest:
            with client.websocket_connect("/ws") as host:
                session_id = _create_and_join(host, "Alice")["sessionId"]
                guest_id = _join(guest, session_id, "Bob")["socketId"]

            changed = recv_until(guest, "hostChanged")
            assert changed["newHostId"] == guest_id
            update = recv_until(guest, "playersUpdate")
            assert [(p["name"], p["isHost"]) for p in update["players"]] == [("Bob", True)]

    def test_quick_match_pairs_players(self, client):
        with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
            send_ws(first, {"type": "quickMatch", "playerName": "Alice"})
            a = recv_ws(first)
            send_ws(second, {"type": "quickMatch"})
            b = recv_ws(second)

            assert a["sessionId"] == b["sessionId"]
            assert [p["name"] for p in b["players"]] == ["Alice", "Player 2"]
            assert b["hostId"] == a["socketId"]


class TestSpawnLoop:
    def test_unhit_cube_hides_and_respawns(self, client):
        with client.websocket_connect("/ws") as host, client.websocket_connect("/ws") as guest:
            session_id = _create_and_join(host, "Alice")["sessionId"]
            _join(guest, session_id, "Bob")
            send_ws(host, {"type": "startGame"})

            recv_until(guest, "cubeSpawned")
            assert recv_ws(guest) == {"type": "cubeHidden"}
            assert recv_ws(guest)["type"] == "cubeSpawned"

    def test_pause_when_partner_leaves(self, client):
        with client.websocket_connect("/ws") as host:
            with client.websocket_connect("/ws") as guest:
                session_id = _create_and_join(host, "Alice")["sessionId"]
                _join(guest, session_id, "Bob")
                send_ws(host, {"type": "startGame"})
                recv_until(guest, "gameStarted")

            paused = recv_until(host, "gamePaused")
            assert paused == {"type": "gamePaused", "reason": "Not enough players", "minPlayers": 2}


class TestProtocolErrors:
    def test_invalid_msgpack_keeps_connection(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"\xff\xff\xff")
            response = recv_ws(ws)
            assert response["type"] == "error"
            assert response["code"] == "invalid_message"

            send_ws(ws, {"type": "ping"})
            assert recv_ws(ws) == {"type": "pong"}

    def test_text_frame_rejected(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("hello")
            assert recv_ws(ws)["code"] == "invalid_message"

    def test_repeated_decode_errors_disconnect(self, client):
        with patch.object(ws_module, "_MAX_DECODE_ERRORS", 3), client.websocket_connect("/ws") as ws:
            for _ in range(3):
                ws.send_bytes(b"\xff\xff\xff")
                recv_ws(ws)
            with pytest.raises(WebSocketDisconnect):
                ws.receive_bytes()

    def test_join_unknown_session(self, client):
        with client.websocket_connect("/ws") as ws:
            send_ws(ws, {"type": "joinSession", "sessionId": "zzzzzz"})
            assert recv_ws(ws)["code"] == "session_not_found"


class TestRateLimit:
    @pytest.fixture
    def server_settings(self):
        return GameServerSettings(rate_limit_rate=0.001, rate_limit_burst=2)

    def test_flood_is_rate_limited(self, client):
        with client.websocket_connect("/ws") as ws:
            for _ in range(2):
                send_ws(ws, {"type": "ping"})
                assert recv_ws(ws) == {"type": "pong"}
            send_ws(ws, {"type": "ping"})
            assert recv_ws(ws)["code"] == "rate_limited"


class TestHttpRoutes:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_status_counts_sessions(self, client):
        with client.websocket_connect("/ws") as ws:
            _create_and_join(ws, "Alice")
            data = client.get("/status").json()
        assert data["sessions"] == 1
        assert data["players"] == 1
        assert data["active_sessions"] == 0
        assert data["max_sessions"] == 1000

    def test_shutdown_cancels_timers(self, server_settings):
        app = create_app(settings=server_settings)
        registry = app.state.registry
        with TestClient(app) as client, client.websocket_connect("/ws") as ws:
            send_ws(ws, {"type": "createSession"})
            recv_ws(ws)
            assert registry.session_count == 1
        assert registry.session_count == 0
