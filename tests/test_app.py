import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app import create_app
from conftest import ScriptedRandom


@pytest.fixture()
def messages_app():
    return create_app(mode="messages", rng=ScriptedRandom("WXYZ", "ABCD"))


@pytest.fixture()
def raw_app():
    return create_app(mode="raw")


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        create_app(mode="carrier-pigeon")


def test_health_reports_active_rooms(messages_app):
    with TestClient(messages_app) as client:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "Relay Server Running\nActive Rooms: 0"

        with client.websocket_connect("/") as ws:
            ws.receive_json()
            ws.send_json({"type": "create_room", "player_name": "Alice"})
            ws.receive_json()
            assert client.get("/").text.endswith("Active Rooms: 1")


def test_unknown_path_is_404(messages_app):
    with TestClient(messages_app) as client:
        response = client.get("/rooms")
        assert response.status_code == 404
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "Not Found"


def test_cors_headers(messages_app):
    with TestClient(messages_app) as client:
        response = client.get("/health", headers={"Origin": "http://game.example"})
        assert response.headers["access-control-allow-origin"] == "*"


def test_create_join_leave_end_to_end(messages_app):
    directory = messages_app.state.directory
    with TestClient(messages_app) as client:
        with client.websocket_connect("/") as c1, client.websocket_connect("/ws") as c2:
            assert c1.receive_json() == {"type": "connected", "player_id": "p1"}
            assert c2.receive_json() == {"type": "connected", "player_id": "p2"}

            c1.send_json({"type": "create_room", "player_name": "Alice"})
            assert c1.receive_json() == {"type": "room_created", "room_code": "WXYZ", "player_id": "p1"}

            c2.send_json({"type": "join_room", "room_code": "WXYZ", "player_name": "Bob"})
            assert c2.receive_json() == {"type": "room_joined", "room_code": "WXYZ", "player_id": "p2"}
            assert c2.receive_json() == {
                "type": "player_list",
                "players": {"p1": {"name": "Alice", "is_host": True}},
            }
            assert c1.receive_json() == {
                "type": "player_joined",
                "player_id": "p2",
                "player_data": {"name": "Bob", "is_host": False},
            }

            c1.send_json({"type": "leave_room"})
            assert c2.receive_json() == {"type": "room_closed", "reason": "Host left"}
            assert c1.receive_json() == {"type": "room_left"}
            assert "WXYZ" not in directory


def test_game_traffic_end_to_end(messages_app):
    with TestClient(messages_app) as client:
        with client.websocket_connect("/") as host, client.websocket_connect("/") as guest:
            host.receive_json()
            guest.receive_json()
            host.send_json({"type": "create_room", "player_name": "Alice"})
            host.receive_json()
            guest.send_json({"type": "join_room", "room_code": "wxyz", "player_name": "Bob"})
            guest.receive_json()
            guest.receive_json()
            host.receive_json()

            guest.send_json({"type": "start_game"})
            assert guest.receive_json() == {"type": "room_error", "error": "Only host can start game"}

            host.send_json({"type": "start_game"})
            assert host.receive_json() == {"type": "game_started"}
            assert guest.receive_json() == {"type": "game_started"}

            guest.send_text('{"type": "game_message", "message_type": "move", "data": {"x": 1}}')
            assert host.receive_text() == '{"type": "game_message", "message_type": "move", "data": {"x": 1}}'

            guest.send_bytes(b"\x00opaque")
            assert host.receive_bytes() == b"\x00opaque"

            host.send_json({"type": "game_message", "message_type": "player_ready", "data": {"ready": True}})
            expected = {"type": "game_state_updated", "state": {"players_ready": {"p1": True}}}
            assert host.receive_json() == expected
            assert guest.receive_json() == expected


def test_disconnect_of_guest_notifies_host(messages_app):
    directory = messages_app.state.directory
    with TestClient(messages_app) as client:
        with client.websocket_connect("/") as host:
            host.receive_json()
            host.send_json({"type": "create_room"})
            host.receive_json()
            with client.websocket_connect("/") as guest:
                guest.receive_json()
                guest.send_json({"type": "join_room", "room_code": "WXYZ"})
                guest.receive_json()
                guest.receive_json()
                host.receive_json()
            assert host.receive_json() == {"type": "player_left", "player_id": "p2"}
            assert directory.get("WXYZ").size == 1
        assert "WXYZ" not in directory
        assert len(messages_app.state.registry) == 0


def test_raw_relay_fan_out(raw_app):
    with TestClient(raw_app) as client:
        with client.websocket_connect("/GAME?role=host") as host, \
                client.websocket_connect("/GAME?role=client") as first, \
                client.websocket_connect("/game?role=client") as second:
            host.send_bytes(b"state")
            assert first.receive_bytes() == b"state"
            assert second.receive_bytes() == b"state"

            first.send_text("input")
            assert host.receive_text() == "input"
            assert second.receive_text() == "input"


@pytest.mark.parametrize("target, code, reason", [
    ("/NONE?role=client", 1008, "room not found"),
    ("/GAME", 1002, "malformed connection target"),
    ("/TOOLONG?role=host", 1002, "malformed connection target"),
])
def test_raw_relay_rejections(raw_app, target, code, reason):
    with TestClient(raw_app) as client:
        with client.websocket_connect(target) as ws:
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_text()
    assert exc.value.code == code
    assert exc.value.reason == reason


def test_raw_relay_second_host_rejected(raw_app):
    with TestClient(raw_app) as client:
        with client.websocket_connect("/GAME?role=host"):
            with client.websocket_connect("/GAME?role=host") as intruder:
                with pytest.raises(WebSocketDisconnect) as exc:
                    intruder.receive_text()
            assert exc.value.code == 1008
            assert exc.value.reason == "room already exists"
            assert raw_app.state.directory.get("GAME").size == 1


def test_raw_relay_host_leaving_closes_clients(raw_app):
    with TestClient(raw_app) as client:
        with client.websocket_connect("/GAME?role=host") as host, \
                client.websocket_connect("/GAME?role=client") as guest:
            host.close()
            with pytest.raises(WebSocketDisconnect) as exc:
                guest.receive_text()
            assert exc.value.code == 1001
            assert exc.value.reason == "Host left"
        assert "GAME" not in raw_app.state.directory
