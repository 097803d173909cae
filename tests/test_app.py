"""End-to-end tests through the FastAPI app: WebSocket signaling and HTTP routes."""

import json
import uuid
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from app import app
from registry import room_registry


@pytest.fixture
def client() -> Iterator[TestClient]:
    # entering the client keeps every websocket on one event loop
    with TestClient(app) as test_client:
        yield test_client


def unique(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def connect(ws) -> str:
    hello = ws.receive_json()
    assert hello["event"] == "connected"
    return hello["data"]["connectionId"]


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_unknown_room_details_404(client: TestClient) -> None:
    response = client.get(f"/rooms/{uuid.uuid4()}")

    assert response.status_code == 404


def test_lobby_scenario_over_websocket(client: TestClient) -> None:
    lobby = unique("lobby")

    with client.websocket_connect("/ws") as alice:
        a_id = connect(alice)
        alice.send_json({"event": "join-room", "data": {"roomName": lobby, "userName": "Alice"}})
        assert alice.receive_json() == {"event": "room-users", "data": []}

        with client.websocket_connect("/ws") as bob:
            b_id = connect(bob)
            bob.send_json({"event": "join-room", "data": {"roomName": lobby, "userName": "Bob"}})
            assert bob.receive_json() == {"event": "room-users", "data": [a_id]}
            assert alice.receive_json() == {
                "event": "user-joined",
                "data": {"userId": b_id, "userName": "Bob"},
            }

            alice.send_json({"event": "offer", "data": {"target": b_id, "offer": "O", "caller": a_id}})
            assert bob.receive_json() == {"event": "offer", "data": {"offer": "O", "caller": a_id}}

            bob.send_json({"event": "answer", "data": {"target": a_id, "answer": "S"}})
            assert alice.receive_json() == {"event": "answer", "data": {"answer": "S", "answerer": b_id}}

            bob.send_json({"event": "ice-candidate", "data": {"target": a_id, "candidate": "C"}})
            assert alice.receive_json() == {"event": "ice-candidate", "data": {"candidate": "C", "sender": b_id}}

            room = room_registry.get_room_by_name(lobby)
            details = client.get(f"/rooms/{room.id}").json()
            assert details["online_users_count"] == 2
            assert details["online_users"] == [
                {"connection_id": a_id, "display_name": "Alice"},
                {"connection_id": b_id, "display_name": "Bob"},
            ]

        assert alice.receive_json() == {"event": "user-disconnected", "data": b_id}
        assert room_registry.get_room_by_name(lobby).members == [a_id]


def test_bad_request_keeps_connection_open(client: TestClient) -> None:
    room = unique("room")

    with client.websocket_connect("/ws") as ws:
        connect(ws)
        ws.send_json({"event": "join-room", "data": {"roomName": room}})
        error = ws.receive_json()
        assert error["event"] == "error"
        assert error["data"]["code"] == "bad-request"
        assert room_registry.get_room_by_name(room) is None

        ws.send_text("not json")
        assert ws.receive_json()["data"]["code"] == "bad-request"

        ws.send_json({"event": "join-room", "data": {"roomName": room, "userName": "Zed"}})
        assert ws.receive_json() == {"event": "room-users", "data": []}


def test_offer_to_departed_target_is_silent(client: TestClient) -> None:
    room = unique("room")

    with client.websocket_connect("/ws") as ws:
        me = connect(ws)
        ws.send_json({"event": "offer", "data": {"target": str(uuid.uuid4()), "offer": "O", "caller": me}})
        ws.send_json({"event": "join-room", "data": {"roomName": room, "userName": "Solo"}})

        # the next frame is the join reply, nothing was sent for the dropped offer
        assert ws.receive_json() == {"event": "room-users", "data": []}


def test_rooms_listing_includes_joined_room(client: TestClient) -> None:
    room = unique("listed")

    with client.websocket_connect("/ws") as ws:
        connect(ws)
        ws.send_json({"event": "join-room", "data": {"roomName": room, "userName": "Lister"}})
        ws.receive_json()

        rooms = client.get("/rooms").json()["rooms"]
        listed = [r for r in rooms if r["name"] == room]
        assert len(listed) == 1
        assert listed[0]["online_users_count"] == 1


def test_binary_frame_does_not_drop_membership(client: TestClient) -> None:
    room = unique("binary")

    with client.websocket_connect("/ws") as alice:
        a_id = connect(alice)
        alice.send_json({"event": "join-room", "data": {"roomName": room, "userName": "Alice"}})
        assert alice.receive_json() == {"event": "room-users", "data": []}

        with client.websocket_connect("/ws") as bob:
            b_id = connect(bob)
            bob.send_json({"event": "join-room", "data": {"roomName": room, "userName": "Bob"}})
            assert bob.receive_json() == {"event": "room-users", "data": [a_id]}
            assert alice.receive_json()["event"] == "user-joined"

            offer = {"event": "offer", "data": {"target": a_id, "offer": "O", "caller": b_id}}
            bob.send_bytes(json.dumps(offer).encode())
            assert alice.receive_json() == {"event": "offer", "data": {"offer": "O", "caller": b_id}}

            bob.send_bytes(b"\x80\x81 garbage")
            assert bob.receive_json()["data"]["code"] == "bad-request"

            assert room_registry.get_room_by_name(room).members == [a_id, b_id]

            bob.send_json({"event": "ice-candidate", "data": {"target": a_id, "candidate": "C"}})
            assert alice.receive_json() == {"event": "ice-candidate", "data": {"candidate": "C", "sender": b_id}}
