"""Tests for the FastAPI room creation and listing surface."""

import pytest
from fastapi.testclient import TestClient

from putt_party.http_api import create_app
from putt_party.relay import SessionRelay


@pytest.fixture
def relay():
    return SessionRelay(lambda *_: None, max_rooms=2)


@pytest.fixture
def client(relay):
    return TestClient(create_app(relay, game_path="/game.html"))


class TestCreateRoom:
    """Tests for GET /create-room."""

    def test_redirects_to_game_with_room(self, client, relay):
        response = client.get("/create-room", follow_redirects=False)
        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("/game.html?room=")
        room_id = location.split("room=")[1]
        assert relay.get_room(room_id) is not None

    def test_capacity_returns_503(self, client):
        client.get("/create-room", follow_redirects=False)
        client.get("/create-room", follow_redirects=False)
        response = client.get("/create-room", follow_redirects=False)
        assert response.status_code == 503
        assert response.json()["detail"] == (
            "Server is currently at capacity. Please try again later."
        )


class TestRooms:
    """Tests for room listing and detail."""

    def test_list_rooms(self, client, relay):
        room_id = relay.create_room()
        response = client.get("/rooms")
        assert response.status_code == 200
        assert response.json() == {"rooms": [room_id]}

    def test_room_detail(self, client, relay):
        room_id = relay.create_room()
        relay.join_room("ctrl", room_id)
        data = client.get(f"/rooms/{room_id}").json()
        assert data["roomId"] == room_id
        assert data["connectedCount"] == 1
        assert data["gameType"] == "minigolf"

    def test_room_detail_is_case_insensitive(self, client, relay):
        room_id = relay.create_room()
        assert client.get(f"/rooms/{room_id.upper()}").status_code == 200

    def test_unknown_room_404(self, client):
        response = client.get("/rooms/deadbeef")
        assert response.status_code == 404
        assert response.json()["detail"] == "Room does not exist"


class TestHealth:
    """Tests for GET /health."""

    def test_health(self, client, relay):
        relay.create_room()
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["activeRooms"] == 1
        assert data["uptime"] >= 0

    def test_cors_headers(self, client):
        response = client.get("/health", headers={"Origin": "http://phone.local"})
        assert "access-control-allow-origin" in response.headers
