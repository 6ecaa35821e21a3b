"""End-to-end tests for the /ws endpoint."""

import pytest
from fastapi.testclient import TestClient

from tests.api.conftest import TID


@pytest.fixture
def test_client(app):
    """Client with lifespan running; all calls share one event loop."""
    with TestClient(app) as client:
        yield client


def _receive_until(ws, event_type: str) -> dict:
    while True:
        message = ws.receive_json()
        if message["type"] == event_type:
            return message


class TestWebSocketEndpoint:
    def test_connect_and_join(self, test_client):
        with test_client.websocket_connect("/ws") as ws:
            welcome = ws.receive_json()
            assert welcome["type"] == "CONNECTION_STATE"
            assert welcome["payload"]["state"] == "connected"

            ws.send_json({"type": "join_tournament", "payload": {"tournamentId": TID}})
            snapshot = ws.receive_json()

            assert snapshot["type"] == "auction_state_update"
            assert snapshot["payload"]["tournamentId"] == TID
            assert snapshot["payload"]["currentPlayer"] is None

    def test_malformed_message_keeps_socket_open(self, test_client):
        with test_client.websocket_connect("/ws") as ws:
            ws.receive_json()

            ws.send_text("not json")
            error = ws.receive_json()
            assert error["type"] == "ERROR"
            assert error["payload"]["errorCode"] == "INVALID_MESSAGE"

            ws.send_json({"type": "PING", "payload": {}, "requestId": "r-1"})
            pong = ws.receive_json()
            assert pong["type"] == "PONG"
            assert pong["requestId"] == "r-1"

    def test_admin_bid_reaches_spectator(self, test_client, admin_token):
        with test_client.websocket_connect("/ws") as spectator, \
                test_client.websocket_connect("/ws") as admin:
            spectator.receive_json()
            admin.receive_json()

            spectator.send_json({"type": "join_tournament", "payload": {"tournamentId": TID}})
            assert spectator.receive_json()["payload"]["currentBid"] == 0

            response = test_client.post(
                "/api/auction/start-pool",
                json={"tournamentId": TID, "poolId": "pool-marquee"},
                headers={"Authorization": f"Bearer {admin_token}"},
            )
            assert response.status_code == 200
            started = _receive_until(spectator, "auction_state_update")
            assert started["payload"]["currentBid"] == 20_000_000

            admin.send_json({"type": "AUTH", "payload": {"token": admin_token}})
            assert admin.receive_json()["type"] == "AUTH_RESULT"

            admin.send_json(
                {
                    "type": "admin_update_bid",
                    "payload": {"tournamentId": TID, "increment": 1_000_000},
                }
            )
            updated = _receive_until(spectator, "auction_state_update")
            assert updated["payload"]["currentBid"] == 21_000_000

    def test_spectator_cannot_update_bid(self, test_client):
        with test_client.websocket_connect("/ws") as ws:
            ws.receive_json()

            ws.send_json(
                {
                    "type": "admin_update_bid",
                    "payload": {"tournamentId": TID, "newBid": 1},
                    "requestId": "r-2",
                }
            )
            error = ws.receive_json()

            assert error["type"] == "ERROR"
            assert error["requestId"] == "r-2"
            assert error["payload"]["errorCode"] == "UNAUTHORIZED"
