import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app import create_app


@pytest.fixture
def client(store, tokens):
    app = create_app(store=store, tokens=tokens)
    with TestClient(app) as client:
        yield client


def test_health_and_root(client):
    health = client.get("/health").json()
    assert health["status"] == "OK"
    assert health["connections"] == 0
    assert health["storage"] == "unknown"
    assert client.get("/").status_code == 200


def test_websocket_without_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()
    assert exc_info.value.code == 1008


def test_websocket_with_invalid_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws?token=not-a-jwt") as websocket:
            websocket.receive_json()
    assert exc_info.value.code == 1008


def test_live_session(client, tokens, store):
    with client.websocket_connect(f"/ws?token={tokens.issue('u1')}") as ws1:
        with client.websocket_connect(f"/ws?token={tokens.issue('u2')}") as ws2:
            online = ws1.receive_json()
            assert online["event"] == "userOnline"
            assert online["data"]["userId"] == "u2"

            presence = client.get("/presence/u2").json()
            assert presence == {"user_id": "u2", "is_online": True, "connection_count": 1}
            assert client.get("/presence/").json()["online_users"] == ["u1", "u2"]

            ws1.send_json({"event": "joinChat", "data": "c1"})
            ws1.send_json({"event": "sendMessage", "data": {"chatId": "c1", "content": "hello"}})

            echo = ws1.receive_json()
            assert echo["event"] == "newMessage"
            assert echo["data"]["content"] == "hello"
            assert echo["data"]["senderId"] == "u1"

            notification = ws2.receive_json()
            assert notification["event"] == "newMessageNotification"
            assert notification["data"]["chatId"] == "c1"
            assert notification["data"]["message"]["id"] == echo["data"]["id"]

            ws2.send_json({"event": "sendMessage", "data": {"content": "no chat"}})
            assert ws2.receive_json() == {"event": "error", "data": {"message": "Chat ID is required"}}

        offline = ws1.receive_json()
        assert offline["event"] == "userOffline"
        assert offline["data"]["userId"] == "u2"
        assert offline["data"]["lastSeen"]

    assert client.get("/presence/u1").json()["is_online"] is False
    assert [write[:2] for write in store.presence_writes] == [("u1", True), ("u2", True), ("u2", False), ("u1", False)]
