"""
Tests for the chat REST endpoints and the /ws socket end to end.
"""

import pytest
from starlette.websockets import WebSocketDisconnect


def _room(client, vepari, factory, user=None):
    user = user or vepari
    return client.post("/api/chat/room", json={"vepariId": vepari.id, "factoryId": factory.id},
                       headers=user.headers)


def _ws(client, user):
    return client.websocket_connect(f"/ws?token={user.token}")


def _join(ws, vepari, factory):
    ws.send_json({"event": "join_room", "data": {"vepariId": vepari.id, "factoryId": factory.id}})
    frame = ws.receive_json()
    assert frame["event"] == "room_joined"
    return frame["data"]


def _say(ws, vepari, factory, text):
    ws.send_json({"event": "send_message",
                  "data": {"message": text, "vepariId": vepari.id, "factoryId": factory.id}})


class TestRooms:

    def test_room_is_canonical(self, client, vepari, factory):
        first = _room(client, vepari, factory).json()
        swapped = client.post("/api/chat/room", json={"vepariId": factory.id, "factoryId": vepari.id},
                              headers=factory.headers).json()
        assert first["id"] == swapped["id"]
        assert first["vepari_id"] == vepari.id
        assert first["factory_id"] == factory.id

    def test_outsider_cannot_open_room(self, client, vepari, factory, make_user):
        outsider = make_user("vepari")
        r = _room(client, vepari, factory, user=outsider)
        assert r.status_code == 403

    def test_history_and_clear(self, client, vepari, factory, make_user):
        room_id = _room(client, vepari, factory).json()["id"]
        with _ws(client, vepari) as ws:
            _join(ws, vepari, factory)
            for text in ("one", "two", "three"):
                _say(ws, vepari, factory, text)
                assert ws.receive_json()["event"] == "receive_message"

        history = client.get(f"/api/chat/history/{room_id}?limit=2", headers=factory.headers).json()
        assert [m["message_text"] for m in history["messages"]] == ["one", "two"]
        assert history["pagination"] == {"currentPage": 1, "totalPages": 2, "totalMessages": 3, "hasMore": True}
        assert history["messages"][0]["sender_email"] == vepari.email
        assert history["roomInfo"]["last_message"] == "three"

        outsider = make_user("factory_owner")
        assert client.get(f"/api/chat/history/{room_id}", headers=outsider.headers).status_code == 403
        assert client.post("/api/chat/clear", json={"roomId": room_id}, headers=outsider.headers).status_code == 403

        r = client.post("/api/chat/clear", json={"roomId": room_id}, headers=factory.headers)
        assert r.json() == {"success": True, "message": "Chat history cleared successfully", "deletedCount": 3}
        history = client.get(f"/api/chat/history/{room_id}", headers=vepari.headers).json()
        assert history["messages"] == []
        assert history["roomInfo"]["last_message"] is None

    def test_clear_requires_room_id(self, client, vepari):
        r = client.post("/api/chat/clear", json={}, headers=vepari.headers)
        assert r.status_code == 400
        assert r.json()["msg"] == "Room ID is required"

    def test_rooms_list_with_unread(self, client, vepari, factory, make_user):
        quiet = make_user("factory_owner")
        _room(client, vepari, quiet)
        _room(client, vepari, factory)
        with _ws(client, factory) as ws:
            _join(ws, vepari, factory)
            _say(ws, vepari, factory, "stock ready")
            ws.receive_json()

        rooms = client.get("/api/chat/rooms", headers=vepari.headers).json()["rooms"]
        assert [r["factory_id"] for r in rooms] == [factory.id, quiet.id]
        assert rooms[0]["unread_count"] == 1
        assert rooms[0]["factory_email"] == factory.email
        assert rooms[0]["last_message"] == "stock ready"

        rooms = client.get("/api/chat/rooms", headers=factory.headers).json()["rooms"]
        assert rooms[0]["unread_count"] == 0
        assert rooms[0]["vepari_email"] == vepari.email


class TestSocket:

    def test_rejects_missing_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/ws"):
                pass
        assert exc.value.code == 4401

    def test_rejects_bad_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/ws?token=nope"):
                pass
        assert exc.value.code == 4401

    def test_accepts_authorization_header(self, client, vepari, factory):
        with client.websocket_connect("/ws", headers={"Authorization": f"Bearer {vepari.token}"}) as ws:
            joined = _join(ws, vepari, factory)
        assert joined["roomName"] == f"room_{vepari.id}_{factory.id}"

    def test_conversation_between_two_sockets(self, client, vepari, factory):
        with _ws(client, vepari) as v_ws, _ws(client, factory) as f_ws:
            room = _join(v_ws, vepari, factory)
            assert _join(f_ws, vepari, factory)["roomId"] == room["roomId"]

            f_ws.send_json({"event": "typing", "data": {"vepariId": vepari.id, "factoryId": factory.id}})
            typing = v_ws.receive_json()
            assert typing["event"] == "user_typing"
            assert typing["data"]["userId"] == factory.id

            # the typist never hears its own signal: its next frame is the message
            _say(f_ws, vepari, factory, "Sample dispatched")
            assert f_ws.receive_json()["event"] == "receive_message"
            received = v_ws.receive_json()
            assert received["event"] == "receive_message"
            assert received["data"]["message"] == "Sample dispatched"
            assert received["data"]["senderRole"] == "factory_owner"

            v_ws.send_json({"event": "mark_messages_read", "data": {"roomId": room["roomId"]}})
            assert v_ws.receive_json() == {"event": "messages_marked_read", "data": {"roomId": room["roomId"]}}

    def test_bad_frame_gets_error(self, client, vepari):
        with _ws(client, vepari) as ws:
            ws.send_text("this is not json")
            assert ws.receive_json() == {"event": "error", "data": {"message": "Invalid payload format"}}

    def test_order_notification_pushed_live(self, client, vepari, factory, make_design, grant_access):
        design_id = make_design(factory.id, "D-5")
        grant_access(vepari.id, factory.id)
        with _ws(client, factory) as ws:
            r = client.post("/api/orders", json={"designId": design_id, "factoryId": factory.id, "quantity": 12},
                            headers=vepari.headers)
            assert r.status_code == 201
            frame = ws.receive_json()
            assert frame["event"] == "new_notification"
            assert frame["data"]["type"] == "new_order"
            assert frame["data"]["data"]["orderId"] == r.json()["order"]["id"]
