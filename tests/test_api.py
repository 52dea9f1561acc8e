import re

import pytest
from fastapi import WebSocketDisconnect, status

from constants import ROOM_MISSING_NOTICE


def create_room(client, **body):
    response = client.post("/dispute", json=body or {"initiator": "buyer", "counterparty": "seller", "mediator": "mod"})
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["success"] is True
    return data["roomId"]


class TestRoomHttpApi:

    def test_create_room_returns_room_id(self, client, registry):
        room_id = create_room(client)

        assert re.fullmatch(r"room_\d+", room_id)
        assert room_id in registry

    @pytest.mark.asyncio
    async def test_create_room_accepts_dispute_field_names(self, client, registry):
        room_id = create_room(client, buyerId=1, sellerId="s-2", mediatorId="m-3")

        room = await registry.get(room_id)
        assert (room.initiator, room.counterparty, room.mediator) == ("1", "s-2", "m-3")

    def test_history_for_unknown_room_is_404(self, client):
        response = client.get("/chat/room_never_created")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"success": False, "message": "Chat room not found."}

    def test_history_of_new_room_is_empty(self, client):
        room_id = create_room(client)

        response = client.get(f"/chat/{room_id}")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True, "messages": []}

    def test_send_records_history(self, client):
        room_id = create_room(client)

        response = client.post("/chat/send", json={"roomId": room_id, "content": "hello", "sender": "buyer"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True, "message": "Message sent."}
        messages = client.get(f"/chat/{room_id}").json()["messages"]
        assert [(m["content"], m["sender"]) for m in messages] == [("hello", "buyer")]

    def test_send_to_unknown_room_is_404(self, client):
        response = client.post("/chat/send", json={"roomId": "room_missing", "content": "hello"})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["success"] is False

    def test_close_unknown_room_is_404(self, client):
        response = client.post("/chat/room_missing/close")

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestRoomWebSocket:

    def test_two_members_both_receive_message(self, client):
        room_id = create_room(client)

        with client.websocket_connect(f"/ws?roomId={room_id}") as alice, \
                client.websocket_connect(f"/ws?roomId={room_id}") as bob:
            assert alice.receive_json() == {"type": "CONNECTED", "roomId": room_id}
            assert bob.receive_json() == {"type": "CONNECTED", "roomId": room_id}

            alice.send_json({"type": "MESSAGE", "content": "hi"})

            assert alice.receive_json() == {"type": "NEW_MESSAGE", "content": "hi"}
            assert bob.receive_json() == {"type": "NEW_MESSAGE", "content": "hi"}

    def test_unknown_room_gets_error_then_close(self, client):
        with client.websocket_connect("/ws?roomId=room_missing") as ws:
            assert ws.receive_json() == {"type": "ERROR", "message": ROOM_MISSING_NOTICE}
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

    def test_close_chat_disconnects_everyone(self, client, registry):
        room_id = create_room(client)

        with client.websocket_connect(f"/ws?roomId={room_id}") as alice, \
                client.websocket_connect(f"/ws?roomId={room_id}") as bob:
            alice.receive_json()
            bob.receive_json()

            alice.send_json({"type": "CLOSE_CHAT"})

            for ws in (alice, bob):
                assert ws.receive_json() == {"type": "CHAT_CLOSED"}
                with pytest.raises(WebSocketDisconnect):
                    ws.receive_json()

        assert room_id not in registry
        with client.websocket_connect(f"/ws?roomId={room_id}") as late:
            assert late.receive_json()["type"] == "ERROR"
        assert client.get(f"/chat/{room_id}").status_code == status.HTTP_404_NOT_FOUND

    def test_leave_notifies_remaining_members(self, client):
        room_id = create_room(client)

        with client.websocket_connect(f"/ws?roomId={room_id}") as alice, \
                client.websocket_connect(f"/ws?roomId={room_id}") as bob:
            alice.receive_json()
            bob.receive_json()

            alice.send_json({"type": "LEAVE"})

            assert bob.receive_json() == {"type": "NEW_MESSAGE", "content": "A user has left the chat."}

    def test_http_send_reaches_websocket_members(self, client):
        room_id = create_room(client)

        with client.websocket_connect(f"/ws?roomId={room_id}") as alice:
            alice.receive_json()

            response = client.post("/chat/send", json={"roomId": room_id, "content": "from http"})

            assert response.status_code == status.HTTP_200_OK
            assert alice.receive_json() == {"type": "NEW_MESSAGE", "content": "from http"}

    def test_http_close_disconnects_members(self, client, registry):
        room_id = create_room(client)

        with client.websocket_connect(f"/ws?roomId={room_id}") as alice:
            alice.receive_json()

            response = client.post(f"/chat/{room_id}/close")

            assert response.json() == {"success": True, "message": "Chat room closed."}
            assert alice.receive_json() == {"type": "CHAT_CLOSED"}
            with pytest.raises(WebSocketDisconnect):
                alice.receive_json()
        assert room_id not in registry

    def test_malformed_message_is_ignored(self, client):
        room_id = create_room(client)

        with client.websocket_connect(f"/ws?roomId={room_id}") as alice:
            alice.receive_json()

            alice.send_text("not json")
            alice.send_json({"type": "TYPING"})
            alice.send_json({"type": "MESSAGE", "content": "ok"})

            assert alice.receive_json() == {"type": "NEW_MESSAGE", "content": "ok"}

    def test_binary_frames_keep_connection_open(self, client):
        room_id = create_room(client)

        with client.websocket_connect(f"/ws?roomId={room_id}") as alice, \
                client.websocket_connect(f"/ws?roomId={room_id}") as bob:
            alice.receive_json()
            bob.receive_json()

            alice.send_bytes(b'{"type": "MESSAGE", "content": "as bytes"}')
            alice.send_bytes(b"\xff\xfe not utf-8")
            alice.send_json({"type": "MESSAGE", "content": "after"})

            assert bob.receive_json() == {"type": "NEW_MESSAGE", "content": "as bytes"}
            assert bob.receive_json() == {"type": "NEW_MESSAGE", "content": "after"}
