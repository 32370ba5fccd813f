from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocketDisconnect

from teamchat.crud import crud_channel
from teamchat.core.exceptions import StorageError
from teamchat.core.security import create_access_token
from teamchat.schemas.channel import ChannelCreate

from conftest import auth_headers


def receive_until(ws, event):
    """Read frames until one of type `event` arrives, returning its payload."""
    while True:
        frame = ws.receive_json()
        if frame["type"] == event:
            return frame["payload"]


@pytest.mark.parametrize("url", ["/ws", "/ws?token=garbage", f"/ws?token={create_access_token(999)}"])
def test_refused_connection_is_closed_with_policy_violation(client, url):
    with client.websocket_connect(url) as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 1008
    assert exc_info.value.reason == "Authentication error"


def test_authorization_header_is_accepted(client, make_user):
    alice = make_user("alice")
    with client.websocket_connect("/ws", headers=auth_headers(alice)) as ws:
        ready = receive_until(ws, "session_ready")
        assert ready["userId"] == alice.id


def test_two_user_chat_session(client, make_user, db):
    alice = make_user("alice")
    bob = make_user("bob")
    general = crud_channel.create_channel(db, ChannelCreate(name="general"), creator_id=alice.id)
    channel_id = general.id

    with client.websocket_connect(f"/ws?token={create_access_token(alice.id)}") as a:
        receive_until(a, "session_ready")

        a.send_json({"type": "join_channel", "payload": {"channelId": channel_id}})
        assert receive_until(a, "channel_history") == {"channelId": channel_id, "messages": []}

        a.send_json({"type": "send_message", "payload": {"channelId": channel_id, "content": "hello", "clientMessageId": "c1"}})
        message = receive_until(a, "new_message")
        assert message["content"] == "hello"
        assert message["user"] == {"id": alice.id, "username": "alice"}
        ack = receive_until(a, "message_ack")
        assert ack == {"channelId": channel_id, "messageId": message["id"], "clientMessageId": "c1"}

        # Membership comes from REST before the realtime join
        assert client.post(f"/api/v1/channels/{channel_id}/join", headers=auth_headers(bob)).status_code == 200

        with client.websocket_connect(f"/ws?token={create_access_token(bob.id)}") as b:
            receive_until(b, "session_ready")
            assert receive_until(a, "presence_update") == {"userId": bob.id, "online": True}

            online = client.get("/api/v1/presence/online", headers=auth_headers(alice)).json()
            assert online == {"onlineUsers": sorted([alice.id, bob.id])}

            b.send_json({"type": "join_channel", "payload": {"channelId": channel_id}})
            history = receive_until(b, "channel_history")
            assert [m["content"] for m in history["messages"]] == ["hello"]

            b.send_json({"type": "typing", "payload": {"channelId": channel_id, "isTyping": True}})
            assert receive_until(a, "user_typing") == {"userId": bob.id, "isTyping": True, "channelId": channel_id}

            b.send_json({"type": "ping"})
            assert receive_until(b, "pong") == {}

        # Bob's socket closed while typing: the indicator is cleared, then he goes offline
        assert receive_until(a, "user_typing") == {"userId": bob.id, "isTyping": False, "channelId": channel_id}
        offline = receive_until(a, "presence_update")
        assert offline["userId"] == bob.id
        assert offline["online"] is False
        assert "lastSeen" in offline


def test_non_json_frames_are_ignored(client, make_user):
    alice = make_user("alice")
    with client.websocket_connect(f"/ws?token={create_access_token(alice.id)}") as ws:
        receive_until(ws, "session_ready")
        ws.send_text("this is not json")
        ws.send_json({"type": "ping"})
        assert receive_until(ws, "pong") == {}


def test_binary_frames_are_ignored(client, make_user):
    alice = make_user("alice")
    with client.websocket_connect(f"/ws?token={create_access_token(alice.id)}") as ws:
        receive_until(ws, "session_ready")
        ws.send_bytes(b"\x00\x01")
        ws.send_json({"type": "ping"})
        assert receive_until(ws, "pong") == {}


def test_user_lookup_failure_closes_with_internal_error(client, realtime, make_user):
    alice = make_user("alice")
    realtime.verifier.user_store.get_user = AsyncMock(side_effect=StorageError("database is down"))

    with client.websocket_connect(f"/ws?token={create_access_token(alice.id)}") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 1011
    assert realtime.router.connection_ids() == []


def test_leaving_over_rest_stops_realtime_delivery(client, realtime, make_user, db):
    alice = make_user("alice")
    bob = make_user("bob")
    channel_id = crud_channel.create_channel(db, ChannelCreate(name="general"), creator_id=alice.id).id
    crud_channel.add_user_to_channel(db, user_id=bob.id, channel_id=channel_id)

    with client.websocket_connect(f"/ws?token={create_access_token(alice.id)}") as a, \
            client.websocket_connect(f"/ws?token={create_access_token(bob.id)}") as b:
        receive_until(a, "session_ready")
        receive_until(b, "session_ready")
        a.send_json({"type": "join_channel", "payload": channel_id})
        receive_until(a, "channel_history")
        b.send_json({"type": "join_channel", "payload": channel_id})
        receive_until(b, "channel_history")

        left = client.post(f"/api/v1/channels/{channel_id}/leave", headers=auth_headers(bob))
        assert left.status_code == 200
        assert realtime.router.channels_for(next(iter(realtime.presence.user_connections[bob.id]))) == set()

        a.send_json({"type": "send_message", "payload": {"channelId": channel_id, "content": "members only"}})
        receive_until(a, "message_ack")

        # Bob's next frame is the pong, not the message he may no longer read
        b.send_json({"type": "ping"})
        frame = b.receive_json()
        while frame["type"] == "presence_update":
            frame = b.receive_json()
        assert frame == {"type": "pong", "payload": {}}
