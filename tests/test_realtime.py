from types import SimpleNamespace

import pytest
from fastapi import WebSocketDisconnect

from conftest import FakeSocket
from routers.realtime import websocket_endpoint

pytestmark = pytest.mark.anyio


class ScriptedSocket(FakeSocket):
    """Records how many connections the room had at each send, then hangs up."""

    def __init__(self, runtime, room_id):
        super().__init__()
        self.app = SimpleNamespace(state=SimpleNamespace(runtime=runtime))
        self.runtime = runtime
        self.room_id = room_id
        self.subscribed_at_send = []

    async def send_text(self, text):
        self.subscribed_at_send.append(self.runtime.fabric.connection_count(self.room_id))
        await super().send_text(text)

    async def receive_text(self):
        assert self.runtime.fabric.connection_count(self.room_id) == 1
        raise WebSocketDisconnect(code=1000)


async def test_welcome_is_sent_before_subscribing(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    socket = ScriptedSocket(runtime, room.id)

    await websocket_endpoint(socket, room_id=room.id, user_id="alice")

    [welcome] = socket.frames()
    assert welcome["type"] == "system"
    assert welcome["userCount"] == 1
    assert socket.subscribed_at_send == [0]
    assert runtime.fabric.connection_count(room.id) == 0


async def test_non_member_is_closed_before_accept(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    socket = ScriptedSocket(runtime, room.id)

    await websocket_endpoint(socket, room_id=room.id, user_id="mallory")

    assert socket.accepted is False
    assert socket.closed == (1008, "User not in room")
    assert socket.sent == []
