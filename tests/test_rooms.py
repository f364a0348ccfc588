import pytest

from broadcast import Connection, ConnectionState
from conftest import FakeSocket, ciphertext, nonce
from errors import ConflictError, ForbiddenError, NotFoundError, ValidationError

pytestmark = pytest.mark.anyio


async def _connect(runtime, room_id, user_id):
    conn = Connection(FakeSocket(), room_id, user_id)
    await conn.accept()
    runtime.fabric.subscribe(room_id, conn)
    return conn


async def test_create_adds_creator_as_first_member(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    assert room.user_count == 1
    assert room.users["alice"].display_name == "Alice"
    assert room.salt


async def test_create_keeps_client_salt(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice", salt="c2FsdHNhbHQ=")
    assert room.salt == "c2FsdHNhbHQ="


@pytest.mark.parametrize("name,password,user_id,display_name", [
    (None, "pw", "alice", "Alice"),
    ("  ", "pw", "alice", "Alice"),
    ("Test", "", "alice", "Alice"),
    ("Test", "pw", None, "Alice"),
    ("Test", "pw", "alice", None),
    ("x" * 65, "pw", "alice", "Alice"),
])
async def test_create_requires_fields(runtime, name, password, user_id, display_name):
    with pytest.raises(ValidationError):
        await runtime.rooms.create(name, password, user_id, display_name)
    assert runtime.store.room_count() == 0


async def test_create_rejects_undecodable_salt(runtime):
    with pytest.raises(ValidationError):
        await runtime.rooms.create("Test", "pw", "alice", "Alice", salt="***")


async def test_create_rejects_duplicate_name_any_case(runtime):
    await runtime.rooms.create("Alpha", "secret1", "alice", "Alice")
    for name in ("alpha", "ALPHA"):
        with pytest.raises(ConflictError):
            await runtime.rooms.create(name, "secret1", "bob", "Bob")


async def test_join_with_wrong_password_leaves_count_unchanged(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    with pytest.raises(ForbiddenError):
        await runtime.rooms.join(room.id, "bob", "wrong1", "Bob")
    assert runtime.rooms.get_info(room.id).user_count == 1


async def test_join_increments_count_and_notifies_others(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    alice_conn = await _connect(runtime, room.id, "alice")

    joined = await runtime.rooms.join(room.id, "bob", "secret1", "Bob")

    assert joined.user_count == 2
    [event] = alice_conn.websocket.frames()
    assert event["type"] == "user_joined"
    assert event["displayName"] == "Bob"
    assert event["userCount"] == 2


async def test_rejoin_updates_display_name_only(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    await runtime.rooms.join(room.id, "bob", "secret1", "Bob")
    room = await runtime.rooms.join(room.id, "bob", "secret1", "Robert")
    assert room.user_count == 2
    assert room.users["bob"].display_name == "Robert"


async def test_joiner_does_not_see_own_join_event(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    await runtime.rooms.join(room.id, "bob", "secret1", "Bob")
    bob_conn = await _connect(runtime, room.id, "bob")
    await runtime.rooms.join(room.id, "bob", "secret1", "Bobby")
    assert bob_conn.websocket.sent == []


async def test_join_unknown_or_expired_room(runtime, clock):
    with pytest.raises(NotFoundError):
        await runtime.rooms.join("nope", "bob", "secret1", "Bob")
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    clock.advance(runtime.settings.room_ttl_seconds + 1)
    with pytest.raises(NotFoundError):
        await runtime.rooms.join(room.id, "bob", "secret1", "Bob")


async def test_leave_decrements_and_notifies(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    await runtime.rooms.join(room.id, "bob", "secret1", "Bob")
    alice_conn = await _connect(runtime, room.id, "alice")

    deleted = await runtime.rooms.leave(room.id, "bob")

    assert deleted is False
    assert runtime.rooms.get_info(room.id).user_count == 1
    [event] = alice_conn.websocket.frames()
    assert event["type"] == "user_left"
    assert event["displayName"] == "Bob"
    assert event["userCount"] == 1


async def test_leaver_connections_are_closed_and_stop_receiving(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    await runtime.rooms.join(room.id, "bob", "secret1", "Bob")
    await runtime.rooms.join(room.id, "carol", "secret1", "Carol")
    bob_conn = await _connect(runtime, room.id, "bob")
    bob_tab = await _connect(runtime, room.id, "bob")
    carol_conn = await _connect(runtime, room.id, "carol")

    await runtime.rooms.leave(room.id, "bob")
    await runtime.messages.send(room.id, "alice", ciphertext(), nonce())

    for conn in (bob_conn, bob_tab):
        assert conn.state == ConnectionState.CLOSED
        assert conn.websocket.closed == (1000, "Left room")
        assert [frame["type"] for frame in conn.websocket.frames()] == ["system"]
    assert carol_conn.is_open
    assert [frame["type"] for frame in carol_conn.websocket.frames()] == ["user_left", "new_message"]
    assert runtime.fabric.connection_count(room.id) == 1


async def test_last_member_leaving_deletes_room_and_messages(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    await runtime.messages.send(room.id, "alice", ciphertext(), nonce())
    alice_conn = await _connect(runtime, room.id, "alice")

    deleted = await runtime.rooms.leave(room.id, "alice")

    assert deleted is True
    with pytest.raises(NotFoundError):
        runtime.rooms.get_info(room.id)
    assert runtime.store.room_count() == 0
    assert alice_conn.websocket.closed is not None
    assert runtime.fabric.connection_count(room.id) == 0
    # the name is free again
    await runtime.rooms.create("test", "secret1", "carol", "Carol")


async def test_leave_requires_membership(runtime):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    with pytest.raises(ForbiddenError):
        await runtime.rooms.leave(room.id, "mallory")
    with pytest.raises(ValidationError):
        await runtime.rooms.leave(room.id, None)


async def test_get_info_counts_only_active_messages(runtime, clock):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    await runtime.messages.send(room.id, "alice", ciphertext(), nonce())
    clock.advance(runtime.settings.message_retention_seconds + 1)
    await runtime.messages.send(room.id, "alice", ciphertext(), nonce())
    info = runtime.rooms.get_info(room.id)
    assert len(info.messages) == 1
