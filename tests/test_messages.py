import pytest

from broadcast import Connection
from conftest import FakeSocket, b64, ciphertext, nonce
from errors import (
    EncryptionParameterError,
    ForbiddenError,
    NotFoundError,
    PayloadTooLargeError,
    ValidationError,
)

pytestmark = pytest.mark.anyio


@pytest.fixture
async def room(runtime, anyio_backend):
    room = await runtime.rooms.create("Test", "secret1", "alice", "Alice")
    await runtime.rooms.join(room.id, "bob", "secret1", "Bob")
    return room


async def _connect(runtime, room_id, user_id):
    conn = Connection(FakeSocket(), room_id, user_id)
    await conn.accept()
    runtime.fabric.subscribe(room_id, conn)
    return conn


async def test_send_stores_message_with_author_and_expiry(runtime, room, clock):
    message = await runtime.messages.send(room.id, "alice", ciphertext(), nonce())

    assert message.display_name == "Alice"
    assert message.created_at == clock.now
    assert (message.expires_at - message.created_at).total_seconds() == runtime.settings.message_retention_seconds
    assert runtime.messages.list(room.id, "bob") == [message]


async def test_send_broadcasts_to_others_but_not_sender(runtime, room):
    alice = await _connect(runtime, room.id, "alice")
    bob = await _connect(runtime, room.id, "bob")

    message = await runtime.messages.send(room.id, "alice", ciphertext(), nonce())

    assert alice.websocket.sent == []
    [event] = bob.websocket.frames()
    assert event["type"] == "new_message"
    assert event["message"]["id"] == message.id
    assert event["message"]["displayName"] == "Alice"
    assert event["message"]["encryptedPayload"] == message.encrypted_payload
    assert event["message"]["nonce"] == message.nonce


async def test_display_name_is_captured_at_send_time(runtime, room):
    await runtime.messages.send(room.id, "bob", ciphertext(), nonce())
    await runtime.rooms.join(room.id, "bob", "secret1", "Robert")
    [message] = runtime.messages.list(room.id, "alice")
    assert message.display_name == "Bob"


async def test_messages_listed_in_arrival_order_and_since_filter(runtime, room):
    a = await runtime.messages.send(room.id, "alice", ciphertext(), nonce())
    b = await runtime.messages.send(room.id, "bob", ciphertext(), nonce())
    c = await runtime.messages.send(room.id, "alice", ciphertext(), nonce())

    assert [m.id for m in runtime.messages.list(room.id, "alice")] == [a.id, b.id, c.id]
    assert [m.id for m in runtime.messages.list(room.id, "alice", since=a.created_at)] == [b.id, c.id]
    # naive timestamps are read as UTC
    naive = b.created_at.replace(tzinfo=None)
    assert [m.id for m in runtime.messages.list(room.id, "alice", since=naive)] == [c.id]


async def test_expired_messages_excluded_and_cleaned_up(runtime, room, clock):
    old = await runtime.messages.send(room.id, "alice", ciphertext(), nonce())
    clock.advance(runtime.settings.message_retention_seconds + 1)
    fresh = await runtime.messages.send(room.id, "alice", ciphertext(), nonce())

    assert runtime.messages.list(room.id, "bob") == [fresh]
    assert runtime.messages.list(room.id, "bob", since=old.created_at) == [fresh]

    clock.advance(runtime.settings.message_retention_seconds + 1)
    assert runtime.messages.list(room.id, "bob") == []
    assert runtime.messages.cleanup_expired() == 1
    assert runtime.messages.cleanup_expired() == 0


async def test_send_requires_membership(runtime, room):
    with pytest.raises(ForbiddenError):
        await runtime.messages.send(room.id, "mallory", ciphertext(), nonce())
    with pytest.raises(NotFoundError):
        await runtime.messages.send("nope", "alice", ciphertext(), nonce())


async def test_list_requires_membership(runtime, room):
    with pytest.raises(ForbiddenError):
        runtime.messages.list(room.id, "mallory")
    with pytest.raises(ValidationError):
        runtime.messages.list(room.id, None)


@pytest.mark.parametrize("payload,iv,error", [
    (None, nonce(), ValidationError),
    (ciphertext(), "", ValidationError),
    ("not base64!", nonce(), EncryptionParameterError),
    (ciphertext(), "%%%", EncryptionParameterError),
    (ciphertext(), nonce(24), EncryptionParameterError),
    (b64(8), nonce(), EncryptionParameterError),
    (b64(10001), nonce(), PayloadTooLargeError),
    (b64(50000), nonce(), PayloadTooLargeError),
])
async def test_send_validates_encryption_parameters(runtime, room, payload, iv, error):
    with pytest.raises(error):
        await runtime.messages.send(room.id, "alice", payload, iv)
    assert runtime.messages.list(room.id, "alice") == []


async def test_send_accepts_payload_at_size_ceiling(runtime, room):
    await runtime.messages.send(room.id, "alice", b64(10000), nonce(), salt=b64(16))
    [message] = runtime.messages.list(room.id, "alice")
    assert message.salt == b64(16)


async def test_send_rejects_bad_salt(runtime, room):
    with pytest.raises(EncryptionParameterError):
        await runtime.messages.send(room.id, "alice", ciphertext(), nonce(), salt="?")
