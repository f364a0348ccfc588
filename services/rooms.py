import hmac
from typing import Optional

from access import AccessGate
from backend import EntityStore, generate_salt
from broadcast import BroadcastFabric
from constants import Settings
from errors import ForbiddenError, ValidationError
from logging_config import get_logger
from models import Clock, Room, User, utcnow
from schemas.events import PresenceEvent
from validation import decode_base64, require_secret, require_text

logger = get_logger(__name__)


def _passwords_match(expected: str, given: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), given.encode("utf-8"))


class RoomLifecycleManager:
    """Create/join/leave/info for rooms.

    A room lives while it has members and has not expired; the creator is
    added in the same step that creates the room, and the last member leaving
    deletes it.
    """

    def __init__(self, store: EntityStore, gate: AccessGate, fabric: BroadcastFabric,
                 settings: Settings, clock: Clock = utcnow):
        self.store = store
        self.gate = gate
        self.fabric = fabric
        self.settings = settings
        self.clock = clock

    async def create(self, name: Optional[str], password: Optional[str], creator_id: Optional[str],
                     creator_display_name: Optional[str], salt: Optional[str] = None) -> Room:
        name = require_text(name, "Room name", self.settings.room_name_max_length)
        password = require_secret(password)
        creator_id = require_text(creator_id, "User ID")
        display_name = require_text(creator_display_name, "Display name", self.settings.display_name_max_length)
        if salt:
            decode_base64(salt, "salt")
        else:
            salt = generate_salt(self.settings.salt_length_bytes)

        room = self.store.create_room(name, password, salt, ttl_seconds=self.settings.room_ttl_seconds)
        room.add_user(User(id=creator_id, room_id=room.id, display_name=display_name, joined_at=room.created_at))
        self.store.save_room(room)
        logger.info(f"Room {room.id} ('{room.name}') created by user {creator_id}")
        return room

    async def join(self, room_id: Optional[str], user_id: Optional[str], password: Optional[str],
                   display_name: Optional[str]) -> Room:
        user_id = require_text(user_id, "User ID")
        display_name = require_text(display_name, "Display name", self.settings.display_name_max_length)
        password = require_secret(password)
        room = self.gate.room(room_id)

        if not _passwords_match(room.password, password):
            logger.warning(f"Join room failed: invalid password for room {room.id} from user {user_id}")
            raise ForbiddenError("Invalid password")

        existing = room.users.get(user_id)
        if existing is not None:
            existing.display_name = display_name
            logger.info(f"User {user_id} re-joined room {room.id} as '{display_name}'")
        else:
            room.add_user(User(id=user_id, room_id=room.id, display_name=display_name, joined_at=self.clock()))
            logger.info(f"User {user_id} joined room {room.id} ({room.user_count} users)")
        self.store.save_room(room)

        await self.fabric.publish(room.id, PresenceEvent(
            type="user_joined",
            room_id=room.id,
            user_id=user_id,
            display_name=display_name,
            timestamp=self.clock(),
            user_count=room.user_count,
        ), exclude_user=user_id)
        return room

    async def leave(self, room_id: Optional[str], user_id: Optional[str]) -> bool:
        """Remove the member. Returns True when this deleted the room."""
        room, user = self.gate.member(room_id, user_id)
        room.remove_user(user.id)
        logger.info(f"User {user.id} left room {room.id} ({room.user_count} users remain)")

        if room.user_count == 0:
            self.store.delete_room(room.id)
            logger.info(f"Room {room.id} deleted: last member left, {len(room.messages)} messages discarded")
            await self.fabric.close_room(room.id, "Room closed: last member left")
            return True

        self.store.save_room(room)
        await self.fabric.publish(room.id, PresenceEvent(
            type="user_left",
            room_id=room.id,
            user_id=user.id,
            display_name=user.display_name,
            timestamp=self.clock(),
            user_count=room.user_count,
        ), exclude_user=user.id)
        await self.fabric.close_user(room.id, user.id, "Left room")
        return False

    def get_info(self, room_id: Optional[str]) -> Room:
        room = self.gate.room(room_id)
        if room.purge_expired_messages(self.clock()):
            self.store.save_room(room)
        return room

    def require_member(self, room_id: Optional[str], user_id: Optional[str]) -> User:
        if not room_id or not user_id:
            raise ValidationError("Room ID and User ID required")
        _, user = self.gate.member(room_id, user_id)
        return user
