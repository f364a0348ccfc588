import base64
import json
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

import redis

from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, STORE_BACKEND_REDIS, Settings
from errors import DuplicateNameError, NotFoundError
from logging_config import get_logger
from models import Clock, Room, name_key, new_id, utcnow
from redis_keys import REDIS_META_KEY, REDIS_META_PATTERN, REDIS_NAME_KEY

logger = get_logger(__name__)


@dataclass
class SweepResult:
    rooms_removed: int = 0
    messages_removed: int = 0
    removed_room_ids: List[str] = field(default_factory=list)
    failed_room_ids: List[str] = field(default_factory=list)


class EntityStore:
    """Registry of rooms, each owning its members and messages.

    Subclasses provide the raw primitives (_put, _fetch, _remove, _room_ids,
    _lookup_name); expiry, eviction and name uniqueness live here so every
    backend enforces them the same way.
    """

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock

    # -- primitives -------------------------------------------------------

    def _put(self, room: Room) -> None:
        raise NotImplementedError

    def _fetch(self, room_id: str) -> Optional[Room]:
        raise NotImplementedError

    def _remove(self, room: Room) -> None:
        raise NotImplementedError

    def _room_ids(self) -> Iterable[str]:
        raise NotImplementedError

    def _lookup_name(self, key: str) -> Optional[str]:
        raise NotImplementedError

    # -- contract ---------------------------------------------------------

    def create_room(self, name: str, password: str, salt: str, ttl_seconds: int) -> Room:
        now = self.clock()
        key = name_key(name)
        existing_id = self._lookup_name(key)
        if existing_id:
            existing = self._fetch(existing_id)
            if existing is not None and not existing.is_expired(now):
                logger.warning(f"Room name '{name}' already used by active room {existing_id}")
                raise DuplicateNameError()
            if existing is not None:
                logger.info(f"Evicting expired room {existing_id} that held name '{name}'")
                self._remove(existing)

        room = Room(
            id=new_id(),
            name=name.strip(),
            password=password,
            salt=salt,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        self._put(room)
        logger.info(f"Room {room.id} created, expires at {room.expires_at.isoformat()}")
        return room

    def get_room(self, room_id: str) -> Room:
        room = self._fetch(room_id)
        if room is None:
            logger.debug(f"Room {room_id} not found")
            raise NotFoundError("Room not found")
        if room.is_expired(self.clock()):
            logger.info(f"Room {room_id} expired at {room.expires_at.isoformat()}, evicting")
            self._remove(room)
            raise NotFoundError("Room not found", reason="expired")
        return room

    def save_room(self, room: Room) -> None:
        self._put(room)

    def delete_room(self, room_id: str) -> bool:
        room = self._fetch(room_id)
        if room is None:
            return False
        self._remove(room)
        logger.info(f"Room {room_id} deleted")
        return True

    def has_room(self, room_id: str) -> bool:
        room = self._fetch(room_id)
        return room is not None and not room.is_expired(self.clock())

    def room_count(self) -> int:
        return sum(1 for _ in self._room_ids())

    def sweep_expired(self) -> SweepResult:
        result = SweepResult()
        now = self.clock()
        for room_id in list(self._room_ids()):
            try:
                room = self._fetch(room_id)
                if room is None:
                    continue
                if room.is_expired(now):
                    self._remove(room)
                    result.rooms_removed += 1
                    result.removed_room_ids.append(room_id)
                    continue
                purged = room.purge_expired_messages(now)
                if purged:
                    self._put(room)
                    result.messages_removed += purged
            except Exception as e:
                logger.error(f"Sweep failed for room {room_id}: {e}", exc_info=True)
                result.failed_room_ids.append(room_id)
        if result.rooms_removed or result.messages_removed:
            logger.info(f"Sweep removed {result.rooms_removed} rooms and {result.messages_removed} messages")
        return result

    def cleanup_expired_messages(self) -> int:
        removed = 0
        now = self.clock()
        for room_id in list(self._room_ids()):
            try:
                room = self._fetch(room_id)
                if room is None or room.is_expired(now):
                    continue
                purged = room.purge_expired_messages(now)
                if purged:
                    self._put(room)
                    removed += purged
            except Exception as e:
                logger.error(f"Message cleanup failed for room {room_id}: {e}", exc_info=True)
        return removed


class MemoryBackend(EntityStore):
    def __init__(self, clock: Clock = utcnow):
        super().__init__(clock)
        self._rooms: Dict[str, Room] = {}
        self._names: Dict[str, str] = {}
        logger.info("Initializing in-memory room store")

    def _put(self, room: Room) -> None:
        self._rooms[room.id] = room
        self._names[room.name_key] = room.id

    def _fetch(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def _remove(self, room: Room) -> None:
        self._rooms.pop(room.id, None)
        if self._names.get(room.name_key) == room.id:
            del self._names[room.name_key]

    def _room_ids(self) -> Iterable[str]:
        return self._rooms.keys()

    def _lookup_name(self, key: str) -> Optional[str]:
        return self._names.get(key)


class RedisBackend(EntityStore):
    """Rooms stored as JSON documents with Redis-side expiry mirroring the room TTL."""

    def __init__(self, client: Optional[redis.Redis] = None, clock: Clock = utcnow):
        super().__init__(clock)
        if client is None:
            client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True)
        self.redis_client = client
        logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
        try:
            self.redis_client.ping()
        except Exception as e:
            logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
            raise

    def _put(self, room: Room) -> None:
        meta_key = REDIS_META_KEY.format(slug=room.id)
        name_key_ = REDIS_NAME_KEY.format(name=room.name_key)
        pipe = self.redis_client.pipeline()
        pipe.set(meta_key, json.dumps(room.to_dict()))
        pipe.expireat(meta_key, room.expires_at)
        pipe.set(name_key_, room.id)
        pipe.expireat(name_key_, room.expires_at)
        pipe.execute()
        logger.debug(f"Stored room {room.id}: {room.user_count} users, {len(room.messages)} messages")

    def _fetch(self, room_id: str) -> Optional[Room]:
        raw = self.redis_client.get(REDIS_META_KEY.format(slug=room_id))
        if not raw:
            return None
        return Room.from_dict(json.loads(raw))

    def _remove(self, room: Room) -> None:
        name_key_ = REDIS_NAME_KEY.format(name=room.name_key)
        if self.redis_client.get(name_key_) == room.id:
            self.redis_client.delete(name_key_)
        self.redis_client.delete(REDIS_META_KEY.format(slug=room.id))

    def _room_ids(self) -> Iterable[str]:
        prefix = REDIS_META_KEY.format(slug="")
        return [key[len(prefix):] for key in self.redis_client.scan_iter(match=REDIS_META_PATTERN)]

    def _lookup_name(self, key: str) -> Optional[str]:
        return self.redis_client.get(REDIS_NAME_KEY.format(name=key))


def generate_salt(length: int) -> str:
    return base64.b64encode(secrets.token_bytes(length)).decode("ascii")


def build_backend(settings: Settings, clock: Clock = utcnow) -> EntityStore:
    if settings.store_backend == STORE_BACKEND_REDIS:
        return RedisBackend(clock=clock)
    return MemoryBackend(clock=clock)
