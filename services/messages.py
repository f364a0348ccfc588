from datetime import datetime, timedelta, timezone
from typing import List, Optional

from access import AccessGate
from backend import EntityStore
from broadcast import BroadcastFabric
from constants import Settings
from logging_config import get_logger
from models import Clock, Message, new_id, utcnow
from schemas.events import NewMessageEvent
from schemas.messages import MessageRecord
from validation import validate_encryption_parameters

logger = get_logger(__name__)


class MessageService:
    def __init__(self, store: EntityStore, gate: AccessGate, fabric: BroadcastFabric,
                 settings: Settings, clock: Clock = utcnow):
        self.store = store
        self.gate = gate
        self.fabric = fabric
        self.settings = settings
        self.clock = clock

    async def send(self, room_id: Optional[str], user_id: Optional[str], encrypted_payload: Optional[str],
                   nonce: Optional[str], salt: Optional[str] = None) -> Message:
        """Store an opaque encrypted message and fan it out to the room.

        The sender's own connections do not receive the `new_message` frame.
        """
        room, user = self.gate.member(room_id, user_id)
        size = validate_encryption_parameters(encrypted_payload, nonce, salt, self.settings)

        now = self.clock()
        room.purge_expired_messages(now)
        created_at = room.next_message_time(now)
        message = Message(
            id=new_id(),
            room_id=room.id,
            user_id=user.id,
            display_name=user.display_name,
            encrypted_payload=encrypted_payload,
            nonce=nonce,
            salt=salt or None,
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=self.settings.message_retention_seconds),
        )
        room.append_message(message)
        self.store.save_room(room)
        logger.info(f"Message {message.id} ({size} bytes) sent to room {room.id} by user {user.id}")

        await self.fabric.publish(
            room.id, NewMessageEvent(message=MessageRecord.from_message(message)), exclude_user=user.id
        )
        return message

    def list(self, room_id: Optional[str], user_id: Optional[str], since: Optional[datetime] = None) -> List[Message]:
        room, _ = self.gate.member(room_id, user_id)
        if since is not None and since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        messages = room.active_messages(self.clock(), since=since)
        logger.debug(f"Listing {len(messages)} messages in room {room.id} since {since}")
        return messages

    def cleanup_expired(self) -> int:
        removed = self.store.cleanup_expired_messages()
        logger.info(f"Messages cleaned up: {removed}")
        return removed
