from typing import Optional, Tuple

from backend import EntityStore
from errors import ForbiddenError, NotFoundError, ValidationError
from logging_config import get_logger
from models import Room, User

logger = get_logger(__name__)


class AccessGate:
    """Checkpoint every room- and message-scoped operation passes through.

    Only side effect is the store's lazy eviction of expired rooms.
    """

    def __init__(self, store: EntityStore):
        self.store = store

    def room(self, room_id: Optional[str]) -> Room:
        if not room_id:
            raise ValidationError("Room ID required")
        try:
            return self.store.get_room(room_id)
        except NotFoundError as e:
            logger.warning(f"Access denied to room {room_id}: {e.reason}")
            raise

    def member(self, room_id: Optional[str], user_id: Optional[str]) -> Tuple[Room, User]:
        room = self.room(room_id)
        if not user_id:
            raise ValidationError("User ID required")
        user = room.users.get(user_id)
        if user is None:
            logger.warning(f"Access denied: user {user_id} is not in room {room_id}")
            raise ForbiddenError("User not in room")
        return room, user
