from datetime import datetime
from typing import Literal, Optional

from schemas.common import CamelModel
from schemas.messages import MessageRecord
from schemas.rooms import RoomUser

# Frames pushed to real-time connections. Every frame carries a `type` tag.

class NewMessageEvent(CamelModel):
    type: Literal["new_message"] = "new_message"
    message: MessageRecord

class PresenceEvent(CamelModel):
    type: Literal["user_joined", "user_left"]
    room_id: str
    user_id: str
    display_name: str
    timestamp: datetime
    user_count: int

class SystemEvent(CamelModel):
    type: Literal["system"] = "system"
    message: str
    room_id: str
    timestamp: datetime
    connection_id: Optional[str] = None
    users: Optional[list[RoomUser]] = None
    user_count: Optional[int] = None
