from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, Field

from models import Room
from schemas.common import CamelModel


class CreateRoomRequest(CamelModel):
    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "roomName", "room_name"))
    password: Optional[str] = None
    display_name: Optional[str] = Field(None, validation_alias=AliasChoices("displayName", "display_name"))
    user_id: Optional[str] = Field(None, validation_alias=AliasChoices("userId", "user_id", "creatorId"))
    salt: Optional[str] = Field(None, validation_alias=AliasChoices("salt", "key"))

class JoinRoomRequest(CamelModel):
    user_id: Optional[str] = None
    password: Optional[str] = None
    display_name: Optional[str] = None

class LeaveRoomRequest(CamelModel):
    user_id: Optional[str] = None

class RoomSummary(CamelModel):
    id: str
    name: str
    salt: str
    user_count: int
    created: datetime
    expires_at: datetime
    user_id: Optional[str] = None

    @classmethod
    def from_room(cls, room: Room, user_id: Optional[str] = None) -> "RoomSummary":
        return cls(
            id=room.id,
            name=room.name,
            salt=room.salt,
            user_count=room.user_count,
            created=room.created_at,
            expires_at=room.expires_at,
            user_id=user_id,
        )

class RoomUser(CamelModel):
    display_name: str
    joined_at: datetime

class RoomInfo(CamelModel):
    id: str
    name: str
    user_count: int
    users: list[RoomUser]
    message_count: int
    created: datetime
    expires_at: datetime

    @classmethod
    def from_room(cls, room: Room) -> "RoomInfo":
        return cls(
            id=room.id,
            name=room.name,
            user_count=room.user_count,
            users=[RoomUser(display_name=u.display_name, joined_at=u.joined_at) for u in room.users.values()],
            message_count=len(room.messages),
            created=room.created_at,
            expires_at=room.expires_at,
        )

class RoomResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    room: RoomSummary

class RoomInfoResponse(CamelModel):
    success: bool = True
    room: RoomInfo

class LeaveRoomResponse(CamelModel):
    success: bool = True
    message: str
    room_deleted: bool
