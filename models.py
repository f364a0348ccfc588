from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
import uuid

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def name_key(name: str) -> str:
    """Key used for case-insensitive room name comparison."""
    return name.strip().casefold()


def _parse_ts(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class User:
    id: str
    room_id: str
    display_name: str
    joined_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "display_name": self.display_name,
            "joined_at": self.joined_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            id=data["id"],
            room_id=data["room_id"],
            display_name=data["display_name"],
            joined_at=_parse_ts(data["joined_at"]),
        )


@dataclass
class Message:
    id: str
    room_id: str
    user_id: str
    display_name: str
    encrypted_payload: str
    nonce: str
    created_at: datetime
    expires_at: datetime
    salt: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "user_id": self.user_id,
            "display_name": self.display_name,
            "encrypted_payload": self.encrypted_payload,
            "nonce": self.nonce,
            "salt": self.salt,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            id=data["id"],
            room_id=data["room_id"],
            user_id=data["user_id"],
            display_name=data["display_name"],
            encrypted_payload=data["encrypted_payload"],
            nonce=data["nonce"],
            salt=data.get("salt"),
            created_at=_parse_ts(data["created_at"]),
            expires_at=_parse_ts(data["expires_at"]),
        )


@dataclass
class Room:
    id: str
    name: str
    password: str
    salt: str
    created_at: datetime
    expires_at: datetime
    users: Dict[str, User] = field(default_factory=dict)
    messages: List[Message] = field(default_factory=list)

    @property
    def name_key(self) -> str:
        return name_key(self.name)

    @property
    def user_count(self) -> int:
        return len(self.users)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def add_user(self, user: User) -> None:
        self.users[user.id] = user

    def remove_user(self, user_id: str) -> Optional[User]:
        return self.users.pop(user_id, None)

    def next_message_time(self, now: datetime) -> datetime:
        """Creation time for the next message, strictly after the last one."""
        if self.messages and now <= self.messages[-1].created_at:
            return self.messages[-1].created_at + timedelta(microseconds=1)
        return now

    def append_message(self, message: Message) -> None:
        self.messages.append(message)

    def active_messages(self, now: datetime, since: Optional[datetime] = None) -> List[Message]:
        return [
            msg for msg in self.messages
            if not msg.is_expired(now) and (since is None or msg.created_at > since)
        ]

    def purge_expired_messages(self, now: datetime) -> int:
        before = len(self.messages)
        self.messages = [msg for msg in self.messages if not msg.is_expired(now)]
        return before - len(self.messages)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "password": self.password,
            "salt": self.salt,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "users": {user_id: user.to_dict() for user_id, user in self.users.items()},
            "messages": [msg.to_dict() for msg in self.messages],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Room":
        return cls(
            id=data["id"],
            name=data["name"],
            password=data["password"],
            salt=data["salt"],
            created_at=_parse_ts(data["created_at"]),
            expires_at=_parse_ts(data["expires_at"]),
            users={user_id: User.from_dict(u) for user_id, u in data.get("users", {}).items()},
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
        )
