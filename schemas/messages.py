from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, Field

from models import Message
from schemas.common import CamelModel


class SendMessageRequest(CamelModel):
    user_id: Optional[str] = None
    encrypted_payload: Optional[str] = Field(
        None, validation_alias=AliasChoices("encryptedPayload", "encrypted_payload", "encryptedMessage")
    )
    nonce: Optional[str] = Field(None, validation_alias=AliasChoices("nonce", "iv"))
    salt: Optional[str] = None

class MessageRecord(CamelModel):
    id: str
    room_id: str
    user_id: str
    display_name: str
    encrypted_payload: str
    nonce: str
    salt: Optional[str] = None
    timestamp: datetime
    expires_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> "MessageRecord":
        return cls(
            id=message.id,
            room_id=message.room_id,
            user_id=message.user_id,
            display_name=message.display_name,
            encrypted_payload=message.encrypted_payload,
            nonce=message.nonce,
            salt=message.salt,
            timestamp=message.created_at,
            expires_at=message.expires_at,
        )

class MessageReceipt(CamelModel):
    id: str
    timestamp: datetime

class SendMessageResponse(CamelModel):
    success: bool = True
    message: MessageReceipt

class MessageListResponse(CamelModel):
    success: bool = True
    messages: list[MessageRecord]

class CleanupResponse(CamelModel):
    success: bool = True
    removed_count: int
    message: str
