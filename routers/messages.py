from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query

from dependencies import RuntimeDep
from logging_config import get_logger
from schemas.messages import (
    CleanupResponse,
    MessageListResponse,
    MessageReceipt,
    MessageRecord,
    SendMessageRequest,
    SendMessageResponse,
)

logger = get_logger(__name__)

messages_router = APIRouter(prefix="/api/messages", tags=["messages"])


@messages_router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_expired_messages(runtime: RuntimeDep):
    removed = runtime.messages.cleanup_expired()
    return CleanupResponse(removed_count=removed, message=f"Cleaned up {removed} expired messages")


@messages_router.post("/{room_id}/send", status_code=201, response_model=SendMessageResponse)
async def send_message(room_id: str, body: SendMessageRequest, runtime: RuntimeDep):
    message = await runtime.messages.send(room_id, body.user_id, body.encrypted_payload, body.nonce, salt=body.salt)
    return SendMessageResponse(message=MessageReceipt(id=message.id, timestamp=message.created_at))


@messages_router.get("/{room_id}", response_model=MessageListResponse)
async def list_messages(
    room_id: str,
    runtime: RuntimeDep,
    user_id: Optional[str] = Query(None, alias="userId"),
    since: Optional[datetime] = Query(None, description="Only messages created strictly after this ISO timestamp"),
):
    messages = runtime.messages.list(room_id, user_id, since=since)
    return MessageListResponse(messages=[MessageRecord.from_message(m) for m in messages])
