from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from broadcast import Connection
from errors import ChatError
from logging_config import get_logger
from models import utcnow
from schemas.events import SystemEvent
from schemas.rooms import RoomUser

logger = get_logger(__name__)

realtime_router = APIRouter(tags=["realtime"])


@realtime_router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    room_id: Optional[str] = Query(None, alias="roomId"),
    user_id: Optional[str] = Query(None, alias="userId"),
):
    """Real-time channel for one member of one room.

    Query parameters:
    - roomId, userId: both required; the user must already be a member (see /api/rooms/{id}/join)

    The server pushes new_message/user_joined/user_left/system frames. Any text
    frame the client sends is relayed verbatim to the other connections in the
    room and never stored.
    """
    runtime = websocket.app.state.runtime
    logger.info(f"WebSocket connection attempt for room: {room_id}, user: {user_id}")

    if not room_id or not user_id:
        logger.info("WebSocket connection rejected: missing room or user id")
        await websocket.close(code=1008, reason="Room ID and User ID required")
        return

    try:
        runtime.rooms.require_member(room_id, user_id)
    except ChatError as e:
        logger.info(f"WebSocket connection rejected for room {room_id}, user {user_id}: {e.message}")
        await websocket.close(code=1008, reason=e.message)
        return

    connection = Connection(websocket, room_id, user_id)
    await connection.accept()
    logger.info(f"WebSocket connection {connection.connection_id} accepted for room {room_id}, user {user_id}")

    try:
        room = runtime.rooms.get_info(room_id)
        await connection.send_text(SystemEvent(
            message="Connected to room",
            room_id=room_id,
            timestamp=utcnow(),
            connection_id=connection.connection_id,
            users=[RoomUser(display_name=u.display_name, joined_at=u.joined_at) for u in room.users.values()],
            user_count=room.user_count,
        ).model_dump_json(by_alias=True, exclude_none=True))

        # welcome goes first; membership is re-checked with no await before subscribing
        runtime.rooms.require_member(room_id, user_id)
        runtime.fabric.subscribe(room_id, connection)

        frame_count = 0
        while connection.is_open:
            data = await websocket.receive_text()
            frame_count += 1
            logger.debug(f"Relaying frame #{frame_count} ({len(data)} chars) from connection "
                         f"{connection.connection_id} in room {room_id}")
            await runtime.fabric.relay(room_id, data, connection)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected normally for connection {connection.connection_id} in room {room_id}")
    except ChatError as e:
        logger.info(f"Closing connection {connection.connection_id}: {e.message}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection.connection_id} in room {room_id}: {e}", exc_info=True)
    finally:
        await connection.close()
        logger.debug(f"Removed connection {connection.connection_id} from room {room_id}")
