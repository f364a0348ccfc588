from fastapi import APIRouter, Request

from dependencies import RuntimeDep
from logging_config import get_logger
from schemas.rooms import (
    CreateRoomRequest,
    JoinRoomRequest,
    LeaveRoomRequest,
    LeaveRoomResponse,
    RoomInfo,
    RoomInfoResponse,
    RoomResponse,
    RoomSummary,
)

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api/rooms", tags=["rooms"])


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@rooms_router.post("/create", status_code=201, response_model=RoomResponse)
async def create_room(body: CreateRoomRequest, request: Request, runtime: RuntimeDep):
    # Body: { "name": "Alpha", "password": "secret", "displayName": "Alice", "userId": "...", "salt": "optional-b64" }
    # Response 201: { "success": true, "room": { "id", "name", "salt", "userCount", "created", "expiresAt", "userId" } }
    logger.info(f"Room creation request from {_client_host(request)}, name: {body.name}")
    room = await runtime.rooms.create(body.name, body.password, body.user_id, body.display_name, salt=body.salt)
    return RoomResponse(message="Room created successfully", room=RoomSummary.from_room(room, user_id=body.user_id))


@rooms_router.post("/{room_id}/join", response_model=RoomResponse)
async def join_room(room_id: str, body: JoinRoomRequest, request: Request, runtime: RuntimeDep):
    logger.info(f"Join room request for {room_id} from {_client_host(request)}, display_name: {body.display_name}")
    room = await runtime.rooms.join(room_id, body.user_id, body.password, body.display_name)
    return RoomResponse(message="Joined room successfully", room=RoomSummary.from_room(room, user_id=body.user_id))


@rooms_router.get("/{room_id}", response_model=RoomInfoResponse)
async def get_room_info(room_id: str, runtime: RuntimeDep):
    """
    Room details: live member display names, user count, active message
    count, creation and expiry timestamps.
    """
    room = runtime.rooms.get_info(room_id)
    return RoomInfoResponse(room=RoomInfo.from_room(room))


@rooms_router.post("/{room_id}/leave", response_model=LeaveRoomResponse)
async def leave_room(room_id: str, body: LeaveRoomRequest, request: Request, runtime: RuntimeDep):
    logger.info(f"Leave room request for {room_id} from {_client_host(request)}, user: {body.user_id}")
    deleted = await runtime.rooms.leave(room_id, body.user_id)
    return LeaveRoomResponse(message="Left room successfully", room_deleted=deleted)
