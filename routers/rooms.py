from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import HealthResponse, OnlineUser, RoomDetailsResponse, RoomListResponse, RoomSummary
from registry import room_registry
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


@rooms_router.get("/rooms", response_model=RoomListResponse)
async def list_rooms():
    rooms = room_registry.list_rooms()
    return RoomListResponse(
        rooms=[
            RoomSummary(
                room_id=room.id,
                name=room.name,
                created_at=room.created_at,
                online_users_count=len(room.members),
            )
            for room in rooms
        ]
    )


@rooms_router.get("/rooms/{room_id}", response_model=RoomDetailsResponse)
async def get_room_details(room_id: str, request: Request):
    """
    Get room details including the connections currently in it.

    Returns:
    - room_id: Unique room identifier
    - name: Room name used by join-room
    - created_at: Room creation timestamp
    - online_users_count: Current number of members
    - online_users: Members in join order with their display names
    """
    client_host = request.client.host if request.client else "unknown"
    logger.info(f"Room details request for {room_id} from {client_host}")

    room = room_registry.get_room(room_id)
    if not room:
        logger.warning(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    return RoomDetailsResponse(
        room_id=room.id,
        name=room.name,
        created_at=room.created_at,
        online_users_count=len(room.members),
        online_users=[
            OnlineUser(connection_id=conn_id, display_name=room.user_names.get(conn_id))
            for conn_id in room.members
        ],
    )


@rooms_router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(
        status="ok",
        rooms=room_registry.room_count,
        connections=room_registry.connection_count,
    )
