from pydantic import BaseModel
from typing import Optional


class OnlineUser(BaseModel):
    connection_id: str
    display_name: Optional[str] = None

class RoomSummary(BaseModel):
    room_id: str
    name: str
    created_at: str
    online_users_count: int

class RoomListResponse(BaseModel):
    rooms: list[RoomSummary]

class RoomDetailsResponse(BaseModel):
    room_id: str
    name: str
    created_at: str
    online_users_count: int
    online_users: list[OnlineUser]

class HealthResponse(BaseModel):
    status: str
    rooms: int
    connections: int
