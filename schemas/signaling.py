from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# inbound event kinds
JOIN_ROOM = "join-room"
LEAVE_ROOM = "leave-room"
OFFER = "offer"
ANSWER = "answer"
ICE_CANDIDATE = "ice-candidate"

# outbound event kinds
CONNECTED = "connected"
ROOM_USERS = "room-users"
USER_JOINED = "user-joined"
USER_DISCONNECTED = "user-disconnected"
ERROR = "error"


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Envelope(BaseModel):
    event: str = Field(min_length=1)
    data: Any = None


class JoinRoomPayload(CamelModel):
    room_name: str = Field(alias="roomName", min_length=1)
    user_name: str = Field(alias="userName", min_length=1)


class OfferPayload(CamelModel):
    target: str = Field(min_length=1)
    offer: Any = None
    caller: Optional[str] = None


class AnswerPayload(CamelModel):
    target: str = Field(min_length=1)
    answer: Any = None


class IceCandidatePayload(CamelModel):
    target: str = Field(min_length=1)
    candidate: Any = None


class ConnectedEvent(CamelModel):
    connection_id: str = Field(alias="connectionId")


class UserJoinedEvent(CamelModel):
    user_id: str = Field(alias="userId")
    user_name: str = Field(alias="userName")


class OfferEvent(CamelModel):
    offer: Any = None
    caller: Optional[str] = None


class AnswerEvent(CamelModel):
    answer: Any = None
    answerer: str


class IceCandidateEvent(CamelModel):
    candidate: Any = None
    sender: str


class ErrorEvent(CamelModel):
    code: str
    message: str


def outbound(event: str, data: Any) -> dict:
    """Build the wire envelope for an outbound event."""
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    return {"event": event, "data": data}
