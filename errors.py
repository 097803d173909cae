class SignalingError(Exception):
    """Base error for a single connection's request. Never fatal to the relay."""

    code = "signaling-error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class BadRequest(SignalingError):
    code = "bad-request"


class AlreadyJoined(SignalingError):
    code = "already-joined"

    def __init__(self, connection_id: str, room_id: str):
        super().__init__(f"Connection {connection_id} already joined room {room_id}")
        self.connection_id = connection_id
        self.room_id = room_id


class NotFound(SignalingError):
    code = "not-found"


class UnknownEvent(SignalingError):
    code = "unknown-event"
