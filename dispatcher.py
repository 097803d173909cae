import json
from typing import Any, Callable, Dict, Type, Union

from pydantic import BaseModel, ValidationError

from errors import BadRequest, NotFound, SignalingError, UnknownEvent
from logging_config import get_logger
from registry import RoomRegistry
from schemas import signaling
from schemas.signaling import (
    AnswerEvent,
    AnswerPayload,
    ConnectedEvent,
    Envelope,
    ErrorEvent,
    IceCandidateEvent,
    IceCandidatePayload,
    JoinRoomPayload,
    OfferEvent,
    OfferPayload,
    UserJoinedEvent,
    outbound,
)

logger = get_logger(__name__)


def _parse(model: Type[BaseModel], data: Any) -> Any:
    if not isinstance(data, dict):
        raise BadRequest(f"Payload must be an object, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise BadRequest(f"Invalid or missing fields: {fields}") from e


class RelayDispatcher:
    """Routes inbound signaling events to the registry and fans out the results.

    The transport only needs send(connection_id, message) -> bool and
    send_many(connection_ids, message). Handlers never await, so each one
    applies its registry operation and enqueues its notifications as a
    single step on the event loop.
    """

    def __init__(self, registry: RoomRegistry, transport):
        self.registry = registry
        self.transport = transport
        self._handlers: Dict[str, Callable[[str, Any], None]] = {
            signaling.JOIN_ROOM: self.join_room,
            signaling.LEAVE_ROOM: self.leave_room,
            signaling.OFFER: self.offer,
            signaling.ANSWER: self.answer,
            signaling.ICE_CANDIDATE: self.ice_candidate,
        }

    def on_connect(self, connection_id: str):
        self.transport.send(connection_id, outbound(signaling.CONNECTED, ConnectedEvent(connection_id=connection_id)))

    def handle_text(self, connection_id: str, raw: Union[str, bytes]):
        """Entry point for one frame, text or binary. Errors are reported to the sender only."""
        try:
            try:
                message = json.loads(raw)
            except (ValueError, RecursionError) as e:
                # ValueError covers JSONDecodeError and undecodable bytes
                raise BadRequest("Message is not valid JSON") from e
            self.dispatch(connection_id, message)
        except SignalingError as e:
            logger.warning(f"Rejected message from {connection_id}: [{e.code}] {e.message}")
            self.transport.send(connection_id, outbound(signaling.ERROR, ErrorEvent(code=e.code, message=e.message)))

    def dispatch(self, connection_id: str, message: Any):
        envelope = _parse(Envelope, message)
        handler = self._handlers.get(envelope.event)
        if handler is None:
            raise UnknownEvent(f"Unknown event '{envelope.event}'")
        handler(connection_id, envelope.data)

    def join_room(self, connection_id: str, data: Any):
        payload = _parse(JoinRoomPayload, data)
        result = self.registry.join(connection_id, payload.room_name, payload.user_name)

        self.transport.send(connection_id, outbound(signaling.ROOM_USERS, result.existing_member_ids))
        self.transport.send_many(
            result.existing_member_ids,
            outbound(signaling.USER_JOINED, UserJoinedEvent(user_id=connection_id, user_name=payload.user_name)),
        )
        logger.info(f"User {payload.user_name} ({connection_id}) joined room {payload.room_name} [{result.room_id}]")

    def leave_room(self, connection_id: str, data: Any = None):
        self._leave(connection_id)

    def offer(self, connection_id: str, data: Any):
        payload = _parse(OfferPayload, data)
        self._relay(connection_id, payload.target, signaling.OFFER, OfferEvent(offer=payload.offer, caller=payload.caller))

    def answer(self, connection_id: str, data: Any):
        payload = _parse(AnswerPayload, data)
        self._relay(connection_id, payload.target, signaling.ANSWER, AnswerEvent(answer=payload.answer, answerer=connection_id))

    def ice_candidate(self, connection_id: str, data: Any):
        payload = _parse(IceCandidatePayload, data)
        self._relay(
            connection_id,
            payload.target,
            signaling.ICE_CANDIDATE,
            IceCandidateEvent(candidate=payload.candidate, sender=connection_id),
        )

    def on_disconnect(self, connection_id: str):
        self._leave(connection_id)
        logger.info(f"User {connection_id} disconnected")

    def _relay(self, sender: str, target: str, event: str, body: BaseModel):
        # target is not checked against the sender's room
        delivered = self.transport.send(target, outbound(event, body))
        if delivered:
            logger.debug(f"Relayed '{event}' from {sender} to {target}")
        else:
            logger.debug(f"Dropped '{event}' from {sender}: target {target} not connected")

    def _leave(self, connection_id: str):
        try:
            result = self.registry.leave(connection_id)
        except NotFound:
            return
        if result.remaining_member_ids:
            self.transport.send_many(result.remaining_member_ids, outbound(signaling.USER_DISCONNECTED, connection_id))
        logger.info(f"User {connection_id} left room {result.room_id}")
