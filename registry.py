import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from errors import AlreadyJoined, NotFound
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Room:
    id: str
    name: str
    created_at: str
    # dict keeps insertion order; values are the display names given at join
    members: Dict[str, Optional[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class RoomSnapshot:
    id: str
    name: str
    created_at: str
    members: List[str]
    user_names: Dict[str, Optional[str]]


@dataclass(frozen=True)
class JoinResult:
    room_id: str
    existing_member_ids: List[str]
    created: bool = False


@dataclass(frozen=True)
class LeaveResult:
    room_id: str
    remaining_member_ids: List[str]
    room_deleted: bool = False


class RoomRegistry:
    """In-memory room store and connection -> room membership index.

    Rooms are indexed both by id and by name; the two indexes and the
    membership index change together under a single lock, so every public
    operation is atomic with respect to the others. Nothing here does I/O.
    """

    def __init__(self):
        self._rooms_by_id: Dict[str, Room] = {}
        self._room_id_by_name: Dict[str, str] = {}
        self._membership: Dict[str, str] = {}
        self._lock = threading.Lock()

    def join(self, connection_id: str, room_name: str, user_name: Optional[str] = None) -> JoinResult:
        """Add a connection to the room called room_name, creating it if needed.

        Returns the room id and the members that were present before this join.
        Raises AlreadyJoined if the connection is tracked in any room.
        """
        with self._lock:
            current = self._membership.get(connection_id)
            if current is not None:
                raise AlreadyJoined(connection_id, current)

            created = False
            room_id = self._room_id_by_name.get(room_name)
            if room_id is None:
                room = Room(id=str(uuid.uuid4()), name=room_name, created_at=datetime.now().isoformat())
                self._rooms_by_id[room.id] = room
                self._room_id_by_name[room_name] = room.id
                created = True
            else:
                room = self._rooms_by_id[room_id]

            existing = list(room.members)
            room.members[connection_id] = user_name
            self._membership[connection_id] = room.id

        if created:
            logger.info(f"Created room {room.id} for name '{room_name}'")
        logger.debug(f"Connection {connection_id} added to room {room.id} ({len(existing) + 1} members)")
        return JoinResult(room_id=room.id, existing_member_ids=existing, created=created)

    def relay_target(self, connection_id: str) -> str:
        """Room id the connection currently belongs to. Raises NotFound."""
        with self._lock:
            room_id = self._membership.get(connection_id)
        if room_id is None:
            raise NotFound(f"Connection {connection_id} is not in a room")
        return room_id

    def leave(self, connection_id: str) -> LeaveResult:
        """Drop a connection from its room, deleting the room once it is empty.

        Raises NotFound if the connection is not tracked. Callers handling a
        disconnect should treat that as a no-op.
        """
        with self._lock:
            room_id = self._membership.pop(connection_id, None)
            if room_id is None:
                raise NotFound(f"Connection {connection_id} is not in a room")

            room = self._rooms_by_id[room_id]
            room.members.pop(connection_id, None)
            remaining = list(room.members)
            deleted = not remaining
            if deleted:
                del self._rooms_by_id[room_id]
                del self._room_id_by_name[room.name]

        if deleted:
            logger.info(f"Room {room_id} ('{room.name}') is empty, deleted")
        logger.debug(f"Connection {connection_id} removed from room {room_id} ({len(remaining)} remaining)")
        return LeaveResult(room_id=room_id, remaining_member_ids=remaining, room_deleted=deleted)

    def get_room(self, room_id: str) -> Optional[RoomSnapshot]:
        with self._lock:
            room = self._rooms_by_id.get(room_id)
            return self._snapshot(room) if room else None

    def get_room_by_name(self, room_name: str) -> Optional[RoomSnapshot]:
        with self._lock:
            room_id = self._room_id_by_name.get(room_name)
            return self._snapshot(self._rooms_by_id[room_id]) if room_id else None

    def list_rooms(self) -> List[RoomSnapshot]:
        with self._lock:
            return [self._snapshot(room) for room in self._rooms_by_id.values()]

    @property
    def room_count(self) -> int:
        return len(self._rooms_by_id)

    @property
    def connection_count(self) -> int:
        return len(self._membership)

    @staticmethod
    def _snapshot(room: Room) -> RoomSnapshot:
        return RoomSnapshot(
            id=room.id,
            name=room.name,
            created_at=room.created_at,
            members=list(room.members),
            user_names=dict(room.members),
        )


room_registry = RoomRegistry()
