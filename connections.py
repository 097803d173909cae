import asyncio
import json
import uuid
from typing import Dict, Iterable, Optional

from fastapi import WebSocket

from logging_config import get_logger

logger = get_logger(__name__)


class Connection:
    def __init__(self, connection_id: str, websocket: WebSocket):
        self.connection_id = connection_id
        self.websocket = websocket
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.writer_task: Optional[asyncio.Task] = None


class ConnectionManager:
    """Tracks open WebSocket connections by connection id.

    send() only enqueues: each connection has its own writer task draining an
    outbox, so callers never await inside their handler and the order of
    enqueued messages is the order every peer observes. Sending to an
    unknown or closed connection is a no-op.
    """

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = str(uuid.uuid4())
        connection = Connection(connection_id, websocket)
        connection.writer_task = asyncio.create_task(self._writer(connection))
        self._connections[connection_id] = connection
        logger.debug(f"Connection {connection_id} registered (open connections: {len(self._connections)})")
        return connection_id

    async def disconnect(self, connection_id: str):
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return
        if connection.writer_task and not connection.writer_task.done():
            connection.writer_task.cancel()
            try:
                await connection.writer_task
            except asyncio.CancelledError:
                pass
        logger.debug(f"Connection {connection_id} unregistered (open connections: {len(self._connections)})")

    def send(self, connection_id: str, message: dict) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.debug(f"Dropping '{message.get('event')}' for unknown connection {connection_id}")
            return False
        connection.outbox.put_nowait(message)
        return True

    def send_many(self, connection_ids: Iterable[str], message: dict) -> int:
        return sum(1 for connection_id in connection_ids if self.send(connection_id, message))

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def __len__(self):
        return len(self._connections)

    async def _writer(self, connection: Connection):
        while True:
            message = await connection.outbox.get()
            try:
                await connection.websocket.send_text(json.dumps(message))
            except Exception as e:
                # peer went away mid-send; stop accepting messages for it,
                # the receive loop releases its room membership
                logger.warning(f"Error sending to connection {connection.connection_id}: {e}")
                if self._connections.get(connection.connection_id) is connection:
                    del self._connections[connection.connection_id]
                return


connection_manager = ConnectionManager()
