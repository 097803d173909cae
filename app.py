from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from routers.rooms import rooms_router
from registry import room_registry
from connections import connection_manager
from dispatcher import RelayDispatcher
from constants import CORS_ALLOW_ORIGINS, LOG_FILE, LOG_LEVEL, WS_PATH
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

app = FastAPI(title="Signaling relay")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)

# One dispatcher for the whole process: room state lives only in memory
dispatcher = RelayDispatcher(room_registry, connection_manager)

logger.info("FastAPI application initialized")


@app.websocket(WS_PATH)
async def websocket_endpoint(websocket: WebSocket):
    """Signaling channel. Every frame is a JSON {"event": ..., "data": ...} envelope."""
    connection_id = await connection_manager.connect(websocket)
    logger.info(f"WebSocket connection accepted: {connection_id}")

    try:
        dispatcher.on_connect(connection_id)
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            # binary frames go through the same parser as text frames
            data = message.get("text")
            if data is None:
                data = message.get("bytes") or b""
            dispatcher.handle_text(connection_id, data)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket disconnected normally for connection {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        # membership is released before the transport forgets the connection
        dispatcher.on_disconnect(connection_id)
        await connection_manager.disconnect(connection_id)
        try:
            await websocket.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket {connection_id}: {e}")
