from fastapi import Depends, FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
from routers.rooms import rooms_router
from backend import RoomRegistry, get_registry
from connection import Connection
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, ROOM_MISSING_NOTICE
from dispatcher import dispatch
from errors import MalformedEnvelopeError, RoomNotFoundError
from schemas.envelopes import ErrorEnvelope, parse_envelope
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)


@app.exception_handler(RoomNotFoundError)
async def room_not_found_handler(request: Request, exc: RoomNotFoundError):
    logger.warning(f"Room {exc.room_id} not found for {request.method} {request.url.path}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


logger.info("FastAPI application initialized")


async def run_session(connection: Connection, room_id: Optional[str], registry: RoomRegistry):
    """Drive one accepted connection from join to close.

    A missing room gets an ERROR envelope and the socket is closed. Otherwise
    inbound envelopes are dispatched until the channel closes or the room is
    closed; a connection still in its room at that point leaves it.
    """
    room = await registry.get(room_id) if room_id else None
    if room is None or not await room.join(connection):
        logger.info(f"WebSocket connection rejected: Room {room_id} not found")
        try:
            await connection.send(ErrorEnvelope(message=ROOM_MISSING_NOTICE))
        except Exception as e:
            logger.debug(f"Could not send ERROR to connection {connection.id}: {e}")
        await connection.close()
        return

    message_count = 0
    try:
        while not connection.is_closed:
            try:
                data = await connection.receive_text()
                message_count += 1
                logger.debug(f"Received message #{message_count} from connection {connection.id} in room {room_id}")
                envelope = parse_envelope(data)
            except WebSocketDisconnect:
                logger.info(f"WebSocket disconnected for connection {connection.id} in room {room_id}")
                break
            except MalformedEnvelopeError as e:
                logger.warning(f"Malformed message from connection {connection.id} in room {room_id}: {e}")
                continue

            await dispatch(registry, connection, envelope)
    except Exception as e:
        if not connection.is_closed:
            logger.error(f"WebSocket error for connection {connection.id} in room {room_id}: {e}", exc_info=True)
    finally:
        # Still a member: the channel dropped without a LEAVE or a room close
        if connection.room_id is not None:
            room = await registry.get(connection.room_id)
            if room is not None:
                await room.leave(connection)
        await connection.close()
        logger.info(f"Connection {connection.id} finished after {message_count} messages")


@app.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    room_id: Optional[str] = Query(None, alias="roomId"),
    registry: RoomRegistry = Depends(get_registry),
):
    """WebSocket endpoint for joining a room.

    Query parameters:
    - roomId: id returned by POST /dispute
    """
    logger.info(f"WebSocket connection attempt for room: {room_id}")
    connection = Connection(websocket)
    await connection.accept()
    await run_session(connection, room_id, registry)
