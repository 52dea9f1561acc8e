import uuid
from enum import Enum
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect

from errors import ConnectionClosedError, MalformedEnvelopeError
from logging_config import get_logger
from schemas.envelopes import OutboundEnvelope

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    PENDING = "pending"
    JOINED = "joined"
    CLOSED = "closed"


class Connection:
    """One participant's WebSocket into a room.

    The wrapper owns the socket until it is closed. ``room_id`` is set while the
    connection is a member of a room and cleared when it leaves or closes.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.id = uuid.uuid4().hex
        self.room_id: Optional[str] = None
        self.state = ConnectionState.PENDING

    def __repr__(self):
        return f"Connection(id={self.id[:8]}, room_id={self.room_id}, state={self.state.value})"

    @property
    def is_joined(self) -> bool:
        return self.state is ConnectionState.JOINED

    @property
    def is_closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    def mark_joined(self, room_id: str):
        if self.state is not ConnectionState.PENDING:
            raise RuntimeError(f"Cannot join room {room_id} from state {self.state.value}")
        self.room_id = room_id
        self.state = ConnectionState.JOINED
        logger.debug(f"Connection {self.id} joined room {room_id}")

    def detach(self, room_id: str):
        """Forget the room association after leaving ``room_id``."""
        if self.room_id == room_id:
            self.room_id = None
            logger.debug(f"Connection {self.id} detached from room {room_id}")

    async def accept(self):
        await self.websocket.accept()

    async def receive_text(self) -> str:
        """Wait for the next frame and return it as text.

        Binary frames are decoded as UTF-8. Raises WebSocketDisconnect when the
        peer goes away and MalformedEnvelopeError for frames that carry no text.
        """
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(code=message.get("code", 1000), reason=message.get("reason"))
        if message.get("text") is not None:
            return message["text"]
        data = message.get("bytes")
        if data is None:
            raise MalformedEnvelopeError(f"Empty {message['type']} frame")
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEnvelopeError(f"Binary frame is not UTF-8: {e}") from e

    async def send(self, envelope: OutboundEnvelope):
        if self.is_closed:
            raise ConnectionClosedError(f"Connection {self.id} is closed")
        await self.websocket.send_text(envelope.to_json())

    async def close(self, code: int = 1000, reason: Optional[str] = None):
        if self.is_closed:
            return
        self.state = ConnectionState.CLOSED
        self.room_id = None
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            # Peer already went away
            logger.debug(f"Error closing WebSocket for connection {self.id}: {e}")
        logger.debug(f"Connection {self.id} closed")
