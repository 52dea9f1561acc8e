from typing import TYPE_CHECKING

from logging_config import get_logger
from schemas.envelopes import EnvelopeType, InboundEnvelope

if TYPE_CHECKING:
    from backend import RoomRegistry
    from connection import Connection

logger = get_logger(__name__)


async def dispatch(registry: "RoomRegistry", connection: "Connection", envelope: InboundEnvelope):
    """Route one inbound envelope from ``connection`` to its room."""
    room_id = connection.room_id
    if room_id is None:
        logger.debug(f"Ignoring {envelope.type} from connection {connection.id}: not in a room")
        return

    kind = envelope.kind
    if kind is None:
        logger.warning(f"Unknown message type from connection {connection.id}: {envelope.type!r}")
        return
    if kind in (EnvelopeType.CONNECTED, EnvelopeType.ERROR, EnvelopeType.NEW_MESSAGE, EnvelopeType.CHAT_CLOSED):
        logger.warning(f"Ignoring server-only message type {kind.value} from connection {connection.id}")
        return

    room = await registry.get(room_id)
    if room is None:
        logger.info(f"Ignoring {kind.value} from connection {connection.id}: room {room_id} no longer exists")
        return

    if kind is EnvelopeType.MESSAGE:
        await room.broadcast(envelope.content, sender=connection.id)
    elif kind is EnvelopeType.LEAVE:
        await room.leave(connection)
    elif kind is EnvelopeType.CLOSE_CHAT:
        await registry.close(room_id)
