import asyncio
from collections import deque
from datetime import datetime
from typing import Any, Optional, Set

from connection import Connection
from constants import HISTORY_LIMIT, LEAVE_NOTICE, SEND_TIMEOUT
from logging_config import get_logger
from schemas.envelopes import ChatClosedEnvelope, ConnectedEnvelope, NewMessageEnvelope, OutboundEnvelope
from schemas.rooms import HistoryEntry

logger = get_logger(__name__)


class Room:
    """A named broadcast domain.

    ``members`` and ``history`` are only touched while holding the room lock, so
    a broadcast never iterates a member set that a join or leave is changing,
    and broadcasts within one room are delivered in a single total order.
    """

    def __init__(
        self,
        room_id: str,
        initiator: Optional[str] = None,
        counterparty: Optional[str] = None,
        mediator: Optional[str] = None,
        history_limit: int = HISTORY_LIMIT,
        send_timeout: float = SEND_TIMEOUT,
    ):
        self.id = room_id
        self.initiator = initiator
        self.counterparty = counterparty
        self.mediator = mediator
        self.created_at = datetime.now().isoformat()
        self.members: Set[Connection] = set()
        self.history = deque(maxlen=history_limit)
        self.send_timeout = send_timeout
        self.closed = False
        self._lock = asyncio.Lock()

    def __repr__(self):
        return f"Room(id={self.id}, members={len(self.members)}, closed={self.closed})"

    @property
    def member_count(self) -> int:
        return len(self.members)

    def is_member(self, connection: Connection) -> bool:
        return connection in self.members

    def snapshot(self) -> list[HistoryEntry]:
        return list(self.history)

    async def join(self, connection: Connection) -> bool:
        """Add ``connection`` and greet it with CONNECTED.

        The greeting is sent under the room lock so it always precedes any
        NEW_MESSAGE the member receives. Returns False if the room was closed
        after the caller looked it up.
        """
        async with self._lock:
            if self.closed:
                logger.info(f"Join rejected: room {self.id} is closed")
                return False
            connection.mark_joined(self.id)
            self.members.add(connection)
            logger.info(f"Connection {connection.id} joined room {self.id} ({len(self.members)} members)")
            try:
                await asyncio.wait_for(connection.send(ConnectedEnvelope(room_id=self.id)), self.send_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Timed out sending CONNECTED to connection {connection.id} in room {self.id}")
            except Exception as e:
                logger.warning(f"Error sending CONNECTED to connection {connection.id} in room {self.id}: {e}")
            return True

    async def broadcast(self, content: Any, sender: Optional[str] = None) -> int:
        """Send NEW_MESSAGE with ``content`` to every member.

        Returns the number of members the message was delivered to.
        """
        async with self._lock:
            return await self._broadcast_locked(content, sender)

    async def leave(self, connection: Connection):
        """Remove ``connection`` and announce the departure to the room.

        The announcement is made on every leave, whether it came from a LEAVE
        envelope or from the channel dropping.
        """
        async with self._lock:
            if self.closed:
                logger.debug(f"Leave ignored: room {self.id} is closed")
                return
            if connection in self.members:
                self.members.discard(connection)
                logger.info(f"Connection {connection.id} left room {self.id} ({len(self.members)} members)")
            else:
                logger.debug(f"Connection {connection.id} was not a member of room {self.id}")
            connection.detach(self.id)
            await self._announce_departure()

    async def close_and_notify(self):
        """Send CHAT_CLOSED to every member, close them all and empty the room."""
        async with self._lock:
            members = list(self.members)
            logger.info(f"Closing room {self.id} with {len(members)} members")
            await self._fan_out(ChatClosedEnvelope())
            results = await asyncio.gather(
                *(asyncio.wait_for(member.close(), self.send_timeout) for member in members),
                return_exceptions=True,
            )
            for member, result in zip(members, results):
                if isinstance(result, BaseException):
                    logger.warning(f"Error closing connection {member.id} in room {self.id}: {result}")
            self.members.clear()
            self.closed = True

    async def _announce_departure(self):
        await self._broadcast_locked(LEAVE_NOTICE)

    async def _broadcast_locked(self, content: Any, sender: Optional[str] = None) -> int:
        if self.closed:
            logger.debug(f"Broadcast dropped: room {self.id} is closed")
            return 0
        self.history.append(HistoryEntry(content=content, sender=sender, sent_at=datetime.now().isoformat()))
        return await self._fan_out(NewMessageEnvelope(content=content))

    async def _fan_out(self, envelope: OutboundEnvelope) -> int:
        members = list(self.members)
        if not members:
            return 0
        results = await asyncio.gather(
            *(asyncio.wait_for(member.send(envelope), self.send_timeout) for member in members),
            return_exceptions=True,
        )
        delivered = 0
        for member, result in zip(members, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning(f"Timed out sending {envelope.type.value} to connection {member.id} in room {self.id}")
            elif isinstance(result, BaseException):
                logger.warning(f"Error sending {envelope.type.value} to connection {member.id} in room {self.id}: {result}")
            else:
                delivered += 1
        logger.debug(f"Sent {envelope.type.value} to {delivered}/{len(members)} members of room {self.id}")
        return delivered
