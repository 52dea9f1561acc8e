import asyncio
import time
from typing import Callable, Dict, Optional

from constants import HISTORY_LIMIT, ROOM_ID_PREFIX, SEND_TIMEOUT
from errors import RoomNotFoundError
from logging_config import get_logger
from room import Room

logger = get_logger(__name__)


class RoomRegistry:
    """Process-wide directory of rooms, keyed by room id.

    Room ids look like ``room_<milliseconds>``. Two rooms created within the same
    millisecond get consecutive stamps so ids stay unique for the life of the
    registry. Rooms are kept until closed explicitly, even when empty.
    """

    def __init__(
        self,
        id_prefix: str = ROOM_ID_PREFIX,
        history_limit: int = HISTORY_LIMIT,
        send_timeout: float = SEND_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self.id_prefix = id_prefix
        self.history_limit = history_limit
        self.send_timeout = send_timeout
        self._clock = clock
        self._rooms: Dict[str, Room] = {}
        self._last_stamp = 0
        self._lock = asyncio.Lock()
        logger.info(f"Initializing RoomRegistry (id_prefix={id_prefix!r}, history_limit={history_limit})")

    def __len__(self):
        return len(self._rooms)

    def __contains__(self, room_id: str):
        return room_id in self._rooms

    def room_ids(self) -> list[str]:
        return list(self._rooms)

    def _next_room_id(self) -> str:
        stamp = int(self._clock() * 1000)
        if stamp <= self._last_stamp:
            stamp = self._last_stamp + 1
        self._last_stamp = stamp
        return f"{self.id_prefix}{stamp}"

    async def create_room(
        self,
        initiator: Optional[str] = None,
        counterparty: Optional[str] = None,
        mediator: Optional[str] = None,
    ) -> str:
        async with self._lock:
            room_id = self._next_room_id()
            self._rooms[room_id] = Room(
                room_id,
                initiator=initiator,
                counterparty=counterparty,
                mediator=mediator,
                history_limit=self.history_limit,
                send_timeout=self.send_timeout,
            )
        logger.info(f"Room {room_id} created: initiator={initiator}, counterparty={counterparty}, mediator={mediator}")
        return room_id

    async def get(self, room_id: str) -> Optional[Room]:
        async with self._lock:
            room = self._rooms.get(room_id)
        if room is None:
            logger.debug(f"Room {room_id} not found")
        return room

    async def require(self, room_id: str) -> Room:
        room = await self.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    async def close(self, room_id: str) -> bool:
        """Eject every member of ``room_id`` and forget the room.

        Returns False when there was no such room.
        """
        async with self._lock:
            room = self._rooms.pop(room_id, None)
        if room is None:
            logger.info(f"Close ignored: room {room_id} not found")
            return False
        await room.close_and_notify()
        logger.info(f"Room {room_id} closed")
        return True


room_registry = RoomRegistry()


def get_registry() -> RoomRegistry:
    return room_registry
