from fastapi import APIRouter, Depends, Request
from schemas.rooms import CreateRoomRequest, CreateRoomResponse, SendMessageRequest, HistoryResponse, AckResponse
from backend import RoomRegistry, get_registry
from errors import RoomNotFoundError
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@rooms_router.post("/dispute", response_model=CreateRoomResponse)
async def create_room(room: CreateRoomRequest, request: Request, registry: RoomRegistry = Depends(get_registry)):
    # { "initiator": "buyer-1", "counterparty": "seller-9", "mediator": "mod-3" }
    # Response 200: { "success": true, "roomId": "room_1731844800000" }
    logger.info(f"Room creation request from {_client_host(request)}")
    room_id = await registry.create_room(room.initiator, room.counterparty, room.mediator)
    return CreateRoomResponse(room_id=room_id)


@rooms_router.get("/chat/{room_id}", response_model=HistoryResponse)
async def get_history(room_id: str, request: Request, registry: RoomRegistry = Depends(get_registry)):
    """
    Return the messages broadcast in a room, oldest first.

    Only the most recent HISTORY_LIMIT messages are kept, in memory.
    Responds 404 with {"success": false} when the room does not exist.
    """
    logger.info(f"History request for {room_id} from {_client_host(request)}")
    room = await registry.require(room_id)
    return HistoryResponse(messages=room.snapshot())


@rooms_router.post("/chat/send", response_model=AckResponse)
async def send_message(message: SendMessageRequest, request: Request, registry: RoomRegistry = Depends(get_registry)):
    # { "roomId": "room_...", "content": "hello", "sender": "buyer-1" }
    logger.info(f"Send request for {message.room_id} from {_client_host(request)}, sender: {message.sender}")
    room = await registry.require(message.room_id)
    delivered = await room.broadcast(message.content, sender=message.sender)
    logger.debug(f"Message for {message.room_id} delivered to {delivered} members")
    return AckResponse(message="Message sent.")


@rooms_router.post("/chat/{room_id}/close", response_model=AckResponse)
async def close_room(room_id: str, request: Request, registry: RoomRegistry = Depends(get_registry)):
    # Every connected member gets CHAT_CLOSED and is disconnected
    logger.info(f"Close room request for {room_id} from {_client_host(request)}")
    if not await registry.close(room_id):
        raise RoomNotFoundError(room_id)
    return AckResponse(message="Chat room closed.")
