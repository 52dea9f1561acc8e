from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Any, Optional


class CreateRoomRequest(BaseModel):
    # buyerId/sellerId/mediatorId are accepted for dispute-style clients
    model_config = ConfigDict(coerce_numbers_to_str=True)

    initiator: Optional[str] = Field(None, validation_alias=AliasChoices("initiator", "buyerId"))
    counterparty: Optional[str] = Field(None, validation_alias=AliasChoices("counterparty", "sellerId"))
    mediator: Optional[str] = Field(None, validation_alias=AliasChoices("mediator", "mediatorId"))

class CreateRoomResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    room_id: str = Field(alias="roomId")

class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    room_id: str = Field(alias="roomId")
    content: Any = None
    sender: Optional[str] = None

class HistoryEntry(BaseModel):
    content: Any = None
    sender: Optional[str] = None
    sent_at: str

class HistoryResponse(BaseModel):
    success: bool = True
    messages: list[HistoryEntry]

class AckResponse(BaseModel):
    success: bool = True
    message: str
