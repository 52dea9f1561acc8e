import json
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from errors import MalformedEnvelopeError


class EnvelopeType(str, Enum):
    CONNECTED = "CONNECTED"
    ERROR = "ERROR"
    MESSAGE = "MESSAGE"
    NEW_MESSAGE = "NEW_MESSAGE"
    LEAVE = "LEAVE"
    CLOSE_CHAT = "CLOSE_CHAT"
    CHAT_CLOSED = "CHAT_CLOSED"


class InboundEnvelope(BaseModel):
    """An envelope received from a client: ``{type, content?}``.

    ``type`` is kept as the raw string so unknown tags survive parsing and can
    be reported by the dispatcher; ``kind`` maps it onto ``EnvelopeType``.
    """
    model_config = ConfigDict(extra="ignore")

    type: str
    content: Optional[Any] = None

    @property
    def kind(self) -> Optional[EnvelopeType]:
        try:
            return EnvelopeType(self.type)
        except ValueError:
            return None


class OutboundEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class ConnectedEnvelope(OutboundEnvelope):
    type: Literal[EnvelopeType.CONNECTED] = EnvelopeType.CONNECTED
    room_id: str = Field(alias="roomId")


class ErrorEnvelope(OutboundEnvelope):
    type: Literal[EnvelopeType.ERROR] = EnvelopeType.ERROR
    message: str


class NewMessageEnvelope(OutboundEnvelope):
    type: Literal[EnvelopeType.NEW_MESSAGE] = EnvelopeType.NEW_MESSAGE
    content: Any = None

    def to_json(self) -> str:
        # content is part of the shape even when it is null
        return json.dumps({"type": self.type.value, "content": self.content})


class ChatClosedEnvelope(OutboundEnvelope):
    type: Literal[EnvelopeType.CHAT_CLOSED] = EnvelopeType.CHAT_CLOSED


def parse_envelope(raw: str) -> InboundEnvelope:
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedEnvelopeError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedEnvelopeError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        return InboundEnvelope.model_validate(data)
    except ValidationError as e:
        raise MalformedEnvelopeError(f"Invalid envelope: {e.errors()}") from e
