class RelayError(Exception):
    """Base class for errors raised by the relay core."""


class RoomNotFoundError(RelayError):
    status_code = 404

    def __init__(self, room_id: str, message: str = "Chat room not found."):
        super().__init__(message)
        self.room_id = room_id
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message}


class MalformedEnvelopeError(RelayError):
    """Inbound data could not be parsed into an envelope."""


class ConnectionClosedError(RelayError):
    """A send was attempted on a connection that is already closed."""
