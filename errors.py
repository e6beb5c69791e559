class RelayError(Exception):
    """Soft error reported back to the requesting connection; the connection stays open."""

    message = "Request failed"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class RoomNotFound(RelayError):
    message = "Room not found"


class RoomFull(RelayError):
    message = "Room is full"


class RoomExists(RelayError):
    message = "Room already exists"


class NotHost(RelayError):
    message = "Only host can start game"


class AlreadySeated(RelayError):
    message = "Already in a room"


class CodeSpaceExhausted(RuntimeError):
    """Internal error: no free room code was found within the retry bound."""
