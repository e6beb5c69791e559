from pydantic import BaseModel, field_validator
from typing import Any, Dict, Literal, Optional


# Inbound (client -> server)

def _display_name(value: Any) -> Optional[str]:
    """Any truthy value becomes its text form; falsy values fall back to the default name."""
    if not value:
        return None
    return value if isinstance(value, str) else str(value)


class CreateRoomMessage(BaseModel):
    type: Literal["create_room"] = "create_room"
    player_name: Optional[str] = None

    @field_validator("player_name", mode="before")
    @classmethod
    def name_as_text(cls, value):
        return _display_name(value)

class JoinRoomMessage(BaseModel):
    type: Literal["join_room"] = "join_room"
    room_code: str
    player_name: Optional[str] = None

    @field_validator("player_name", mode="before")
    @classmethod
    def name_as_text(cls, value):
        return _display_name(value)

class LeaveRoomMessage(BaseModel):
    type: Literal["leave_room"] = "leave_room"

class StartGameMessage(BaseModel):
    type: Literal["start_game"] = "start_game"

class GameMessage(BaseModel):
    type: Literal["game_message"] = "game_message"
    message_type: str
    data: Any = None


INBOUND_MESSAGES = {
    "create_room": CreateRoomMessage,
    "join_room": JoinRoomMessage,
    "leave_room": LeaveRoomMessage,
    "start_game": StartGameMessage,
    "game_message": GameMessage,
}


# Outbound (server -> client)

class PlayerData(BaseModel):
    name: str
    is_host: bool

class Connected(BaseModel):
    type: Literal["connected"] = "connected"
    player_id: str

class RoomCreated(BaseModel):
    type: Literal["room_created"] = "room_created"
    room_code: str
    player_id: str

class RoomJoined(BaseModel):
    type: Literal["room_joined"] = "room_joined"
    room_code: str
    player_id: str

class RoomError(BaseModel):
    type: Literal["room_error"] = "room_error"
    error: str

class PlayerList(BaseModel):
    type: Literal["player_list"] = "player_list"
    players: Dict[str, PlayerData]

class PlayerJoined(BaseModel):
    type: Literal["player_joined"] = "player_joined"
    player_id: str
    player_data: PlayerData

class PlayerLeft(BaseModel):
    type: Literal["player_left"] = "player_left"
    player_id: str

class RoomLeft(BaseModel):
    type: Literal["room_left"] = "room_left"

class RoomClosed(BaseModel):
    type: Literal["room_closed"] = "room_closed"
    reason: str

class GameStarted(BaseModel):
    type: Literal["game_started"] = "game_started"

class GameStateUpdated(BaseModel):
    type: Literal["game_state_updated"] = "game_state_updated"
    state: Dict[str, Any]
