import json
from typing import Optional, Union

from pydantic import BaseModel, ValidationError

from constants import DEFAULT_DISPLAY_NAME, DEFAULT_HOST_NAME
from directory import Departure, Room, RoomDirectory
from errors import AlreadySeated, CodeSpaceExhausted, NotHost, RelayError
from logging_config import get_logger
from registry import ConnectionRegistry, Session
from schemas.messages import (
    INBOUND_MESSAGES,
    Connected,
    CreateRoomMessage,
    GameMessage,
    GameStarted,
    GameStateUpdated,
    JoinRoomMessage,
    PlayerData,
    PlayerJoined,
    PlayerLeft,
    PlayerList,
    RoomClosed,
    RoomCreated,
    RoomError,
    RoomJoined,
    RoomLeft,
)

logger = get_logger(__name__)

HOST_LEFT_REASON = "Host left"
READY_MESSAGE_TYPE = "player_ready"

Payload = Union[str, bytes]


class MessageRouter:
    """JSON message protocol: one state machine per connection, driven by message type.

    A connection is Unseated until create_room/join_room succeeds, then Seated
    as host or guest until it leaves, disconnects or the room is closed.
    Every handler runs to completion without awaiting.
    """

    def __init__(self, directory: RoomDirectory, registry: ConnectionRegistry):
        self.directory = directory
        self.registry = registry
        self._handlers = {
            "create_room": self.handle_create_room,
            "join_room": self.handle_join_room,
            "leave_room": self.handle_leave_room,
            "start_game": self.handle_start_game,
            "game_message": self.handle_game_message,
        }

    # ---- connection events ----

    def connect(self, transport) -> Session:
        session = self.registry.connect(transport)
        self._send(session, Connected(player_id=session.id))
        return session

    def disconnect(self, transport):
        session = self.registry.disconnect(transport)
        if session is not None and session.room_code:
            self._notify_departure(self.directory.leave_room(session))

    def dispatch(self, session: Session, payload: Payload):
        message = self.parse(payload)
        if message is None:
            logger.debug(f"Relaying unparsed payload from {session.id}")
            self.relay(session, payload)
            return

        logger.debug(f"Received {message.type} from {session.id}")
        try:
            self._handlers[message.type](session, message, payload)
        except RelayError as e:
            logger.info(f"{message.type} from {session.id} rejected: {e.message}")
            self._send(session, RoomError(error=e.message))

    @staticmethod
    def parse(payload: Payload) -> Optional[BaseModel]:
        """Validate a payload against the inbound schema, or None if it does not fit."""
        if not isinstance(payload, str):
            return None
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict) or not isinstance(data.get("type"), str):
            return None
        model = INBOUND_MESSAGES.get(data["type"])
        if model is None:
            return None
        try:
            return model.model_validate(data)
        except ValidationError:
            return None

    # ---- handlers ----

    def handle_create_room(self, session: Session, message: CreateRoomMessage, payload: Payload):
        if session.room_code:
            raise AlreadySeated()
        try:
            room = self.directory.create_room(session, message.player_name or DEFAULT_HOST_NAME)
        except CodeSpaceExhausted:
            logger.error(f"Room creation failed for {session.id}", exc_info=True)
            raise RelayError("Could not allocate room code")
        self._send(session, RoomCreated(room_code=room.code, player_id=session.id))

    def handle_join_room(self, session: Session, message: JoinRoomMessage, payload: Payload):
        if session.room_code:
            raise AlreadySeated()
        room = self.directory.join_room(session, message.room_code, message.player_name or DEFAULT_DISPLAY_NAME)

        self._send(session, RoomJoined(room_code=room.code, player_id=session.id))
        self._send(session, PlayerList(players=room.roster(exclude=session)))
        self._broadcast(
            room.others(session),
            PlayerJoined(
                player_id=session.id,
                player_data=PlayerData(name=session.display_name, is_host=False),
            ),
        )

    def handle_leave_room(self, session: Session, message: BaseModel, payload: Payload):
        departure = self.directory.leave_room(session)
        if departure is None:
            return
        self._notify_departure(departure)
        self._send(session, RoomLeft())

    def handle_start_game(self, session: Session, message: BaseModel, payload: Payload):
        room = self.directory.room_of(session)
        if room is None or not room.is_host(session):
            raise NotHost()
        self._broadcast(room.players.values(), GameStarted())
        logger.info(f"Game started in room {room.code}")

    def handle_game_message(self, session: Session, message: GameMessage, payload: Payload):
        room = self.directory.room_of(session)
        if room is None:
            logger.debug(f"Dropping game_message from unseated {session.id}")
            return

        if message.message_type == READY_MESSAGE_TYPE and isinstance(message.data, dict):
            # Ready values accumulate per player; every update carries the whole map
            room.ready_states[session.id] = message.data.get("ready")
            self._broadcast(
                room.players.values(),
                GameStateUpdated(state={"players_ready": dict(room.ready_states)}),
            )
            return

        self.relay(session, payload)

    # ---- fan-out ----

    def relay(self, session: Session, payload: Payload):
        """Forward a payload verbatim to everyone else in the sender's room."""
        room = self.directory.room_of(session)
        if room is None:
            return
        for player in room.others(session):
            player.send(payload)

    def close_room(self, room: Room, reason: str):
        """Tell every occupant the room is gone, then drop it from the directory."""
        self._broadcast(room.players.values(), RoomClosed(reason=reason))
        self.directory.remove_room(room.code)
        logger.info(f"Room {room.code} closed ({reason})")

    def _notify_departure(self, departure: Optional[Departure]):
        if departure is None:
            return
        if departure.was_host:
            self._broadcast(departure.remaining, RoomClosed(reason=HOST_LEFT_REASON))
        else:
            self._broadcast(departure.remaining, PlayerLeft(player_id=departure.session.id))

    def _broadcast(self, sessions, message: BaseModel):
        data = message.model_dump()
        for player in sessions:
            player.send(data)

    @staticmethod
    def _send(session: Session, message: BaseModel):
        session.send(message.model_dump())
