import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from constants import (
    MAX_CODE_ATTEMPTS,
    MAX_PLAYERS,
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
)
from errors import CodeSpaceExhausted, RoomExists, RoomFull, RoomNotFound
from logging_config import get_logger
from registry import Session

logger = get_logger(__name__)


class Room:
    def __init__(self, code: str, host: Session, created_at: float):
        self.code = code
        self.host_id = host.id
        self.players: Dict[str, Session] = {host.id: host}
        self.created_at = created_at
        # player id -> last ready value that player reported
        self.ready_states: Dict[str, Any] = {}

    @property
    def size(self) -> int:
        return len(self.players)

    def is_host(self, session: Session) -> bool:
        return session.id == self.host_id

    def others(self, session: Session) -> List[Session]:
        return [player for player_id, player in self.players.items() if player_id != session.id]

    def roster(self, exclude: Optional[Session] = None) -> Dict[str, Dict[str, Any]]:
        """Players keyed by id with their display name and host flag."""
        return {
            player_id: {"name": player.display_name, "is_host": player_id == self.host_id}
            for player_id, player in self.players.items()
            if exclude is None or player_id != exclude.id
        }

    def __repr__(self):
        return f"Room(code={self.code!r}, host={self.host_id!r}, players={list(self.players)})"


@dataclass
class Departure:
    """Outcome of a leave: which room, whether the host left, who is still there to notify."""

    room: Room
    session: Session
    was_host: bool
    remaining: List[Session] = field(default_factory=list)


class RoomDirectory:
    def __init__(
        self,
        max_players: int = MAX_PLAYERS,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._rooms: Dict[str, Room] = {}
        self.max_players = max_players
        # Room codes are short join handles, not secrets, so a plain PRNG is enough
        self._rng = rng or random.Random()
        self._clock = clock

    def generate_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = "".join(self._rng.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))
            if code not in self._rooms:
                return code
        logger.error(f"No free room code after {MAX_CODE_ATTEMPTS} attempts ({len(self._rooms)} rooms active)")
        raise CodeSpaceExhausted(f"No free room code after {MAX_CODE_ATTEMPTS} attempts")

    def _register(self, code: str, host: Session) -> Room:
        room = Room(code, host, self._clock())
        self._rooms[code] = room
        host.room_code = code
        return room

    def create_room(self, session: Session, display_name: str) -> Room:
        code = self.generate_code()
        session.display_name = display_name
        room = self._register(code, session)
        logger.info(f"Room {code} created by {session.display_name} ({session.id})")
        return room

    def claim_room(self, session: Session, code: str) -> Room:
        """Register a room under a code chosen by the connecting host."""
        if code in self._rooms:
            logger.warning(f"Room claim rejected: {code} already exists")
            raise RoomExists()
        room = self._register(code, session)
        logger.info(f"Room {code} claimed by host {session.id}")
        return room

    def join_room(self, session: Session, code: str, display_name: str) -> Room:
        code = (code or "").upper()
        room = self._rooms.get(code)
        if room is None:
            logger.info(f"Join rejected: room {code!r} not found")
            raise RoomNotFound()
        if room.size >= self.max_players:
            logger.info(f"Join rejected: room {code} is full ({room.size}/{self.max_players})")
            raise RoomFull()

        session.display_name = display_name
        session.room_code = code
        room.players[session.id] = session
        logger.info(f"{session.display_name} ({session.id}) joined room {code} ({room.size}/{self.max_players})")
        return room

    def leave_room(self, session: Session) -> Optional[Departure]:
        """Remove a session from its room.

        Returns None when the session is not seated. When the host leaves the
        room is deleted before returning; the caller notifies ``remaining``.
        """
        if not session.room_code:
            return None

        code = session.room_code
        session.room_code = None
        room = self._rooms.get(code)
        if room is None or session.id not in room.players:
            return None

        del room.players[session.id]
        room.ready_states.pop(session.id, None)
        departure = Departure(
            room=room,
            session=session,
            was_host=room.is_host(session),
            remaining=list(room.players.values()),
        )

        if departure.was_host:
            self.remove_room(code)
            logger.info(f"Room {code} closed (host {session.id} left)")
        else:
            logger.info(f"{session.display_name} ({session.id}) left room {code} ({room.size} remaining)")
        return departure

    def remove_room(self, code: str) -> Optional[Room]:
        room = self._rooms.pop(code, None)
        if room is None:
            return None
        for player in room.players.values():
            if player.room_code == code:
                player.room_code = None
        return room

    def get(self, code: Optional[str]) -> Optional[Room]:
        if not code:
            return None
        return self._rooms.get(code)

    def room_of(self, session: Session) -> Optional[Room]:
        return self.get(session.room_code)

    def snapshot(self) -> List[Room]:
        """Point-in-time copy of the active rooms, safe to iterate while rooms change."""
        return list(self._rooms.values())

    def now(self) -> float:
        return self._clock()

    def __contains__(self, code) -> bool:
        return code in self._rooms

    def __len__(self):
        return len(self._rooms)
