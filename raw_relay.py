import re
from typing import Optional, Union

from fastapi import status

from constants import ROOM_CODE_LENGTH
from directory import Room, RoomDirectory
from errors import RoomExists, RoomFull, RoomNotFound
from logging_config import get_logger
from registry import ConnectionRegistry, Session

logger = get_logger(__name__)

ROLES = ("host", "client")
ROOM_CODE_PATTERN = re.compile(rf"^[A-Z]{{{ROOM_CODE_LENGTH}}}$")

MALFORMED_TARGET_REASON = "malformed connection target"
HOST_LEFT_REASON = "Host left"

Payload = Union[str, bytes]


class HandshakeRejected(Exception):
    """The connection request cannot be seated; the socket is closed with ``code`` and ``reason``."""

    def __init__(self, code: int, reason: str):
        super().__init__(reason)
        self.code = code
        self.reason = reason


def parse_target(room_code: Optional[str], role: Optional[str]):
    """Normalize and validate the room code and role from a connection request."""
    code = (room_code or "").strip().upper()
    if not ROOM_CODE_PATTERN.match(code) or role not in ROLES:
        raise HandshakeRejected(status.WS_1002_PROTOCOL_ERROR, MALFORMED_TARGET_REASON)
    return code, role


class RawRelay:
    """Opaque relay where the role is fixed by the connection request.

    The first host for a code owns the room; clients may only join a code a
    host already holds. Payloads are forwarded untouched.
    """

    def __init__(self, directory: RoomDirectory, registry: ConnectionRegistry):
        self.directory = directory
        self.registry = registry

    def connect(self, transport, room_code: Optional[str], role: Optional[str]) -> Session:
        code, role = parse_target(room_code, role)

        # Validate before registering so a rejected request never gets a session
        room = self.directory.get(code)
        if role == "host" and room is not None:
            logger.warning(f"Host claim rejected: room {code} already exists")
            raise HandshakeRejected(status.WS_1008_POLICY_VIOLATION, RoomExists.message.lower())
        if role == "client" and room is None:
            logger.warning(f"Client rejected: room {code} not found")
            raise HandshakeRejected(status.WS_1008_POLICY_VIOLATION, RoomNotFound.message.lower())
        if role == "client" and room.size >= self.directory.max_players:
            logger.warning(f"Client rejected: room {code} is full")
            raise HandshakeRejected(status.WS_1008_POLICY_VIOLATION, RoomFull.message.lower())

        session = self.registry.connect(transport)
        if role == "host":
            self.directory.claim_room(session, code)
        else:
            self.directory.join_room(session, code, session.display_name)
        return session

    def dispatch(self, session: Session, payload: Payload):
        room = self.directory.room_of(session)
        if room is None:
            return
        if room.is_host(session):
            recipients = room.others(session)
        else:
            # Host first, then every other client
            recipients = [room.players[room.host_id]] + [
                player for player in room.others(session) if player.id != room.host_id
            ]
        logger.debug(f"Relaying payload from {session.id} to {len(recipients)} peers in room {room.code}")
        for player in recipients:
            player.send(payload)

    def disconnect(self, transport):
        session = self.registry.disconnect(transport)
        if session is None:
            return
        departure = self.directory.leave_room(session)
        if departure is not None and departure.was_host:
            for player in departure.remaining:
                player.close(status.WS_1001_GOING_AWAY, HOST_LEFT_REASON)

    def close_room(self, room: Room, reason: str):
        for player in room.players.values():
            player.close(status.WS_1001_GOING_AWAY, reason)
        self.directory.remove_room(room.code)
        logger.info(f"Room {room.code} closed ({reason})")
