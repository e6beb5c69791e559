import itertools
from typing import Any, Dict, Optional

from constants import DEFAULT_DISPLAY_NAME
from logging_config import get_logger

logger = get_logger(__name__)


class Session:
    """Per-connection record: identity, display name and current room.

    The id is a routing handle only. It is guessable and must never be
    treated as a secret or an access token.
    """

    def __init__(self, session_id: str, transport):
        self.id = session_id
        self.display_name = DEFAULT_DISPLAY_NAME
        self.room_code: Optional[str] = None
        self.transport = transport

    @property
    def is_open(self) -> bool:
        return self.transport.is_open

    def send(self, payload: Any):
        if self.is_open:
            self.transport.send(payload)

    def close(self, code: int, reason: str = ""):
        if self.is_open:
            self.transport.close(code, reason)

    def __repr__(self):
        return f"Session(id={self.id!r}, name={self.display_name!r}, room={self.room_code!r})"


class ConnectionRegistry:
    def __init__(self, id_prefix: str = "p"):
        self._sessions: Dict[Any, Session] = {}
        self._counter = itertools.count(1)
        self._id_prefix = id_prefix

    def _next_id(self) -> str:
        # Monotonic counter: an id is never handed out twice in this process
        return f"{self._id_prefix}{next(self._counter)}"

    def connect(self, transport) -> Session:
        session = Session(self._next_id(), transport)
        self._sessions[transport] = session
        logger.info(f"Session {session.id} connected ({len(self._sessions)} live)")
        return session

    def disconnect(self, transport) -> Optional[Session]:
        """Drop the session for a transport.

        Returns the session the first time and None afterwards, so the caller's
        leave handling runs exactly once per connection.
        """
        session = self._sessions.pop(transport, None)
        if session is None:
            logger.debug("Disconnect for unknown or already removed transport ignored")
            return None
        logger.info(f"Session {session.id} ({session.display_name}) disconnected")
        return session

    def get(self, transport) -> Optional[Session]:
        return self._sessions.get(transport)

    def __len__(self):
        return len(self._sessions)
