import asyncio
from typing import List

from constants import ROOM_TTL_SECONDS, SWEEP_INTERVAL_SECONDS
from directory import RoomDirectory
from logging_config import get_logger

logger = get_logger(__name__)

EXPIRED_REASON = "Room expired"


class ExpirySweeper:
    """Periodically closes rooms older than the TTL.

    ``closer`` is the active profile's router; its ``close_room(room, reason)``
    notifies occupants the way that profile does and removes the room.
    """

    def __init__(
        self,
        directory: RoomDirectory,
        closer,
        ttl: float = ROOM_TTL_SECONDS,
        interval: float = SWEEP_INTERVAL_SECONDS,
    ):
        self.directory = directory
        self.closer = closer
        self.ttl = ttl
        self.interval = interval

    def sweep(self) -> List[str]:
        """Run one tick. Returns the codes of the rooms that were closed."""
        now = self.directory.now()
        expired = []
        for room in self.directory.snapshot():
            # A room removed earlier in this tick (or replaced under the same code) is skipped
            if self.directory.get(room.code) is not room:
                continue
            if now - room.created_at > self.ttl:
                logger.info(f"Cleaning up old room {room.code} (age {int(now - room.created_at)}s)")
                self.closer.close_room(room, EXPIRED_REASON)
                expired.append(room.code)
        if expired:
            logger.info(f"Expiry sweep closed {len(expired)} rooms, {len(self.directory)} remain")
        return expired

    async def run(self):
        logger.info(f"Expiry sweeper started (ttl={self.ttl}s, interval={self.interval}s)")
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    self.sweep()
                except Exception as e:
                    logger.error(f"Error during expiry sweep: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Expiry sweeper stopped")
            raise
