import asyncio
from typing import Any, Optional

from fastapi import WebSocket, status

from constants import OUTBOX_LIMIT
from logging_config import get_logger

logger = get_logger(__name__)


class _Close:
    def __init__(self, code: int, reason: str):
        self.code = code
        self.reason = reason


class WebSocketTransport:
    """Bounded outbox for one WebSocket.

    Handlers call ``send``/``close`` synchronously; the writer task started by
    ``start`` drains the queue onto the socket in order. Once ``is_open`` is
    False every call is a no-op. A peer that lets ``max_pending`` frames pile
    up is treated as gone.
    """

    def __init__(self, websocket: WebSocket, name: Optional[str] = None, max_pending: int = OUTBOX_LIMIT):
        self.websocket = websocket
        if name is None:
            name = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
        self.name = name
        self._closing = False
        self._peer_gone = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._writer: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return not (self._closing or self._peer_gone)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def send(self, payload: Any):
        if not self.is_open:
            return
        self._enqueue(payload)

    def close(self, code: int = status.WS_1000_NORMAL_CLOSURE, reason: str = ""):
        """Queue a close after whatever is already pending; later sends are dropped."""
        if not self.is_open:
            return
        if self._enqueue(_Close(code, reason)):
            self._closing = True

    def mark_closed(self):
        """Called when the peer is gone; anything still queued is dropped."""
        self._peer_gone = True

    def _enqueue(self, item) -> bool:
        try:
            self._queue.put_nowait(item)
            return True
        except asyncio.QueueFull:
            logger.warning(f"Outbox for connection {self.name} is full ({self._queue.maxsize} frames), dropping connection")
            self._drop_outbox()
            return False

    def _drop_outbox(self):
        self._peer_gone = True
        while not self._queue.empty():
            self._queue.get_nowait()
        if self._writer is not None:
            self._writer.cancel()

    def start(self) -> asyncio.Task:
        self._writer = asyncio.create_task(self.pump())
        return self._writer

    async def pump(self):
        try:
            while True:
                item = await self._queue.get()
                if self._peer_gone:
                    return
                if isinstance(item, _Close):
                    logger.debug(f"Closing connection {self.name} with code {item.code}: {item.reason}")
                    await self.websocket.close(code=item.code, reason=item.reason)
                    return
                if isinstance(item, bytes):
                    await self.websocket.send_bytes(item)
                elif isinstance(item, str):
                    await self.websocket.send_text(item)
                else:
                    await self.websocket.send_json(item)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Send to connection {self.name} failed, dropping outbox: {e}")
            self._peer_gone = True
