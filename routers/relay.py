import asyncio
from typing import Optional

from fastapi import APIRouter, WebSocket

from logging_config import get_logger
from raw_relay import HandshakeRejected, RawRelay
from transport import WebSocketTransport

logger = get_logger(__name__)

# JSON message protocol: rooms are created and joined through messages
messages_router = APIRouter(tags=["relay"])

# Raw relay: room code in the path, role in the query string
raw_router = APIRouter(tags=["relay"])


async def serve_connection(websocket: WebSocket, transport: WebSocketTransport, session, relay):
    """Accept the socket and run its receive loop.

    The session is registered before the accept, so anything the relay
    queued for it is delivered first. Each inbound frame is handed to the
    relay synchronously; teardown runs once, here.
    """
    writer = None
    message_count = 0
    try:
        await websocket.accept()
        writer = transport.start()
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected for session {session.id} (code {message.get('code')})")
                break

            payload = message.get("text")
            if payload is None:
                payload = message.get("bytes")
            if payload is None:
                continue

            message_count += 1
            logger.debug(f"Received message #{message_count} from session {session.id}")
            relay.dispatch(session, payload)
    except Exception as e:
        logger.error(f"WebSocket error for session {session.id}: {e}", exc_info=True)
    finally:
        transport.mark_closed()
        relay.disconnect(transport)
        if writer is not None:
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass


@messages_router.websocket("/")
@messages_router.websocket("/ws")
async def message_endpoint(websocket: WebSocket):
    router = websocket.app.state.relay
    logger.info("New WebSocket connection")

    transport = WebSocketTransport(websocket)
    session = router.connect(transport)
    await serve_connection(websocket, transport, session, router)


@raw_router.websocket("/{target:path}")
async def raw_endpoint(websocket: WebSocket, target: str, role: Optional[str] = None):
    relay: RawRelay = websocket.app.state.relay
    logger.info(f"Raw relay connection attempt for target {target!r}, role {role!r}")

    transport = WebSocketTransport(websocket)
    try:
        session = relay.connect(transport, target, role)
    except HandshakeRejected as e:
        logger.info(f"Raw relay connection rejected: {e.reason}")
        # Accept first so the close frame can carry the code and reason
        await websocket.accept()
        await websocket.close(code=e.code, reason=e.reason)
        return
    await serve_connection(websocket, transport, session, relay)
