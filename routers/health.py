from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from logging_config import get_logger

logger = get_logger(__name__)

health_router = APIRouter(tags=["health"])


@health_router.get("/", response_class=PlainTextResponse)
@health_router.get("/health", response_class=PlainTextResponse)
async def health(request: Request):
    """Plain-text liveness check reporting how many rooms are open."""
    active_rooms = len(request.app.state.directory)
    logger.debug(f"Health check from {request.client.host if request.client else 'unknown'}: {active_rooms} rooms")
    return f"Relay Server Running\nActive Rooms: {active_rooms}"
