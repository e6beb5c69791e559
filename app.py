import asyncio
import random
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from constants import (
    LOG_FILE,
    LOG_LEVEL,
    MAX_PLAYERS,
    RELAY_MODE,
    RELAY_MODES,
    ROOM_TTL_SECONDS,
    SWEEP_INTERVAL_SECONDS,
)
from directory import RoomDirectory
from logging_config import get_logger, setup_logging
from message_router import MessageRouter
from raw_relay import RawRelay
from registry import ConnectionRegistry
from routers.health import health_router
from routers.relay import messages_router, raw_router
from sweeper import ExpirySweeper

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper: ExpirySweeper = app.state.sweeper
    task = asyncio.create_task(sweeper.run())
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def create_app(
    mode: str = RELAY_MODE,
    ttl: float = ROOM_TTL_SECONDS,
    sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    max_players: int = MAX_PLAYERS,
    clock: Callable[[], float] = time.time,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    """Build an application serving exactly one wire profile.

    Each call gets its own directory and registry; nothing is shared between
    instances.
    """
    if mode not in RELAY_MODES:
        raise ValueError(f"Unknown relay mode {mode!r}, expected one of {RELAY_MODES}")

    app = FastAPI(lifespan=lifespan)

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    directory = RoomDirectory(max_players=max_players, rng=rng, clock=clock)
    registry = ConnectionRegistry()
    if mode == "raw":
        relay = RawRelay(directory, registry)
    else:
        relay = MessageRouter(directory, registry)

    app.state.mode = mode
    app.state.directory = directory
    app.state.registry = registry
    app.state.relay = relay
    app.state.sweeper = ExpirySweeper(directory, relay, ttl=ttl, interval=sweep_interval)

    @app.exception_handler(StarletteHTTPException)
    async def plain_text_http_error(request, exc: StarletteHTTPException):
        # Status side-channel answers in plain text, errors included
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=getattr(exc, "headers", None))

    app.include_router(health_router)
    app.include_router(raw_router if mode == "raw" else messages_router)

    logger.info(f"FastAPI application initialized in {mode} mode (ttl={ttl}s, max_players={max_players})")
    return app


app = create_app()
