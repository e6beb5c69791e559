import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# "messages" (JSON protocol) or "raw" (role declared in the connection target)
RELAY_MODE = os.getenv("RELAY_MODE", "messages")
RELAY_MODES = ("messages", "raw")

ROOM_TTL_SECONDS = int(os.getenv("ROOM_TTL_SECONDS", 2 * 60 * 60))
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", 60))
MAX_PLAYERS = int(os.getenv("MAX_PLAYERS", 5))

ROOM_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
ROOM_CODE_LENGTH = 4
MAX_CODE_ATTEMPTS = 1000

DEFAULT_DISPLAY_NAME = "Player"
DEFAULT_HOST_NAME = "Host"

# Frames queued for one connection before it is treated as stalled and dropped
OUTBOX_LIMIT = int(os.getenv("OUTBOX_LIMIT", 256))
