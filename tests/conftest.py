import os
import sys
import pytest

# Ensure the project root (containing the top-level modules) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from directory import RoomDirectory
from message_router import MessageRouter
from raw_relay import RawRelay
from registry import ConnectionRegistry


class FakeTransport:
    """Records what the relay sends instead of writing to a socket."""

    def __init__(self):
        self.sent = []
        self.closed = None
        self.is_open = True

    def send(self, payload):
        self.sent.append(payload)

    def close(self, code, reason=""):
        self.closed = (code, reason)
        self.is_open = False

    def of_type(self, message_type):
        return [m for m in self.sent if isinstance(m, dict) and m.get("type") == message_type]

    def clear(self):
        self.sent.clear()


class ScriptedRandom:
    """Stands in for random.Random, yielding preset room codes in order."""

    def __init__(self, *codes):
        self._codes = list(codes)

    def choices(self, population, k):
        code = self._codes.pop(0)
        assert len(code) == k
        return list(code)


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def directory(clock):
    return RoomDirectory(clock=clock)


@pytest.fixture()
def registry():
    return ConnectionRegistry()


@pytest.fixture()
def router(directory, registry):
    return MessageRouter(directory, registry)


@pytest.fixture()
def raw_relay(directory, registry):
    return RawRelay(directory, registry)


@pytest.fixture()
def connect(router):
    """Open a JSON-protocol connection; returns (session, transport) with the greeting cleared."""
    def _connect():
        transport = FakeTransport()
        session = router.connect(transport)
        transport.clear()
        return session, transport
    return _connect
