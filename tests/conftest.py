import base64
import json
from datetime import datetime, timedelta, timezone

import pytest

from backend import MemoryBackend
from constants import Settings
from runtime import build_runtime


class FakeClock:
    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeSocket:
    """Stands in for a Starlette WebSocket."""

    def __init__(self, fail: bool = False):
        self.accepted = False
        self.sent = []
        self.closed = None
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(text)

    async def close(self, code=1000, reason=""):
        self.closed = (code, reason)

    def frames(self):
        return [json.loads(text) for text in self.sent]


def b64(size: int, fill: bytes = b"\x07") -> str:
    return base64.b64encode(fill * size).decode("ascii")


def ciphertext(size: int = 48) -> str:
    return b64(size, b"\xab")


def nonce(size: int = 12) -> str:
    return b64(size, b"\x01")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(room_ttl_seconds=3600, message_retention_seconds=600, sweep_interval_seconds=1)


@pytest.fixture
def store(clock):
    return MemoryBackend(clock=clock)


@pytest.fixture
def runtime(settings, store, clock):
    return build_runtime(settings, store=store, clock=clock)
