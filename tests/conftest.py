import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from app import app
from backend import RoomRegistry, get_registry
from connection import Connection

_DISCONNECT = object()


class FakeWebSocket:
    """In-memory stand-in for a Starlette WebSocket.

    Sent frames are decoded into ``sent``; ``feed`` queues inbound frames and
    ``disconnect`` makes the next receive report the peer going away.
    """

    def __init__(self, fail_sends: bool = False, stall_sends: bool = False):
        self.sent = []
        self.accepted = False
        self.closed = False
        self.close_code = None
        self.fail_sends = fail_sends
        self.stall_sends = stall_sends
        self._inbound = asyncio.Queue()

    async def accept(self):
        self.accepted = True

    async def send_text(self, data: str):
        if self.fail_sends:
            raise RuntimeError("send failed")
        if self.stall_sends:
            await asyncio.Event().wait()
        self.sent.append(json.loads(data))

    async def receive(self) -> dict:
        item = await self._inbound.get()
        if item is _DISCONNECT:
            return {"type": "websocket.disconnect", "code": 1001}
        if isinstance(item, bytes):
            return {"type": "websocket.receive", "bytes": item}
        return {"type": "websocket.receive", "text": item}

    async def close(self, code: int = 1000, reason=None):
        self.closed = True
        self.close_code = code
        self._inbound.put_nowait(_DISCONNECT)

    def feed(self, *messages):
        for message in messages:
            self._inbound.put_nowait(message if isinstance(message, (str, bytes)) else json.dumps(message))

    def disconnect(self):
        self._inbound.put_nowait(_DISCONNECT)

    def types(self):
        return [message["type"] for message in self.sent]


async def wait_for(predicate, timeout: float = 1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def make_connection():
    def _make(fail_sends: bool = False, stall_sends: bool = False) -> Connection:
        return Connection(FakeWebSocket(fail_sends=fail_sends, stall_sends=stall_sends))
    return _make


@pytest.fixture
def client(registry):
    """TestClient bound to a fresh registry; one event loop for all sockets."""
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
