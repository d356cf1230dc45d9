import asyncio
import json
import logging

import pytest

from realtime_chat.bot.chat_session import ChatSession
from realtime_chat.models.wire_messages import BaseFrame
from realtime_chat.services.session_registry import SessionRegistry


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


class FakeClientConnection:
    """In-memory client handle: payloads are fed through a queue, sent frames are recorded."""

    def __init__(self):
        self.inbox = asyncio.Queue()
        self.sent = []
        self.close_calls = 0
        self.is_open = True

    def feed(self, *payloads):
        for payload in payloads:
            if isinstance(payload, dict):
                payload = json.dumps(payload)
            self.inbox.put_nowait(payload)

    def disconnect(self):
        self.inbox.put_nowait(None)

    async def send(self, frame):
        if not self.is_open:
            return False
        if isinstance(frame, BaseFrame):
            frame = json.loads(frame.to_json())
        self.sent.append(frame)
        return True

    async def receive(self):
        if not self.is_open:
            return None
        payload = await self.inbox.get()
        if payload is None:
            self.is_open = False
        return payload

    async def close(self):
        self.close_calls += 1
        self.is_open = False

    def frame_types(self):
        return [frame["type"] for frame in self.sent]

    def frames_of(self, frame_type):
        return [frame for frame in self.sent if frame["type"] == frame_type]


class FakeUpstream:
    """In-memory upstream handle recording every event sent to the engine."""

    def __init__(self, connect_result=True, connect_delay=0.0, send_result=True):
        self.connect_result = connect_result
        self.connect_delay = connect_delay
        self.send_result = send_result
        self.connect_gate = None
        self.connect_calls = 0
        self.events = asyncio.Queue()
        self.sent = []
        self.batches = []
        self.approved = []
        self.rejected = []
        self.close_calls = 0
        self.is_connected = False

    async def connect(self):
        self.connect_calls += 1
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if isinstance(self.connect_result, Exception):
            raise self.connect_result
        self.is_connected = self.connect_result
        return self.connect_result

    async def send_events(self, events):
        events = list(events)
        if not self.send_result:
            return False
        self.batches.append(events)
        for event in events:
            self.sent.append(event)
            # Yield between events so any interleaving would show up
            await asyncio.sleep(0)
        return True

    async def receive_event(self):
        event = await self.events.get()
        if event is None:
            self.events.put_nowait(None)
        return event

    def emit(self, *events):
        for event in events:
            self.events.put_nowait(event)

    def end_stream(self):
        self.events.put_nowait(None)

    async def approve(self, approval_handle):
        self.approved.append(approval_handle)
        return True

    async def reject(self, approval_handle):
        self.rejected.append(approval_handle)
        return True

    async def close(self):
        self.close_calls += 1
        self.is_connected = False
        self.events.put_nowait(None)


async def wait_until(predicate, timeout=2.0):
    """Poll until predicate() is true, failing the test after timeout seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def eventually():
    return wait_until


@pytest.fixture
def fake_client():
    return FakeClientConnection()


@pytest.fixture
def fake_upstream():
    return FakeUpstream()


@pytest.fixture
def make_client():
    return FakeClientConnection


@pytest.fixture
def make_upstream():
    return FakeUpstream


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def make_session(registry):
    """Build and register a ChatSession around fake handles."""

    def factory(client=None, upstream=None, **kwargs):
        kwargs.setdefault("handshake_timeout", 1.0)
        kwargs.setdefault("close_timeout", 1.0)
        session = ChatSession(
            client or FakeClientConnection(),
            upstream or FakeUpstream(),
            registry,
            **kwargs,
        )
        registry.register(session)
        return session

    return factory
