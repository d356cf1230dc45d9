"""
Unit tests for the OpenAI Realtime API client.

These tests verify the functionality of the RealtimeSessionClient class,
which opens a text-mode realtime session, sends conversation events, turns
server events into upstream events and runs the agent's tool calls.
"""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from realtime_chat.bot.agent import RealtimeAgent
from realtime_chat.bot.realtime_api import TOOL_REJECTED_OUTPUT, RealtimeSessionClient
from realtime_chat.bot.tools import Tool
from realtime_chat.models.upstream_events import (
    ConversationItemCreate,
    ResponseCreate,
    TextDelta,
    TextDone,
    ToolApprovalRequested,
    UnknownEvent,
    UpstreamError,
)


class FakeRealtimeSocket:
    """Stands in for the websockets client connection."""

    def __init__(self):
        self.sent = []
        self.incoming = asyncio.Queue()
        self.close_calls = 0

    def push(self, message):
        if isinstance(message, dict):
            message = json.dumps(message)
        self.incoming.put_nowait(message)

    async def send(self, payload):
        self.sent.append(json.loads(payload))

    async def recv(self):
        message = await self.incoming.get()
        if isinstance(message, Exception):
            raise message
        return message

    async def close(self):
        self.close_calls += 1

    def sent_types(self):
        return [message["type"] for message in self.sent]


@pytest.fixture
def mock_api_key():
    """Provide a mock API key for testing."""
    return "test-api-key"


@pytest.fixture
def mock_model():
    """Provide a mock model name for testing."""
    return "gpt-4o-realtime-preview-test"


@pytest.fixture
def fake_socket():
    return FakeRealtimeSocket()


@pytest.fixture
def lookup_tool():
    return Tool(
        name="lookup",
        description="Look something up.",
        function=lambda query: f"Found {query}",
        parameters={"type": "object", "properties": {"query": {"type": "string"}}},
    )


@pytest.fixture
def guarded_tool():
    return Tool(
        name="guarded",
        description="Needs a human to agree first.",
        function=lambda question: f"Answer to {question}",
        needs_approval=True,
    )


@pytest.fixture
def agent(lookup_tool, guarded_tool):
    return RealtimeAgent(name="Tester", instructions="Be brief.", tools=[lookup_tool, guarded_tool])


@pytest.fixture
def realtime_client(mock_api_key, mock_model, agent):
    """Create a RealtimeSessionClient instance for testing."""
    return RealtimeSessionClient(mock_api_key, mock_model, agent=agent)


@pytest_asyncio.fixture
async def connected_client(realtime_client, fake_socket):
    """A client connected to the fake socket, closed after the test."""
    with patch("realtime_chat.bot.realtime_api.websockets.connect", new=AsyncMock(return_value=fake_socket)):
        assert await realtime_client.connect() is True
    yield realtime_client
    await realtime_client.close()


@pytest.mark.asyncio
async def test_connect_success(realtime_client, fake_socket, mock_model):
    """Test successful connection sends the session configuration."""
    connect = AsyncMock(return_value=fake_socket)
    with patch("realtime_chat.bot.realtime_api.websockets.connect", new=connect):
        result = await realtime_client.connect()

    assert result is True
    assert realtime_client.is_connected is True
    url = connect.call_args.args[0]
    assert url.endswith(f"?model={mock_model}")
    headers = connect.call_args.kwargs["additional_headers"]
    assert headers["Authorization"] == "Bearer test-api-key"
    assert headers["OpenAI-Beta"] == "realtime=v1"

    session_update = fake_socket.sent[0]
    assert session_update["type"] == "session.update"
    assert session_update["session"]["modalities"] == ["text"]
    assert session_update["session"]["instructions"] == "Be brief."
    assert [tool["name"] for tool in session_update["session"]["tools"]] == ["lookup", "guarded"]
    await realtime_client.close()


@pytest.mark.asyncio
async def test_connect_failure(realtime_client):
    """Test connection failure to the OpenAI Realtime API."""
    with patch(
        "realtime_chat.bot.realtime_api.websockets.connect",
        new=AsyncMock(side_effect=OSError("Connection error")),
    ):
        result = await realtime_client.connect()

    assert result is False
    assert realtime_client.is_connected is False


@pytest.mark.asyncio
async def test_connect_without_api_key(mock_model):
    """Test that no connection is attempted without an API key."""
    client = RealtimeSessionClient(None, mock_model)
    connect = AsyncMock()
    with patch("realtime_chat.bot.realtime_api.websockets.connect", new=connect):
        assert await client.connect() is False
    connect.assert_not_called()


@pytest.mark.asyncio
async def test_connect_after_close_is_refused(realtime_client):
    await realtime_client.close()
    assert await realtime_client.connect() is False


@pytest.mark.asyncio
async def test_send_events_serializes_in_order(connected_client, fake_socket):
    """Test that a batch of events reaches the socket in order."""
    result = await connected_client.send_events([ConversationItemCreate(text="hello"), ResponseCreate()])

    assert result is True
    assert fake_socket.sent_types() == ["session.update", "conversation.item.create", "response.create"]
    assert fake_socket.sent[1]["item"]["content"] == [{"type": "input_text", "text": "hello"}]


@pytest.mark.asyncio
async def test_concurrent_batches_do_not_interleave(connected_client, fake_socket):
    original_send = fake_socket.send

    async def slow_send(payload):
        await asyncio.sleep(0)
        await original_send(payload)

    fake_socket.send = slow_send
    await asyncio.gather(
        connected_client.send_events([ConversationItemCreate(text="one"), ResponseCreate()]),
        connected_client.send_events([ConversationItemCreate(text="two"), ResponseCreate()]),
    )

    assert fake_socket.sent_types()[1:] == [
        "conversation.item.create",
        "response.create",
        "conversation.item.create",
        "response.create",
    ]


@pytest.mark.asyncio
async def test_send_when_not_connected(realtime_client):
    assert await realtime_client.send_event(ResponseCreate()) is False


@pytest.mark.asyncio
async def test_send_connection_closed(connected_client, fake_socket):
    """Test sending when the connection is closed."""
    fake_socket.send = AsyncMock(side_effect=ConnectionClosedError(None, None))

    result = await connected_client.send_event(ResponseCreate())

    assert result is False
    assert connected_client.is_connected is False


@pytest.mark.asyncio
async def test_receive_events(connected_client, fake_socket):
    """Test that server events are queued as upstream events."""
    fake_socket.push({"type": "session.created", "session": {}})
    fake_socket.push({"type": "response.text.delta", "delta": "Hi"})
    fake_socket.push({"type": "response.text.done", "text": "Hi"})
    fake_socket.push({"type": "error", "error": {"code": "rate_limit", "message": "Slow down"}})

    events = [await asyncio.wait_for(connected_client.receive_event(), timeout=1.0) for _ in range(4)]

    assert events == [
        UnknownEvent(raw_type="session.created"),
        TextDelta(delta="Hi"),
        TextDone(text="Hi"),
        UpstreamError(detail="Slow down", code="rate_limit"),
    ]


@pytest.mark.asyncio
async def test_receive_skips_invalid_frames(connected_client, fake_socket):
    fake_socket.push(b"\x00\x01")
    fake_socket.push("{not json")
    fake_socket.push("[1, 2]")
    fake_socket.push({"type": "response.text.delta", "delta": "ok"})

    event = await asyncio.wait_for(connected_client.receive_event(), timeout=1.0)

    assert event == TextDelta(delta="ok")


@pytest.mark.asyncio
async def test_stream_end_is_reported_to_every_caller(connected_client, fake_socket):
    """Test that a closed socket ends the stream with a sticky None."""
    fake_socket.push(ConnectionClosedOK(None, None))

    assert await asyncio.wait_for(connected_client.receive_event(), timeout=1.0) is None
    assert await asyncio.wait_for(connected_client.receive_event(), timeout=1.0) is None
    assert connected_client.is_connected is False


@pytest.mark.asyncio
async def test_tool_without_approval_runs_immediately(connected_client, fake_socket, eventually):
    fake_socket.push(
        {
            "type": "response.function_call_arguments.done",
            "name": "lookup",
            "call_id": "call_1",
            "arguments": json.dumps({"query": "cats"}),
        }
    )

    await eventually(lambda: len(fake_socket.sent) == 3)

    output, response = fake_socket.sent[1:]
    assert output == {
        "type": "conversation.item.create",
        "item": {"type": "function_call_output", "call_id": "call_1", "output": "Found cats"},
    }
    assert response == {"type": "response.create"}


@pytest.mark.asyncio
async def test_unknown_tool_is_reported_to_model(connected_client, fake_socket, eventually):
    fake_socket.push({"type": "response.function_call_arguments.done", "name": "nope", "call_id": "call_9"})

    await eventually(lambda: len(fake_socket.sent) == 3)

    assert fake_socket.sent[1]["item"]["output"] == "Unknown tool: nope"


@pytest.mark.asyncio
async def test_tool_needing_approval_is_surfaced(connected_client, fake_socket):
    fake_socket.push(
        {
            "type": "response.function_call_arguments.done",
            "name": "guarded",
            "call_id": "call_2",
            "arguments": json.dumps({"question": "life"}),
        }
    )

    event = await asyncio.wait_for(connected_client.receive_event(), timeout=1.0)

    assert event == ToolApprovalRequested(
        tool_name="guarded", approval_handle="call_2", arguments={"question": "life"}
    )
    assert fake_socket.sent_types() == ["session.update"]


@pytest.mark.asyncio
async def test_approve_runs_pending_tool(connected_client, fake_socket):
    fake_socket.push(
        {
            "type": "response.function_call_arguments.done",
            "name": "guarded",
            "call_id": "call_2",
            "arguments": json.dumps({"question": "life"}),
        }
    )
    await asyncio.wait_for(connected_client.receive_event(), timeout=1.0)

    assert await connected_client.approve("call_2") is True
    assert fake_socket.sent[1]["item"]["output"] == "Answer to life"
    assert fake_socket.sent[2] == {"type": "response.create"}
    # Each handle settles once
    assert await connected_client.approve("call_2") is False


@pytest.mark.asyncio
async def test_reject_tells_model(connected_client, fake_socket):
    fake_socket.push({"type": "response.function_call_arguments.done", "name": "guarded", "call_id": "call_3"})
    await asyncio.wait_for(connected_client.receive_event(), timeout=1.0)

    assert await connected_client.reject("call_3") is True
    assert fake_socket.sent[1]["item"]["output"] == TOOL_REJECTED_OUTPUT
    assert await connected_client.reject("call_3") is False


@pytest.mark.asyncio
async def test_close(connected_client, fake_socket):
    """Test closing the client is idempotent and ends the stream."""
    await connected_client.close()
    await connected_client.close()

    assert fake_socket.close_calls == 1
    assert connected_client.is_connected is False
    assert await asyncio.wait_for(connected_client.receive_event(), timeout=1.0) is None
