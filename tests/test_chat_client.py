import asyncio
import json

import pytest
from unittest.mock import AsyncMock

from chat_client import receive_frames, send_message


class ScriptedSocket:
    """Async-iterable socket yielding canned server frames."""

    def __init__(self, frames):
        self.frames = [json.dumps(frame) for frame in frames]
        self.send = AsyncMock()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame


@pytest.mark.asyncio
async def test_receive_frames_prints_streamed_text(capsys):
    """Test that deltas are printed as they arrive and the turn completes"""
    websocket = ScriptedSocket(
        [
            {"type": "connected"},
            {"type": "text.delta", "delta": "Hel"},
            {"type": "text.delta", "delta": "lo"},
            {"type": "assistant.message", "text": "Hello"},
            {"type": "response.done"},
        ]
    )
    turn_done = asyncio.Event()

    await receive_frames(websocket, turn_done)

    assert turn_done.is_set()
    assert "Hello" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_error_frame_ends_turn():
    turn_done = asyncio.Event()
    await receive_frames(ScriptedSocket([{"type": "error", "error": "Bad"}]), turn_done)
    assert turn_done.is_set()


@pytest.mark.asyncio
async def test_send_message():
    websocket = ScriptedSocket([])
    await send_message(websocket, "hello")
    websocket.send.assert_awaited_once_with(json.dumps({"type": "message", "content": "hello"}))
