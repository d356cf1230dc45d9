"""
Pydantic models for the browser chat wire protocol.

Every frame exchanged with a browser client is a single JSON object carried in a
WebSocket text frame. Incoming frames are a ping or a user utterance; outgoing
frames report connection readiness, streaming text, completion and errors.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class BaseFrame(BaseModel):
    """Base model for all chat frames."""

    type: str = Field(..., description="Frame type identifier")

    def to_json(self) -> str:
        """Serialize the frame for a WebSocket text frame."""
        return self.model_dump_json()


# Client -> server
class PingMessage(BaseFrame):
    """Transport-local keepalive, answered with a pong and never forwarded upstream."""

    type: Literal["ping"] = "ping"


class UserTextMessage(BaseFrame):
    """A user utterance to forward to the agent engine."""

    type: Literal["message"] = "message"
    content: str = Field(..., description="The user's text")


IncomingMessage = Annotated[
    Union[PingMessage, UserTextMessage], Field(discriminator="type")
]


# Server -> client
class ConnectedFrame(BaseFrame):
    """Sent once, right after the client socket is accepted."""

    type: Literal["connected"] = "connected"


class PongFrame(BaseFrame):
    type: Literal["pong"] = "pong"


class TextDeltaFrame(BaseFrame):
    """Incremental chunk of the assistant reply."""

    type: Literal["text.delta"] = "text.delta"
    delta: str


class AssistantMessageFrame(BaseFrame):
    """The authoritative full text of the assistant reply."""

    type: Literal["assistant.message"] = "assistant.message"
    text: str


class ResponseDoneFrame(BaseFrame):
    type: Literal["response.done"] = "response.done"


class ErrorFrame(BaseFrame):
    type: Literal["error"] = "error"
    error: str = Field(..., description="Human-readable error detail")


OutgoingFrame = Union[
    ConnectedFrame,
    PongFrame,
    TextDeltaFrame,
    AssistantMessageFrame,
    ResponseDoneFrame,
    ErrorFrame,
]
