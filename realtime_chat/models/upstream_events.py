"""
Pydantic models for events exchanged with the realtime agent engine.

The engine speaks loosely-typed JSON events distinguished by a ``type`` string.
Inside the bridge they are narrowed to the closed set of variants below; the
codec matches on the variant class and drops anything it does not know.
"""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field

from realtime_chat.models.openai_schemas import MessageRole


class UpstreamEventBase(BaseModel):
    """Base model for upstream events."""

    kind: str


# Sent to the engine
class ConversationItemCreate(UpstreamEventBase):
    """Adds a message to the engine's conversation."""

    kind: Literal["conversation_item_create"] = "conversation_item_create"
    role: MessageRole = MessageRole.USER
    text: str


class ResponseCreate(UpstreamEventBase):
    """Asks the engine to generate a response to the conversation so far."""

    kind: Literal["response_create"] = "response_create"


# Received from the engine
class TextDelta(UpstreamEventBase):
    kind: Literal["text_delta"] = "text_delta"
    delta: str = ""


class TextDone(UpstreamEventBase):
    kind: Literal["text_done"] = "text_done"
    text: str = ""


class ResponseDone(UpstreamEventBase):
    kind: Literal["response_done"] = "response_done"


class ToolApprovalRequested(UpstreamEventBase):
    """The engine wants to run a tool that needs approval first."""

    kind: Literal["tool_approval_requested"] = "tool_approval_requested"
    tool_name: str
    approval_handle: str = Field(..., description="Opaque id used to approve or reject")
    arguments: Dict[str, Any] = Field(default_factory=dict)


class UpstreamError(UpstreamEventBase):
    """In-band error reported by the engine."""

    kind: Literal["error"] = "error"
    detail: str
    code: Optional[str] = None
    fatal: bool = False


class UnknownEvent(UpstreamEventBase):
    """Any engine event the bridge does not translate."""

    kind: Literal["unknown"] = "unknown"
    raw_type: Optional[str] = None


UpstreamEvent = Union[
    ConversationItemCreate,
    ResponseCreate,
    TextDelta,
    TextDone,
    ResponseDone,
    ToolApprovalRequested,
    UpstreamError,
    UnknownEvent,
]
