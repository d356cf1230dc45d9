"""
Pydantic models for OpenAI Realtime API message structures.

This module provides type-safe models for the client events the bridge sends to
the OpenAI Realtime API and for the error payloads it receives back.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    """Role of a participant in a conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class RealtimeBaseMessage(BaseModel):
    """Base model for Realtime API messages."""
    type: str


class RealtimeMessageContent(BaseModel):
    """Content part of a message within a conversation."""
    type: Literal["input_text", "text"] = "input_text"
    text: str


class RealtimeMessageItem(BaseModel):
    """Message item within a conversation."""
    type: Literal["message"] = "message"
    role: MessageRole
    content: List[RealtimeMessageContent]


class RealtimeFunctionCallOutputItem(BaseModel):
    """Result of a tool call returned to the model."""
    type: Literal["function_call_output"] = "function_call_output"
    call_id: str
    output: str


class ConversationItemCreateMessage(RealtimeBaseMessage):
    """conversation.item.create client event."""
    type: Literal["conversation.item.create"] = "conversation.item.create"
    item: Union[RealtimeMessageItem, RealtimeFunctionCallOutputItem]


class ResponseCreateMessage(RealtimeBaseMessage):
    """response.create client event."""
    type: Literal["response.create"] = "response.create"


class RealtimeToolDefinition(BaseModel):
    """Function tool advertised to the model."""
    type: Literal["function"] = "function"
    name: str
    description: str
    parameters: Dict[str, Any]


class RealtimeSessionConfig(BaseModel):
    """Session parameters sent with session.update."""
    modalities: List[str] = Field(default_factory=lambda: ["text"])
    instructions: Optional[str] = None
    tools: List[RealtimeToolDefinition] = Field(default_factory=list)
    tool_choice: str = "auto"


class SessionUpdateMessage(RealtimeBaseMessage):
    """session.update client event."""
    type: Literal["session.update"] = "session.update"
    session: RealtimeSessionConfig


class RealtimeErrorDetail(BaseModel):
    """Error body carried by a server ``error`` event."""
    type: Optional[str] = None
    code: Optional[str] = None
    message: str = "Unknown error"
    param: Optional[str] = None
    event_id: Optional[str] = None
