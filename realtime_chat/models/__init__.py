"""
Models module for data structures used by the realtime chat bridge.

Key components:
- wire_messages: Pydantic models for the browser chat protocol, covering the
  incoming ping/message frames and every outgoing frame.
- upstream_events: The closed set of events exchanged with the realtime agent
  engine, as seen by the rest of the bridge.
- openai_schemas: Raw OpenAI Realtime API client events and error payloads.
- session_state: Session lifecycle states and the forward-only transition table.

Usage examples:
```python
from realtime_chat.models.wire_messages import UserTextMessage, ErrorFrame
from realtime_chat.models.upstream_events import TextDelta
from realtime_chat.models.session_state import SessionState

message = UserTextMessage(content="hello")
frame = ErrorFrame(error="Failed to parse message")
assert SessionState.INITIALIZING.can_transition_to(SessionState.ACTIVE)
```
"""

from realtime_chat.models.session_state import SessionState
from realtime_chat.models.upstream_events import (
    ConversationItemCreate,
    ResponseCreate,
    ResponseDone,
    TextDelta,
    TextDone,
    ToolApprovalRequested,
    UnknownEvent,
    UpstreamError,
    UpstreamEvent,
)
from realtime_chat.models.wire_messages import (
    AssistantMessageFrame,
    ConnectedFrame,
    ErrorFrame,
    IncomingMessage,
    OutgoingFrame,
    PingMessage,
    PongFrame,
    ResponseDoneFrame,
    TextDeltaFrame,
    UserTextMessage,
)
