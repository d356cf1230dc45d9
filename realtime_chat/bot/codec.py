"""
Protocol codec between the browser chat protocol and the realtime agent engine.

Every function in this module is pure: no I/O, no session state. The only
mutable value the codec touches is the ``ResponseAccumulator`` handed in by the
caller, which holds the assistant reply currently being streamed.

Client -> upstream:
    decode_client_message   raw frame -> PingMessage | UserTextMessage
    encode_upstream_request wire message -> ordered upstream events
    serialize_upstream_event upstream event -> OpenAI Realtime client event

Upstream -> client:
    parse_upstream_event    OpenAI Realtime server event -> upstream event
    encode_client_frames    upstream event -> zero or more outgoing frames
"""

import json
from typing import Any, Callable, Dict, List, Type, Union

from pydantic import TypeAdapter, ValidationError

from realtime_chat.config.constants import (
    FATAL_ERROR_CODES,
    MESSAGE_TYPE_PING,
    MESSAGE_TYPE_USER_TEXT,
    UPSTREAM_ERROR,
    UPSTREAM_RESPONSE_DONE,
    UPSTREAM_TEXT_DELTA,
    UPSTREAM_TEXT_DONE,
)
from realtime_chat.errors import DecodeError, DecodeErrorReason
from realtime_chat.models.openai_schemas import (
    ConversationItemCreateMessage,
    RealtimeErrorDetail,
    RealtimeMessageContent,
    RealtimeMessageItem,
    ResponseCreateMessage,
)
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
    ErrorFrame,
    IncomingMessage,
    OutgoingFrame,
    PingMessage,
    ResponseDoneFrame,
    TextDeltaFrame,
    UserTextMessage,
)

_incoming_adapter = TypeAdapter(IncomingMessage)

KNOWN_MESSAGE_TYPES = (MESSAGE_TYPE_PING, MESSAGE_TYPE_USER_TEXT)


class ResponseAccumulator:
    """Reconstructs the in-progress assistant reply from streamed deltas."""

    def __init__(self):
        self.text = ""

    def append(self, delta: str) -> None:
        self.text += delta

    def replace(self, text: str) -> None:
        self.text = text

    def reset(self) -> None:
        self.text = ""

    def __repr__(self) -> str:
        return f"ResponseAccumulator(text={self.text!r})"


# ---------------------------------------------------------------------------
# Client -> upstream
# ---------------------------------------------------------------------------


def decode_client_message(raw: Union[str, bytes]) -> Union[PingMessage, UserTextMessage]:
    """
    Parse one client frame into a wire message.

    Args:
        raw: The frame payload as received from the socket

    Returns:
        The typed wire message

    Raises:
        DecodeError: If the payload is not a JSON object, names an unknown
            message type, or is missing required fields
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(DecodeErrorReason.MALFORMED_PAYLOAD, str(e)) from e

    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise DecodeError(DecodeErrorReason.MALFORMED_PAYLOAD, str(e)) from e

    if not isinstance(data, dict):
        raise DecodeError(DecodeErrorReason.MALFORMED_PAYLOAD, "frame is not a JSON object")

    message_type = data.get("type")
    if message_type not in KNOWN_MESSAGE_TYPES:
        if message_type is None:
            raise DecodeError(DecodeErrorReason.MALFORMED_PAYLOAD, "missing 'type' field")
        raise DecodeError(DecodeErrorReason.UNKNOWN_MESSAGE_TYPE, str(message_type))

    try:
        return _incoming_adapter.validate_python(data)
    except ValidationError as e:
        raise DecodeError(DecodeErrorReason.MALFORMED_PAYLOAD, str(e)) from e


def validate_user_text(message: UserTextMessage) -> UserTextMessage:
    """Reject utterances that would only produce an empty engine turn."""
    if not message.content.strip():
        raise DecodeError(DecodeErrorReason.EMPTY_CONTENT)
    return message


def encode_upstream_request(message: Union[PingMessage, UserTextMessage]) -> List[UpstreamEvent]:
    """
    Translate a client wire message into the upstream events it causes.

    A ping produces nothing; the caller answers it locally with a pong. A user
    utterance produces the conversation item followed by the response request,
    in that order.
    """
    if isinstance(message, PingMessage):
        return []
    if isinstance(message, UserTextMessage):
        return [ConversationItemCreate(text=message.content), ResponseCreate()]
    raise TypeError(f"Unsupported wire message: {type(message).__name__}")


def serialize_upstream_event(event: UpstreamEvent) -> Dict[str, Any]:
    """Render an outbound upstream event as an OpenAI Realtime client event."""
    if isinstance(event, ConversationItemCreate):
        message = ConversationItemCreateMessage(
            item=RealtimeMessageItem(
                role=event.role,
                content=[RealtimeMessageContent(type="input_text", text=event.text)],
            )
        )
        return message.model_dump(mode="json")
    if isinstance(event, ResponseCreate):
        return ResponseCreateMessage().model_dump(mode="json")
    raise TypeError(f"Event cannot be sent upstream: {event.kind}")


# ---------------------------------------------------------------------------
# Upstream -> client
# ---------------------------------------------------------------------------


def parse_upstream_event(data: Dict[str, Any]) -> UpstreamEvent:
    """
    Narrow a raw OpenAI Realtime server event to an upstream event.

    Event types the bridge does not translate become ``UnknownEvent`` so the
    caller never has to touch fields that may not be there.
    """
    event_type = data.get("type")

    if event_type in UPSTREAM_TEXT_DELTA:
        return TextDelta(delta=data.get("delta") or "")
    if event_type in UPSTREAM_TEXT_DONE:
        return TextDone(text=data.get("text") or "")
    if event_type == UPSTREAM_RESPONSE_DONE:
        return ResponseDone()
    if event_type == UPSTREAM_ERROR:
        error = data.get("error")
        if isinstance(error, dict):
            try:
                detail = RealtimeErrorDetail(**error)
            except ValidationError:
                detail = RealtimeErrorDetail()
        else:
            detail = RealtimeErrorDetail(message=str(error) if error else "Unknown error")
        return UpstreamError(
            detail=detail.message,
            code=detail.code,
            fatal=detail.code in FATAL_ERROR_CODES,
        )

    return UnknownEvent(raw_type=event_type if isinstance(event_type, str) else None)


def _encode_text_delta(event: TextDelta, accumulator: ResponseAccumulator) -> List[OutgoingFrame]:
    accumulator.append(event.delta)
    return [TextDeltaFrame(delta=event.delta)]


def _encode_text_done(event: TextDone, accumulator: ResponseAccumulator) -> List[OutgoingFrame]:
    # The done event carries the full text and wins over whatever the deltas built
    accumulator.replace(event.text)
    return [AssistantMessageFrame(text=event.text)]


def _encode_response_done(event: ResponseDone, accumulator: ResponseAccumulator) -> List[OutgoingFrame]:
    accumulator.reset()
    return [ResponseDoneFrame()]


def _encode_error(event: UpstreamError, accumulator: ResponseAccumulator) -> List[OutgoingFrame]:
    # Partial text already shown to the user stays; the accumulator is left alone.
    # The upstream code is only logged, the client frame carries the detail.
    return [ErrorFrame(error=event.detail)]


def _encode_nothing(event: UpstreamEvent, accumulator: ResponseAccumulator) -> List[OutgoingFrame]:
    return []


ClientFrameEncoder = Callable[[Any, ResponseAccumulator], List[OutgoingFrame]]

CLIENT_FRAME_ENCODERS: Dict[Type[Any], ClientFrameEncoder] = {
    TextDelta: _encode_text_delta,
    TextDone: _encode_text_done,
    ResponseDone: _encode_response_done,
    UpstreamError: _encode_error,
    # Handled server-side by the approval policy
    ToolApprovalRequested: _encode_nothing,
    # Outbound-only and unrecognized events are never shown to the client
    ConversationItemCreate: _encode_nothing,
    ResponseCreate: _encode_nothing,
    UnknownEvent: _encode_nothing,
}


def encode_client_frames(event: UpstreamEvent, accumulator: ResponseAccumulator) -> List[OutgoingFrame]:
    """
    Translate an upstream event into the frames the client should see.

    Args:
        event: The upstream event
        accumulator: The session's in-progress reply buffer, updated in place

    Returns:
        Frames to send to the client, in order (possibly empty)
    """
    encoder = CLIENT_FRAME_ENCODERS.get(type(event), _encode_nothing)
    return encoder(event, accumulator)
