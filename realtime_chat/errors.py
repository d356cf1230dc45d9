"""
Exception types raised by the chat bridge.

Decode errors are recoverable and reported to the client as ``error`` frames.
Upstream handshake failures end the affected session only. Nothing in this
module is ever allowed to escape a session into the registry.
"""

from enum import Enum


class ChatBridgeError(Exception):
    """Base class for all chat bridge errors."""


class DecodeErrorReason(str, Enum):
    """Why a client frame could not be turned into a wire message."""

    MALFORMED_PAYLOAD = "malformed_payload"
    UNKNOWN_MESSAGE_TYPE = "unknown_message_type"
    EMPTY_CONTENT = "empty_content"


class DecodeError(ChatBridgeError):
    """A client frame was not a valid wire message."""

    def __init__(self, reason: DecodeErrorReason, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)

    @property
    def client_message(self) -> str:
        """Text sent to the client in the ``error`` frame."""
        if self.reason == DecodeErrorReason.EMPTY_CONTENT:
            return "Message content must not be empty"
        if self.reason == DecodeErrorReason.UNKNOWN_MESSAGE_TYPE:
            return f"Unsupported message type: {self.detail}"
        return "Failed to parse message"


class UpstreamHandshakeFailure(ChatBridgeError):
    """The upstream realtime session could not be established."""

    def __init__(self, detail: str, timed_out: bool = False):
        self.detail = detail
        self.timed_out = timed_out
        super().__init__(detail)


class SessionStateError(ChatBridgeError):
    """An illegal session state transition was attempted."""


class DuplicateSessionError(ChatBridgeError):
    """A client connection was registered twice."""
