"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for configuration values and making it easier to
maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "realtime_chat"

# Default OpenAI model and endpoint for the Realtime API
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"

# Session defaults
DEFAULT_PENDING_QUEUE_CAPACITY = 16
DEFAULT_HANDSHAKE_TIMEOUT = 10.0  # seconds
DEFAULT_CLOSE_TIMEOUT = 5.0  # seconds

# Client -> server message types
MESSAGE_TYPE_PING = "ping"
MESSAGE_TYPE_USER_TEXT = "message"

# Upstream (OpenAI Realtime) event types
UPSTREAM_TEXT_DELTA = ("response.text.delta", "response.output_text.delta")
UPSTREAM_TEXT_DONE = ("response.text.done", "response.output_text.done")
UPSTREAM_RESPONSE_DONE = "response.done"
UPSTREAM_FUNCTION_CALL_DONE = "response.function_call_arguments.done"
UPSTREAM_ERROR = "error"

# In-band upstream error codes that end the session
FATAL_ERROR_CODES = frozenset({"session_expired", "invalid_api_key"})
