"""
Services module for connection handling and session bookkeeping.

Key components:
- client_connection: ClientConnection wraps one browser WebSocket with
  idempotent close and send-after-close safety.
- session_registry: SessionRegistry tracks every live ChatSession keyed by its
  client connection, for status reporting and shutdown.
"""

from realtime_chat.services.client_connection import ClientConnection
from realtime_chat.services.session_registry import SessionRegistry
