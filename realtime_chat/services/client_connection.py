"""
Client connection handle wrapping one browser WebSocket.

The handle is the single point through which a chat session talks to its
browser: it serializes outgoing frames, yields incoming payloads, and closes
the socket at most once. Sending after the socket is gone is a logged no-op,
so a session tearing down never fails because the browser left first.
"""

import json
import logging
import uuid
from typing import Any, Dict, Optional, Union

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from realtime_chat.config.constants import LOGGER_NAME
from realtime_chat.models.wire_messages import BaseFrame

logger = logging.getLogger(LOGGER_NAME)


class ClientConnection:
    """Client Connection Handle around a FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.connection_id = uuid.uuid4().hex[:12]
        self._disconnected = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not (self._disconnected or self._closed)

    @property
    def peer(self) -> str:
        client = getattr(self.websocket, "client", None)
        if client is None:
            return "unknown"
        host = getattr(client, "host", None)
        port = getattr(client, "port", None)
        return f"{host}:{port}" if host else str(client)

    async def accept(self) -> None:
        await self.websocket.accept()
        logger.info(f"[{self.connection_id}] WebSocket connection accepted from {self.peer}")

    async def send(self, frame: Union[BaseFrame, Dict[str, Any]]) -> bool:
        """
        Send one frame to the client.

        Args:
            frame: A wire frame model or a plain dict

        Returns:
            bool: True if the frame was written, False if the socket is gone
        """
        if not self.is_open:
            logger.debug(f"[{self.connection_id}] Dropping frame for closed connection: {frame}")
            return False

        payload = frame.to_json() if isinstance(frame, BaseFrame) else json.dumps(frame)
        try:
            await self.websocket.send_text(payload)
            return True
        except WebSocketDisconnect:
            logger.info(f"[{self.connection_id}] Client disconnected while sending")
            self._disconnected = True
            return False
        except RuntimeError as e:
            # Starlette raises RuntimeError once the socket has been closed
            logger.debug(f"[{self.connection_id}] Could not send frame: {e}")
            self._disconnected = True
            return False

    async def receive(self) -> Optional[Union[str, bytes]]:
        """
        Wait for the next client payload.

        Returns:
            The text or bytes payload, or None once the client has disconnected
        """
        if not self.is_open:
            return None
        try:
            message = await self.websocket.receive()
        except WebSocketDisconnect:
            self._disconnected = True
            return None
        except RuntimeError as e:
            logger.debug(f"[{self.connection_id}] Receive on closed socket: {e}")
            self._disconnected = True
            return None

        if message.get("type") == "websocket.disconnect":
            logger.info(f"[{self.connection_id}] Client disconnected (code {message.get('code')})")
            self._disconnected = True
            return None
        if message.get("text") is not None:
            return message["text"]
        if message.get("bytes") is not None:
            return message["bytes"]
        return ""

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the socket. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._disconnected:
            return
        try:
            if self.websocket.application_state == WebSocketState.CONNECTED:
                await self.websocket.close(code=code, reason=reason)
                logger.info(f"[{self.connection_id}] WebSocket connection closed")
        except Exception as e:
            logger.debug(f"[{self.connection_id}] Error closing WebSocket: {e}")

    def __repr__(self) -> str:
        return f"ClientConnection(id={self.connection_id}, open={self.is_open})"
