"""
Registry of live chat sessions.

Sessions insert themselves when created and remove themselves when they reach
the Closed state; nothing else edits the map. It backs the active-session
count on the status endpoints and the bulk teardown at shutdown.
"""

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Dict, List

from realtime_chat.config.constants import LOGGER_NAME
from realtime_chat.errors import DuplicateSessionError

if TYPE_CHECKING:
    from realtime_chat.bot.chat_session import ChatSession
    from realtime_chat.services.client_connection import ClientConnection

logger = logging.getLogger(LOGGER_NAME)


class SessionRegistry:
    """
    Maps each client connection to the one session that owns it.

    Map operations take a lock so the registry stays consistent whether
    sessions run on one event loop or on several threads.
    """

    def __init__(self):
        self._sessions: Dict["ClientConnection", "ChatSession"] = {}
        self._lock = threading.Lock()

    def register(self, session: "ChatSession") -> None:
        """
        Track a new session under its client connection.

        Raises:
            DuplicateSessionError: If the connection already has a session
        """
        with self._lock:
            if session.client in self._sessions:
                raise DuplicateSessionError(
                    f"Client connection {session.client!r} already has a session"
                )
            self._sessions[session.client] = session
            total = len(self._sessions)
        logger.info(f"Session registered: {session.session_id} (active sessions: {total})")

    def deregister(self, session: "ChatSession") -> bool:
        """
        Stop tracking a session. Calling it for an unknown session does nothing.

        Returns:
            bool: True if the session was removed by this call
        """
        with self._lock:
            removed = False
            for client, tracked in list(self._sessions.items()):
                if tracked is session:
                    del self._sessions[client]
                    removed = True
                    break
            total = len(self._sessions)
        if removed:
            logger.info(f"Session deregistered: {session.session_id} (active sessions: {total})")
        return removed

    def get(self, client: "ClientConnection") -> "ChatSession":
        with self._lock:
            return self._sessions.get(client)

    def count(self) -> int:
        """Number of sessions that have not reached the Closed state."""
        with self._lock:
            return len(self._sessions)

    def snapshot(self) -> List["ChatSession"]:
        with self._lock:
            return list(self._sessions.values())

    async def close_all(self, reason: str = "Server shutting down") -> None:
        """
        Ask every tracked session to close and wait for them to finish.

        Works from a snapshot, so sessions deregistering themselves while this
        runs do not disturb the iteration.
        """
        sessions = self.snapshot()
        if not sessions:
            return
        logger.info(f"Closing {len(sessions)} active session(s): {reason}")
        results = await asyncio.gather(
            *(session.close(reason, error_detail=reason) for session in sessions),
            return_exceptions=True,
        )
        for session, result in zip(sessions, results):
            if isinstance(result, Exception):
                logger.error(f"Error closing session {session.session_id}: {result}")
