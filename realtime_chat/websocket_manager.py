"""
WebSocket connection manager for the browser chat stream.

This module is the entry point for every inbound chat connection. For each
socket it:
- Accepts the WebSocket and wraps it in a ClientConnection
- Builds a RealtimeSessionClient with the configured model and credential
- Creates a ChatSession, registers it, and runs it until teardown

The upstream handshake happens inside the session, so a slow engine never
holds up the acceptance of other connections.
"""

import logging
from typing import Callable, Optional

from fastapi import WebSocket

from realtime_chat.bot.chat_session import ChatSession
from realtime_chat.bot.policies import ApprovalPolicy, auto_approve_all
from realtime_chat.bot.realtime_api import RealtimeSessionClient
from realtime_chat.config.constants import LOGGER_NAME
from realtime_chat.config.settings import Settings
from realtime_chat.services.client_connection import ClientConnection
from realtime_chat.services.session_registry import SessionRegistry

logger = logging.getLogger(LOGGER_NAME)

UpstreamFactory = Callable[[Settings], object]


def default_upstream_factory(settings: Settings) -> RealtimeSessionClient:
    """Create the upstream handle for one session from the current settings."""
    return RealtimeSessionClient(
        api_key=settings.openai_api_key,
        model=settings.realtime_model,
        url=settings.realtime_url,
    )


class ChatWebSocketManager:
    """Creates, registers and runs one ChatSession per inbound chat WebSocket."""

    def __init__(
        self,
        settings: Settings,
        registry: Optional[SessionRegistry] = None,
        upstream_factory: UpstreamFactory = default_upstream_factory,
        approval_policy: ApprovalPolicy = auto_approve_all,
    ):
        self.settings = settings
        self.registry = registry if registry is not None else SessionRegistry()
        self.upstream_factory = upstream_factory
        self.approval_policy = approval_policy

    def create_session(self, client: ClientConnection) -> ChatSession:
        """Build a session in the INITIALIZING state and register it."""
        session = ChatSession(
            client=client,
            upstream=self.upstream_factory(self.settings),
            registry=self.registry,
            approval_policy=self.approval_policy,
            pending_queue_capacity=self.settings.pending_queue_capacity,
            handshake_timeout=self.settings.handshake_timeout,
            close_timeout=self.settings.close_timeout,
        )
        self.registry.register(session)
        return session

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """Handle a chat WebSocket connection throughout its lifecycle.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object

        Returns once the session has closed both the client socket and the
        upstream connection and removed itself from the registry.
        """
        client = ClientConnection(websocket)
        await client.accept()

        try:
            session = self.create_session(client)
        except Exception as e:
            logger.error(f"Could not create chat session: {e}", exc_info=True)
            await client.close(code=1011, reason="Session setup failed")
            return

        logger.info(f"Chat session {session.session_id} started for connection {client.connection_id}")
        await session.run()
        logger.info(f"Chat session {session.session_id} finished: {session.close_reason}")

    @property
    def active_sessions(self) -> int:
        return self.registry.count()

    async def shutdown(self) -> None:
        await self.registry.close_all()
