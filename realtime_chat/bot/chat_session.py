"""
Chat session pairing one browser connection with one realtime engine session.

A session owns both handles for its whole life and runs two dispatch loops,
one per direction:

- client loop: client payload -> codec -> upstream (pings and decode errors
  are answered locally)
- upstream loop: upstream event -> codec -> client (tool approvals are settled
  by the injected approval policy)

Lifecycle: INITIALIZING -> ACTIVE -> CLOSING -> CLOSED. While the upstream
handshake runs, user messages are held in a bounded queue and replayed in
arrival order once the session becomes ACTIVE. Any failure inside a loop is
logged and closes this session only; nothing propagates to the registry or
to other sessions.
"""

import asyncio
import logging
import uuid
from collections import deque
from typing import Any, Deque, Dict, Optional, Union

from realtime_chat.bot.codec import (
    ResponseAccumulator,
    decode_client_message,
    encode_client_frames,
    encode_upstream_request,
    validate_user_text,
)
from realtime_chat.bot.policies import ApprovalPolicy, auto_approve_all
from realtime_chat.config.constants import (
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_HANDSHAKE_TIMEOUT,
    DEFAULT_PENDING_QUEUE_CAPACITY,
    LOGGER_NAME,
)
from realtime_chat.errors import DecodeError, SessionStateError, UpstreamHandshakeFailure
from realtime_chat.models.session_state import SessionState
from realtime_chat.models.upstream_events import (
    ToolApprovalRequested,
    UpstreamError,
    UpstreamEvent,
)
from realtime_chat.models.wire_messages import (
    ConnectedFrame,
    ErrorFrame,
    PingMessage,
    PongFrame,
    UserTextMessage,
)

logger = logging.getLogger(LOGGER_NAME)

# Client-facing error texts
HANDSHAKE_TIMEOUT_ERROR = "Timed out connecting to the assistant"
HANDSHAKE_FAILED_ERROR = "Failed to connect to the assistant"
UPSTREAM_LOST_ERROR = "Connection to the assistant was lost"
INTERNAL_ERROR = "Internal session error"


class ChatSession:
    """
    Bridges one client connection and one upstream realtime session.

    The upstream handle must provide ``connect() -> bool``,
    ``send_events(events) -> bool``, ``receive_event()`` (None once the stream
    has ended), ``approve(handle)``, ``reject(handle)`` and an idempotent
    ``close()``. The client handle must provide ``send(frame) -> bool``,
    ``receive()`` (None once disconnected) and an idempotent ``close()``.
    """

    def __init__(
        self,
        client,
        upstream,
        registry,
        approval_policy: ApprovalPolicy = auto_approve_all,
        pending_queue_capacity: int = DEFAULT_PENDING_QUEUE_CAPACITY,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        session_id: Optional[str] = None,
    ):
        if pending_queue_capacity < 1:
            raise ValueError("pending_queue_capacity must be at least 1")
        self.session_id = session_id or str(uuid.uuid4())
        self.client = client
        self.upstream = upstream
        self.registry = registry
        self.approval_policy = approval_policy
        self.pending_queue_capacity = pending_queue_capacity
        self.handshake_timeout = handshake_timeout
        self.close_timeout = close_timeout

        self.state = SessionState.INITIALIZING
        self.accumulator = ResponseAccumulator()
        self.close_reason: Optional[str] = None
        self.dropped_messages = 0

        self._pending: Deque[UserTextMessage] = deque()
        self._dispatch_lock = asyncio.Lock()
        self._tasks: Dict[str, asyncio.Task] = {}
        self._closed = asyncio.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_closing(self) -> bool:
        return self.state in (SessionState.CLOSING, SessionState.CLOSED)

    def _transition(self, target: SessionState) -> None:
        if not self.state.can_transition_to(target):
            raise SessionStateError(
                f"Illegal transition {self.state.value} -> {target.value}"
            )
        logger.info(f"[{self.session_id}] Session state: {self.state.value} -> {target.value}")
        self.state = target

    async def run(self) -> None:
        """
        Drive the session until it is closed.

        Sends the ``connected`` frame straight away, starts the client loop and
        the upstream handshake side by side, then waits for teardown.
        """
        if self.state is not SessionState.INITIALIZING:
            raise SessionStateError(f"Session {self.session_id} has already been started")

        try:
            await self.client.send(ConnectedFrame())
            self._tasks["client"] = asyncio.create_task(self._client_loop())
            self._tasks["handshake"] = asyncio.create_task(self._establish_upstream())
        except Exception as e:
            await self._fail(e, "session start")
            return

        try:
            await self._closed.wait()
        except asyncio.CancelledError:
            await self.close("Session cancelled")
            raise

    async def close(self, reason: str = "Session closed", error_detail: Optional[str] = None) -> None:
        """
        Tear the session down. Only the first call does any work.

        Args:
            reason: Why the session is closing, for the logs
            error_detail: If given, sent to the client as an ``error`` frame
                before the socket is closed
        """
        if self.is_closing:
            # Callers outside the session wait for the teardown to finish
            if asyncio.current_task() not in self._tasks.values():
                await self._closed.wait()
            return

        self.close_reason = reason
        self._transition(SessionState.CLOSING)
        logger.info(f"[{self.session_id}] Closing session: {reason}")

        try:
            if error_detail:
                await self._send_error_frame(error_detail)
            await self._cancel_tasks()
            await self._close_handles()
        except Exception as e:
            logger.error(f"[{self.session_id}] Error during session teardown: {e}", exc_info=True)
        finally:
            if self._pending:
                logger.warning(
                    f"[{self.session_id}] Discarding {len(self._pending)} queued message(s) at close"
                )
                self._pending.clear()
            self._transition(SessionState.CLOSED)
            self.registry.deregister(self)
            self.client = None
            self.upstream = None
            self._closed.set()
            logger.info(f"[{self.session_id}] Session closed")

    async def _send_error_frame(self, error_detail: str) -> None:
        # A broken client socket must not stop the handles from closing
        try:
            await self.client.send(ErrorFrame(error=error_detail))
        except Exception as e:
            logger.warning(f"[{self.session_id}] Could not send error frame to client: {e}")

    async def _cancel_tasks(self) -> None:
        current = asyncio.current_task()
        tasks = [t for t in self._tasks.values() if t is not current and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self.close_timeout)
            if pending:
                logger.warning(f"[{self.session_id}] {len(pending)} task(s) did not stop within {self.close_timeout}s")

    async def _close_handles(self) -> None:
        try:
            results = await asyncio.wait_for(
                asyncio.gather(self.upstream.close(), self.client.close(), return_exceptions=True),
                timeout=self.close_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{self.session_id}] Handles did not close within {self.close_timeout}s")
            return
        for name, result in zip(("upstream", "client"), results):
            if isinstance(result, Exception):
                logger.warning(f"[{self.session_id}] Error closing {name} handle: {result}")

    async def _fail(self, error: Exception, where: str) -> None:
        logger.error(
            f"[{self.session_id}] Unexpected error in {where} (state={self.state.value}): {error}",
            exc_info=error,
        )
        await self.close(f"Unexpected error in {where}", error_detail=INTERNAL_ERROR)

    # ------------------------------------------------------------------
    # Upstream handshake
    # ------------------------------------------------------------------

    async def _connect_upstream(self) -> None:
        """
        Run the upstream handshake within the handshake timeout.

        Raises:
            UpstreamHandshakeFailure: If the handshake timed out, raised, or
                was refused
        """
        try:
            connected = await asyncio.wait_for(
                self.upstream.connect(), timeout=self.handshake_timeout
            )
        except asyncio.TimeoutError as e:
            raise UpstreamHandshakeFailure(
                f"timed out after {self.handshake_timeout}s", timed_out=True
            ) from e
        except Exception as e:
            raise UpstreamHandshakeFailure(f"connect raised {type(e).__name__}: {e}") from e
        if not connected:
            raise UpstreamHandshakeFailure("upstream refused the session")

    async def _establish_upstream(self) -> None:
        try:
            try:
                await self._connect_upstream()
            except UpstreamHandshakeFailure as e:
                logger.error(f"[{self.session_id}] Upstream handshake failed: {e}")
                error_detail = HANDSHAKE_TIMEOUT_ERROR if e.timed_out else HANDSHAKE_FAILED_ERROR
                await self.close(f"Upstream handshake failed: {e}", error_detail=error_detail)
                return

            async with self._dispatch_lock:
                if self.state is not SessionState.INITIALIZING:
                    return
                self._transition(SessionState.ACTIVE)
                self._tasks["upstream"] = asyncio.create_task(self._upstream_loop())
                flushed = await self._flush_pending()

            if not flushed:
                await self.close("Upstream send failed", error_detail=UPSTREAM_LOST_ERROR)
        except Exception as e:
            await self._fail(e, "upstream handshake")

    async def _flush_pending(self) -> bool:
        if self._pending:
            logger.info(f"[{self.session_id}] Replaying {len(self._pending)} queued message(s)")
        while self._pending:
            message = self._pending.popleft()
            if not await self._forward_user_text(message):
                return False
        return True

    def _enqueue_pending(self, message: UserTextMessage) -> None:
        if len(self._pending) >= self.pending_queue_capacity:
            self._pending.popleft()
            self.dropped_messages += 1
            logger.warning(
                f"[{self.session_id}] Pending queue full ({self.pending_queue_capacity}), "
                f"dropped oldest message"
            )
        self._pending.append(message)
        logger.debug(f"[{self.session_id}] Queued message while initializing ({len(self._pending)} pending)")

    # ------------------------------------------------------------------
    # Client -> upstream
    # ------------------------------------------------------------------

    async def _client_loop(self) -> None:
        try:
            while not self.is_closing:
                raw = await self.client.receive()
                if raw is None:
                    await self.close("Client disconnected")
                    return
                if self.is_closing:
                    logger.debug(f"[{self.session_id}] Dropping client message received while closing")
                    return
                await self._handle_client_payload(raw)
        except Exception as e:
            await self._fail(e, "client loop")

    async def _handle_client_payload(self, raw: Union[str, bytes]) -> None:
        try:
            message = decode_client_message(raw)
            if isinstance(message, UserTextMessage):
                validate_user_text(message)
        except DecodeError as e:
            logger.warning(f"[{self.session_id}] Rejected client frame: {e}")
            await self.client.send(ErrorFrame(error=e.client_message))
            return

        if isinstance(message, PingMessage):
            await self.client.send(PongFrame())
            return

        logger.info(f"[{self.session_id}] User message: {message.content[:200]}")
        async with self._dispatch_lock:
            if self.state is SessionState.INITIALIZING:
                self._enqueue_pending(message)
                return
            if self.state is not SessionState.ACTIVE:
                logger.debug(f"[{self.session_id}] Dropping user message in state {self.state.value}")
                return
            sent = await self._forward_user_text(message)

        if not sent:
            await self.close("Upstream send failed", error_detail=UPSTREAM_LOST_ERROR)

    async def _forward_user_text(self, message: UserTextMessage) -> bool:
        events = encode_upstream_request(message)
        sent = await self.upstream.send_events(events)
        if sent:
            logger.debug(f"[{self.session_id}] Forwarded message to upstream as {len(events)} event(s)")
        return sent

    # ------------------------------------------------------------------
    # Upstream -> client
    # ------------------------------------------------------------------

    async def _upstream_loop(self) -> None:
        try:
            while self.state is SessionState.ACTIVE:
                event = await self.upstream.receive_event()
                if event is None:
                    await self.close("Upstream connection closed", error_detail=UPSTREAM_LOST_ERROR)
                    return
                if self.state is not SessionState.ACTIVE:
                    return
                await self._handle_upstream_event(event)
        except Exception as e:
            await self._fail(e, "upstream loop")

    async def _handle_upstream_event(self, event: UpstreamEvent) -> None:
        if isinstance(event, ToolApprovalRequested):
            await self._settle_tool_approval(event)
            return

        for frame in encode_client_frames(event, self.accumulator):
            await self.client.send(frame)

        if isinstance(event, UpstreamError):
            if event.fatal:
                await self.close(f"Fatal upstream error: {event.code}")
            else:
                logger.warning(f"[{self.session_id}] Upstream error forwarded to client: {event.detail} (code={event.code})")

    async def _settle_tool_approval(self, request: ToolApprovalRequested) -> None:
        try:
            approved = bool(self.approval_policy(request))
        except Exception as e:
            logger.error(f"[{self.session_id}] Approval policy failed for {request.tool_name}: {e}", exc_info=True)
            approved = False

        if approved:
            logger.info(f"[{self.session_id}] Approving tool call for {request.tool_name}")
            settled = await self.upstream.approve(request.approval_handle)
        else:
            logger.info(f"[{self.session_id}] Rejecting tool call for {request.tool_name}")
            settled = await self.upstream.reject(request.approval_handle)

        if not settled:
            logger.error(f"[{self.session_id}] Failed to settle tool call for {request.tool_name}")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """Connection status of this session."""
        return {
            "sessionId": self.session_id,
            "state": self.state.value,
            "clientConnected": bool(self.client is not None and getattr(self.client, "is_open", False)),
            "upstreamConnected": bool(self.upstream is not None and getattr(self.upstream, "is_connected", False)),
            "pendingMessages": len(self._pending),
        }

    def __repr__(self) -> str:
        return f"ChatSession(id={self.session_id}, state={self.state.value})"
