import asyncio
import json
import logging
import time
import traceback
from typing import Any, Dict, Iterable, List, Optional, Tuple

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, ConnectionClosedOK

from realtime_chat.bot.agent import RealtimeAgent, greeter_agent
from realtime_chat.bot.codec import parse_upstream_event, serialize_upstream_event
from realtime_chat.bot.tools import Tool
from realtime_chat.config.constants import (
    DEFAULT_REALTIME_MODEL,
    DEFAULT_REALTIME_URL,
    LOGGER_NAME,
    UPSTREAM_FUNCTION_CALL_DONE,
)
from realtime_chat.models.openai_schemas import (
    ConversationItemCreateMessage,
    RealtimeFunctionCallOutputItem,
    ResponseCreateMessage,
    SessionUpdateMessage,
)
from realtime_chat.models.upstream_events import (
    ToolApprovalRequested,
    UnknownEvent,
    UpstreamEvent,
)

logger = logging.getLogger(LOGGER_NAME)

CONNECTION_TIMEOUT = 30  # seconds
SEND_TIMEOUT = 5.0  # seconds

# WebSocket configuration
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB
WS_MAX_QUEUE = 32
WS_PING_INTERVAL = 20  # seconds
WS_PING_TIMEOUT = 20  # seconds

TOOL_REJECTED_OUTPUT = "The tool call was rejected."


class RealtimeSessionClient:
    """
    Client for one text-mode session with the OpenAI Realtime API over WebSocket.

    This is the upstream handle owned by a single chat session. It exposes:
    - connect(): open the socket and configure the session (returns bool)
    - send_event() / send_events(): send upstream events; a batch is never
      interleaved with another batch
    - receive_event(): next parsed upstream event, or None once the stream ends
    - approve() / reject(): settle a pending tool approval
    - close(): idempotent teardown

    Tool calls for tools that do not need approval are run here directly. Calls
    to tools that need approval are surfaced as ``ToolApprovalRequested`` events
    and wait for approve() or reject().
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_REALTIME_MODEL,
        agent: RealtimeAgent = greeter_agent,
        url: str = DEFAULT_REALTIME_URL,
        connection_timeout: float = CONNECTION_TIMEOUT,
    ):
        self.api_key = api_key
        self.model = model
        self.agent = agent
        self.url = url
        self.connection_timeout = connection_timeout
        self.ws = None
        self.event_queue: asyncio.Queue = asyncio.Queue()
        self._recv_task: Optional[asyncio.Task] = None
        self._send_lock = asyncio.Lock()
        self._connection_active = False
        self._is_closing = False
        self._stream_ended = False
        self._last_activity = 0.0
        self._pending_approvals: Dict[str, Tuple[Tool, Dict[str, Any]]] = {}
        logger.info(f"RealtimeSessionClient initialized with model: {model}")

    @property
    def is_connected(self) -> bool:
        return self._connection_active and not self._is_closing

    async def connect(self) -> bool:
        """
        Connect to the OpenAI Realtime WebSocket endpoint and configure the session.

        Returns:
            bool: True if connection was successful, False otherwise
        """
        if self._is_closing:
            logger.warning("Cannot connect - client is closing")
            return False

        if not self.api_key:
            logger.error("OPENAI_API_KEY is not configured, cannot open realtime session")
            return False

        url = f"{self.url}?model={self.model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }

        try:
            logger.info(f"Connecting to OpenAI Realtime API with model: {self.model}")
            logger.debug(f"WebSocket URL: {url}")
            logger.debug("Using headers: Authorization: Bearer [API_KEY_HIDDEN], OpenAI-Beta: realtime=v1")

            connection_start = time.time()
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    max_size=WS_MAX_SIZE,
                    max_queue=WS_MAX_QUEUE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=WS_PING_TIMEOUT,
                    compression=None,
                    additional_headers=headers,
                ),
                timeout=self.connection_timeout,
            )
            connection_time = time.time() - connection_start
            logger.debug(f"WebSocket connection established in {connection_time:.2f} seconds")

            session_update = SessionUpdateMessage(session=self.agent.session_config())
            await self.ws.send(session_update.model_dump_json())
            logger.debug(f"Sent session.update for agent: {self.agent.name}")

            self._connection_active = True
            self._last_activity = time.time()

            logger.debug("Starting WebSocket receive loop")
            self._recv_task = asyncio.create_task(self._recv_loop())

            logger.info("Successfully connected to OpenAI Realtime API")
            return True
        except asyncio.TimeoutError:
            logger.error(f"Timeout while connecting to OpenAI Realtime API (after {self.connection_timeout}s)")
            await self._discard_socket()
            return False
        except asyncio.CancelledError:
            await self._discard_socket()
            raise
        except Exception as e:
            logger.error(f"Failed to connect to OpenAI Realtime API: {e}")
            logger.debug(f"Connection error details: {traceback.format_exc()}")
            await self._discard_socket()
            return False

    async def _discard_socket(self) -> None:
        self._connection_active = False
        if self.ws is not None:
            try:
                await self.ws.close()
            except Exception as e:
                logger.debug(f"Error closing half-open WebSocket: {e}")
            self.ws = None

    async def send_event(self, event: UpstreamEvent) -> bool:
        """
        Send a single upstream event.

        Returns:
            bool: True if the event was sent, False otherwise
        """
        return await self.send_events([event])

    async def send_events(self, events: Iterable[UpstreamEvent]) -> bool:
        """
        Send upstream events in order as one uninterrupted batch.

        Returns:
            bool: True if every event was sent, False otherwise
        """
        return await self._send_raw([serialize_upstream_event(event) for event in events])

    async def _send_raw(self, messages: List[Dict[str, Any]]) -> bool:
        if not self.is_connected or self.ws is None:
            logger.warning("Cannot send event - connection not active")
            return False

        async with self._send_lock:
            try:
                for message in messages:
                    payload = json.dumps(message)
                    logger.debug(f"Sending message: {payload[:200]}")
                    await asyncio.wait_for(self.ws.send(payload), timeout=SEND_TIMEOUT)
                self._last_activity = time.time()
                return True
            except asyncio.TimeoutError:
                logger.warning("Timeout while sending event to OpenAI")
                self._connection_active = False
                return False
            except ConnectionClosedOK:
                logger.info("Connection closed normally while sending event")
                self._connection_active = False
                return False
            except ConnectionClosedError as e:
                logger.warning(f"Connection closed while sending event: {e}")
                self._connection_active = False
                return False

    async def _recv_loop(self) -> None:
        """
        Internal loop to receive events from OpenAI and queue them as upstream events.
        """
        try:
            logger.debug("Receive loop started")
            while self._connection_active and not self._is_closing:
                message = await self.ws.recv()
                self._last_activity = time.time()

                if isinstance(message, bytes):
                    logger.debug(f"Ignoring binary frame of size {len(message)} bytes on text session")
                    continue

                try:
                    data = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning(f"Received invalid JSON: {message[:100]}...")
                    continue
                if not isinstance(data, dict):
                    logger.warning(f"Received non-object event: {message[:100]}...")
                    continue

                if data.get("type") == UPSTREAM_FUNCTION_CALL_DONE:
                    await self._handle_function_call(data)
                    continue

                event = parse_upstream_event(data)
                if isinstance(event, UnknownEvent):
                    logger.debug(f"Received message of type: {event.raw_type or 'unknown'}")
                elif event.kind == "error":
                    logger.error(f"Received error from OpenAI: {data}")
                await self.event_queue.put(event)

        except ConnectionClosedOK:
            logger.info("WebSocket connection closed normally")
        except ConnectionClosedError as e:
            logger.warning(f"WebSocket connection closed unexpectedly: {e}")
        except ConnectionClosed as e:
            logger.warning(f"WebSocket connection closed: {e}")
        except asyncio.CancelledError:
            logger.debug("Receive loop cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in receive loop: {e}")
            logger.debug(f"Receive loop error details: {traceback.format_exc()}")
        finally:
            self._connection_active = False
            self._end_stream()
            logger.info("Receive loop exited, connection marked as inactive")

    def _end_stream(self) -> None:
        if not self._stream_ended:
            self._stream_ended = True
            self.event_queue.put_nowait(None)

    async def receive_event(self) -> Optional[UpstreamEvent]:
        """
        Await the next upstream event.

        Returns:
            The next event, or None once the upstream stream has ended
        """
        event = await self.event_queue.get()
        if event is None:
            # Keep the end marker visible to any later caller
            self.event_queue.put_nowait(None)
        return event

    async def _handle_function_call(self, data: Dict[str, Any]) -> None:
        name = data.get("name") or ""
        call_id = data.get("call_id") or ""
        try:
            arguments = json.loads(data.get("arguments") or "{}")
        except json.JSONDecodeError:
            logger.warning(f"Invalid arguments for tool call {name}: {data.get('arguments')!r}")
            arguments = {}
        if not isinstance(arguments, dict):
            arguments = {}

        tool = self.agent.get_tool(name)
        if tool is None:
            logger.warning(f"Model called unknown tool: {name}")
            await self._send_tool_output(call_id, f"Unknown tool: {name}")
            return

        if tool.needs_approval:
            logger.info(f"Tool approval requested for {name} (call {call_id})")
            self._pending_approvals[call_id] = (tool, arguments)
            await self.event_queue.put(
                ToolApprovalRequested(tool_name=name, approval_handle=call_id, arguments=arguments)
            )
            return

        await self._run_tool(call_id, tool, arguments)

    async def _run_tool(self, call_id: str, tool: Tool, arguments: Dict[str, Any]) -> bool:
        try:
            output = await tool.invoke(arguments)
        except Exception as e:
            logger.error(f"Tool {tool.name} failed: {e}", exc_info=True)
            output = f"Tool {tool.name} failed: {e}"
        logger.info(f"Tool {tool.name} completed for call {call_id}")
        return await self._send_tool_output(call_id, output)

    async def _send_tool_output(self, call_id: str, output: str) -> bool:
        output_message = ConversationItemCreateMessage(
            item=RealtimeFunctionCallOutputItem(call_id=call_id, output=output)
        )
        return await self._send_raw(
            [output_message.model_dump(mode="json"), ResponseCreateMessage().model_dump(mode="json")]
        )

    async def approve(self, approval_handle: str) -> bool:
        """
        Approve a pending tool call: run the tool and return its output to the model.

        Returns:
            bool: True if the output was delivered, False otherwise
        """
        pending = self._pending_approvals.pop(approval_handle, None)
        if pending is None:
            logger.warning(f"No pending tool approval for handle: {approval_handle}")
            return False
        tool, arguments = pending
        logger.info(f"Approving tool call for {tool.name}")
        return await self._run_tool(approval_handle, tool, arguments)

    async def reject(self, approval_handle: str) -> bool:
        """
        Reject a pending tool call; the model is told the call was rejected.

        Returns:
            bool: True if the rejection was delivered, False otherwise
        """
        pending = self._pending_approvals.pop(approval_handle, None)
        if pending is None:
            logger.warning(f"No pending tool approval for handle: {approval_handle}")
            return False
        logger.info(f"Rejecting tool call for {pending[0].name}")
        return await self._send_tool_output(approval_handle, TOOL_REJECTED_OUTPUT)

    async def close(self) -> None:
        """
        Close the WebSocket connection and cancel the receive task. Safe to call twice.
        """
        if self._is_closing:
            return
        logger.info("Closing OpenAI Realtime client")
        self._is_closing = True
        self._connection_active = False
        self._pending_approvals.clear()

        if self._recv_task and not self._recv_task.done():
            logger.debug("Cancelling receive task")
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                logger.debug("Receive task cancelled successfully")
            except Exception as e:
                logger.warning(f"Error while cancelling receive task: {e}")

        if self.ws:
            logger.debug("Closing WebSocket connection")
            try:
                await self.ws.close()
            except Exception as e:
                logger.warning(f"Error closing WebSocket: {e}")

        self._end_stream()
        logger.info("OpenAI Realtime client closed")
