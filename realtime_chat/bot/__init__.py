"""
Bot module bridging browser chat sessions to the OpenAI Realtime API.

Key components:
- ChatSession: Owns one browser connection and one Realtime API connection,
  runs the codec in both directions and manages the session lifecycle.
- RealtimeSessionClient: Upstream handle for one text-mode Realtime API session,
  including tool execution and pending tool approvals.
- codec: Pure translation between browser frames and upstream events.
- policies: Tool approval policies injected into sessions.
- agent / tools: The greeter agent and the tools it can call.

Usage examples:
```python
from realtime_chat.bot import ChatSession, RealtimeSessionClient
from realtime_chat.services import ClientConnection, SessionRegistry

async def bridge(websocket, registry: SessionRegistry, api_key: str):
    client = ClientConnection(websocket)
    await client.accept()
    session = ChatSession(client, RealtimeSessionClient(api_key), registry)
    registry.register(session)
    await session.run()
```
"""

from realtime_chat.bot.chat_session import ChatSession
from realtime_chat.bot.policies import allow_list, auto_approve_all
from realtime_chat.bot.realtime_api import RealtimeSessionClient
