"""
Realtime Chat - Browser chat bridged to the OpenAI Realtime API

This application lets browser clients chat with an OpenAI realtime agent over a
plain JSON WebSocket protocol. The server translates between that message-oriented
protocol and the event-streamed Realtime API, running one independent session per
connected browser.

Architecture Overview:
- FastAPI server exposing the chat page, status endpoints and the chat WebSocket
- One ChatSession per browser connection, owning its client socket and its
  upstream Realtime API connection
- A stateless codec translating frames in both directions
- A session registry used for status reporting and shutdown

Key Components:
- bot: Chat session state machine, protocol codec, Realtime API client, agent,
  tools and tool approval policies
- config: Application-wide constants, logging setup and environment settings
- models: Pydantic models for wire frames, upstream events and session states
- services: Client connection handle and session registry
- websocket_manager: Entry point creating and running a session per connection

Getting Started:
1. Set up environment variables:
   - OPENAI_API_KEY: Your OpenAI API key
   - OPENAI_REALTIME_MODEL: Realtime model (default gpt-4o-realtime-preview-2024-12-17)
   - PORT: Port to run the server on (default 8000)
   - HOST: Host to bind the server to (default 0.0.0.0)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python run.py
   ```

3. Open http://localhost:8000/chat in a browser.
"""
