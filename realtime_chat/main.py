"""
FastAPI server for the realtime browser chat.

This module initializes and configures the FastAPI application that serves the
browser chat page and the chat WebSocket. Each chat WebSocket is bridged to its
own OpenAI Realtime session; all live sessions are tracked in one registry that
feeds the status endpoints and is drained on shutdown.
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, WebSocket
from fastapi.responses import FileResponse

from realtime_chat.config.logging_config import configure_logging
from realtime_chat.config.settings import load_settings
from realtime_chat.services.session_registry import SessionRegistry
from realtime_chat.websocket_manager import ChatWebSocketManager

settings = load_settings()

# Configure logging
logger = configure_logging(settings.log_level)

PUBLIC_DIR = Path(__file__).parent / "public"

# Shared registry of live chat sessions
session_registry = SessionRegistry()
websocket_manager = ChatWebSocketManager(settings, registry=session_registry)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"Realtime chat ready (model={settings.realtime_model}, "
        f"api_key_configured={settings.api_key_configured})"
    )
    yield
    logger.info("Shutting down, closing active chat sessions")
    await websocket_manager.shutdown()


app = FastAPI(
    title="Realtime Chat",
    description="Browser chat bridged to the OpenAI Realtime API",
    version="1.0.0",
    lifespan=lifespan,
)


@app.websocket("/chat-stream")
async def chat_stream(websocket: WebSocket):
    """WebSocket endpoint for browser chat clients.

    The server sends ``{"type": "connected"}`` as soon as the socket is
    accepted, then relays ``message``/``ping`` frames to the assistant and
    streams ``text.delta``, ``assistant.message``, ``response.done`` and
    ``error`` frames back.
    """
    await websocket_manager.handle_websocket(websocket)


@app.get("/chat")
async def chat_page():
    """Serve the browser chat interface."""
    return FileResponse(PUBLIC_DIR / "chat.html", media_type="text/html")


@app.get("/chat-status")
async def chat_status():
    """Chat service status, including the number of live sessions."""
    return {
        "status": "online",
        "message": "Browser Chat Service is running!",
        "transport": "browser-chat",
        "activeSessions": session_registry.count(),
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status information indicating the server is operational.
    """
    return {
        "status": "healthy",
        "openai_api_key_configured": settings.api_key_configured,
        "active_sessions": session_registry.count(),
    }


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API.

    Returns:
        dict: Basic information about the API and its purpose.
    """
    return {
        "name": "Realtime Chat",
        "description": "Browser chat bridged to the OpenAI Realtime API",
        "version": "1.0.0",
        "endpoints": {
            "/chat": "Browser chat interface",
            "/chat-status": "Chat service status",
            "/chat-stream": "WebSocket endpoint for browser chat clients",
            "/health": "Health check endpoint",
        },
    }


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        ws_ping_interval=20,
        ws_ping_timeout=20,
    )
