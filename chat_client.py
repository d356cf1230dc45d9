"""
Terminal client for the realtime chat WebSocket.

Connects to /chat-stream, prints streamed assistant text as it arrives and sends
each line typed on stdin as a chat message. Useful for exercising the server
without a browser.

Usage:
    python chat_client.py [--url ws://localhost:8000/chat-stream] [--message "hello"]
"""

import argparse
import asyncio
import json
import logging
import sys

import websockets
from websockets.exceptions import ConnectionClosed

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("chat_client")


async def receive_frames(websocket, turn_done: asyncio.Event) -> None:
    """Print frames from the server until the connection closes."""
    try:
        async for raw in websocket:
            frame = json.loads(raw)
            frame_type = frame.get("type")
            if frame_type == "connected":
                logger.info("Server accepted the connection")
            elif frame_type == "text.delta":
                print(frame.get("delta", ""), end="", flush=True)
            elif frame_type == "assistant.message":
                print()
                logger.debug(f"Full reply: {frame.get('text')}")
            elif frame_type == "response.done":
                turn_done.set()
            elif frame_type == "error":
                logger.error(f"Server error: {frame.get('error')}")
                turn_done.set()
            elif frame_type == "pong":
                logger.debug("pong")
            else:
                logger.warning(f"Unexpected frame: {frame}")
    except ConnectionClosed as e:
        logger.info(f"Connection closed: {e}")
    finally:
        turn_done.set()


async def send_message(websocket, content: str) -> None:
    await websocket.send(json.dumps({"type": "message", "content": content}))


async def run_chat_client(url: str, message: str = None) -> None:
    """
    Chat with the server.

    Args:
        url: WebSocket URL of the chat stream
        message: If given, send this one message, wait for the reply and exit
    """
    async with websockets.connect(url) as websocket:
        logger.info(f"WebSocket connection established to {url}")
        turn_done = asyncio.Event()
        receiver = asyncio.create_task(receive_frames(websocket, turn_done))

        try:
            if message:
                await send_message(websocket, message)
                await turn_done.wait()
                return

            loop = asyncio.get_running_loop()
            while not receiver.done():
                line = await loop.run_in_executor(None, sys.stdin.readline)
                if not line:
                    break
                line = line.strip()
                if not line:
                    continue
                turn_done.clear()
                await send_message(websocket, line)
                await turn_done.wait()
        finally:
            receiver.cancel()


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Terminal client for the realtime chat server")
    parser.add_argument(
        "--url",
        default="ws://localhost:8000/chat-stream",
        help="Chat WebSocket URL (default: ws://localhost:8000/chat-stream)",
    )
    parser.add_argument("--message", help="Send a single message and exit")
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    try:
        asyncio.run(run_chat_client(args.url, args.message))
    except KeyboardInterrupt:
        logger.info("Interrupted")
