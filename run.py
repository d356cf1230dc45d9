"""
Run script for starting the Realtime Chat server.

This script reads the environment settings, applies command line overrides and
starts the FastAPI server with uvicorn.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import os

import uvicorn

from realtime_chat.config.logging_config import configure_logging
from realtime_chat.config.settings import load_settings

settings = load_settings()

# Configure logging
logger = configure_logging(settings.log_level)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Start the Realtime Chat server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the server on (default: 8000 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help="Host to bind the server to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args()


def main():
    """Main entry point for starting the server."""
    args = parse_args()

    if not settings.api_key_configured:
        # The server still starts; every chat session will report a handshake failure
        logger.warning("OPENAI_API_KEY environment variable not set")

    # The app module reads LOG_LEVEL when uvicorn imports it
    os.environ["LOG_LEVEL"] = args.log_level

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"Log level: {args.log_level}")
    logger.info(f"Realtime model: {settings.realtime_model}")

    uvicorn.run(
        "realtime_chat.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        http="h11",
        access_log=False,
        ws_ping_interval=20,
        ws_ping_timeout=20,
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
