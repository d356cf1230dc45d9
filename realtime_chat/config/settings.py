"""
Environment-driven settings for the chat bridge.

Values are read from the process environment, optionally seeded from a ``.env``
file in the working directory, and validated with pydantic so that a bad value
fails at startup rather than on the first connection.
"""

import os
from pathlib import Path
from typing import Optional

import dotenv
from pydantic import BaseModel, Field, field_validator

from realtime_chat.config.constants import (
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_HANDSHAKE_TIMEOUT,
    DEFAULT_PENDING_QUEUE_CAPACITY,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_REALTIME_URL,
)


class Settings(BaseModel):
    """Runtime configuration consumed by the transport and the HTTP surface."""

    openai_api_key: Optional[str] = Field(
        None, description="Credential for the OpenAI Realtime API"
    )
    realtime_model: str = Field(
        DEFAULT_REALTIME_MODEL, description="Upstream model identifier"
    )
    realtime_url: str = Field(
        DEFAULT_REALTIME_URL, description="Upstream WebSocket endpoint"
    )
    pending_queue_capacity: int = Field(
        DEFAULT_PENDING_QUEUE_CAPACITY,
        ge=1,
        description="Messages held per session while the upstream handshake runs",
    )
    handshake_timeout: float = Field(
        DEFAULT_HANDSHAKE_TIMEOUT,
        gt=0,
        description="Seconds allowed for the upstream handshake",
    )
    close_timeout: float = Field(
        DEFAULT_CLOSE_TIMEOUT,
        gt=0,
        description="Seconds allowed for both handles to finish closing",
    )
    host: str = "0.0.0.0"
    port: int = Field(8000, ge=1, le=65535)
    log_level: str = "INFO"

    @field_validator("openai_api_key")
    def blank_key_is_missing(cls, v):
        """Treat an empty or whitespace-only key as not configured."""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("log_level")
    def validate_log_level(cls, v):
        """Validate that the log level is a standard level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unsupported log level: {v}")
        return level

    @property
    def api_key_configured(self) -> bool:
        return self.openai_api_key is not None


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Build a Settings instance from the environment.

    Args:
        env_file: Optional path to a dotenv file; defaults to ``./.env`` when present

    Returns:
        Settings: The validated settings
    """
    env_path = env_file or Path(".") / ".env"
    if env_path.exists():
        dotenv.load_dotenv(env_path)

    values = {
        "openai_api_key": os.getenv("OPENAI_API_KEY"),
        "realtime_model": os.getenv("OPENAI_REALTIME_MODEL"),
        "realtime_url": os.getenv("OPENAI_REALTIME_URL"),
        "pending_queue_capacity": os.getenv("CHAT_PENDING_QUEUE_CAPACITY"),
        "handshake_timeout": os.getenv("CHAT_HANDSHAKE_TIMEOUT"),
        "close_timeout": os.getenv("CHAT_CLOSE_TIMEOUT"),
        "host": os.getenv("HOST"),
        "port": os.getenv("PORT"),
        "log_level": os.getenv("LOG_LEVEL"),
    }
    # Unset variables fall back to the model defaults
    return Settings(**{k: v for k, v in values.items() if v is not None})
