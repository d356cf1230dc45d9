"""
Configuration module for the realtime chat bridge.

This module provides centralized configuration management for the entire application,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Defines application-wide constants used across modules, including
  client message types, upstream event types, and default session limits.
- logging_config: Provides a consistent logging infrastructure with support for
  console and file-based logging with rotation capabilities.
- settings: Validated, environment-driven settings (API key, model, queue
  capacity, timeouts, bind address).

Usage examples:
```python
from realtime_chat.config.constants import LOGGER_NAME, MESSAGE_TYPE_PING
from realtime_chat.config.logging_config import configure_logging
from realtime_chat.config.settings import load_settings

logger = configure_logging()
settings = load_settings()
logger.info(f"Using model {settings.realtime_model}")
```
"""
