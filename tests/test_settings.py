"""
Unit tests for environment-driven settings.
"""

import pytest
from pydantic import ValidationError

from realtime_chat.config.constants import (
    DEFAULT_HANDSHAKE_TIMEOUT,
    DEFAULT_PENDING_QUEUE_CAPACITY,
    DEFAULT_REALTIME_MODEL,
)
from realtime_chat.config.settings import Settings, load_settings

ENV_VARS = [
    "OPENAI_API_KEY",
    "OPENAI_REALTIME_MODEL",
    "OPENAI_REALTIME_URL",
    "CHAT_PENDING_QUEUE_CAPACITY",
    "CHAT_HANDSHAKE_TIMEOUT",
    "CHAT_CLOSE_TIMEOUT",
    "HOST",
    "PORT",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Clear settings variables and run from an empty directory."""
    for name in ENV_VARS:
        # setenv first so values loaded from a dotenv file are undone too
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def test_defaults(clean_env):
    settings = load_settings()

    assert settings.openai_api_key is None
    assert settings.api_key_configured is False
    assert settings.realtime_model == DEFAULT_REALTIME_MODEL
    assert settings.pending_queue_capacity == DEFAULT_PENDING_QUEUE_CAPACITY
    assert settings.handshake_timeout == DEFAULT_HANDSHAKE_TIMEOUT
    assert settings.port == 8000
    assert settings.log_level == "INFO"


def test_values_from_environment(clean_env):
    clean_env.setenv("OPENAI_API_KEY", "sk-test")
    clean_env.setenv("OPENAI_REALTIME_MODEL", "gpt-test")
    clean_env.setenv("CHAT_PENDING_QUEUE_CAPACITY", "4")
    clean_env.setenv("CHAT_HANDSHAKE_TIMEOUT", "2.5")
    clean_env.setenv("PORT", "9000")
    clean_env.setenv("LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.api_key_configured is True
    assert settings.realtime_model == "gpt-test"
    assert settings.pending_queue_capacity == 4
    assert settings.handshake_timeout == 2.5
    assert settings.port == 9000
    assert settings.log_level == "DEBUG"


def test_values_from_dotenv_file(clean_env, tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text("OPENAI_API_KEY=sk-from-file\nCHAT_CLOSE_TIMEOUT=1.5\n")

    settings = load_settings(env_file)

    assert settings.openai_api_key == "sk-from-file"
    assert settings.close_timeout == 1.5


def test_blank_api_key_is_not_configured():
    assert Settings(openai_api_key="   ").api_key_configured is False


@pytest.mark.parametrize(
    "field, value",
    [
        ("pending_queue_capacity", 0),
        ("handshake_timeout", 0),
        ("port", 70000),
        ("log_level", "LOUD"),
    ],
)
def test_invalid_values_are_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})
