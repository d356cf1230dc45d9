"""
Function tools the greeter agent can call through the realtime engine.

A tool pairs a JSON-schema description, advertised to the model in
``session.update``, with the Python callable that produces its output.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Union

from realtime_chat.config.constants import LOGGER_NAME
from realtime_chat.models.openai_schemas import RealtimeToolDefinition

logger = logging.getLogger(LOGGER_NAME)

ToolFunction = Callable[..., Union[str, Awaitable[str]]]


@dataclass
class Tool:
    """A callable tool exposed to the model."""

    name: str
    description: str
    function: ToolFunction
    parameters: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    needs_approval: bool = False

    def definition(self) -> RealtimeToolDefinition:
        return RealtimeToolDefinition(
            name=self.name, description=self.description, parameters=self.parameters
        )

    async def invoke(self, arguments: Dict[str, Any]) -> str:
        """
        Run the tool with keyword arguments decoded from the model's call.

        Returns:
            str: The tool output, sent back to the model verbatim
        """
        result = self.function(**arguments)
        if asyncio.iscoroutine(result):
            result = await result
        return result if isinstance(result, str) else json.dumps(result)


def get_weather(location: str) -> str:
    return f"The weather in {location} is sunny."


def tell_secret(question: str) -> str:
    return f"The answer to {question} is 42."


weather_tool = Tool(
    name="weather",
    description="Get the weather in a given location.",
    function=get_weather,
    parameters={
        "type": "object",
        "properties": {"location": {"type": "string"}},
        "required": ["location"],
    },
)

secret_tool = Tool(
    name="secret",
    description="A secret tool to tell the special number.",
    function=tell_secret,
    parameters={
        "type": "object",
        "properties": {
            "question": {
                "type": "string",
                "description": "The question to ask the secret tool; mainly about the special number.",
            }
        },
        "required": ["question"],
    },
    needs_approval=True,
)
