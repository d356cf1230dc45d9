"""Agent definition used to configure every upstream realtime session."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from realtime_chat.bot.tools import Tool, secret_tool, weather_tool
from realtime_chat.models.openai_schemas import RealtimeSessionConfig


@dataclass
class RealtimeAgent:
    """Instructions plus the tools the model may call."""

    name: str
    instructions: str
    tools: List[Tool] = field(default_factory=list)

    def get_tool(self, name: str) -> Optional[Tool]:
        return self.tools_by_name.get(name)

    @property
    def tools_by_name(self) -> Dict[str, Tool]:
        return {tool.name: tool for tool in self.tools}

    def session_config(self) -> RealtimeSessionConfig:
        """Text-only session configuration sent with ``session.update``."""
        return RealtimeSessionConfig(
            modalities=["text"],
            instructions=self.instructions,
            tools=[tool.definition() for tool in self.tools],
        )


greeter_agent = RealtimeAgent(
    name="Greeter",
    instructions=(
        "You are a friendly assistant. When you use a tool always first say "
        "what you are about to do."
    ),
    tools=[secret_tool, weather_tool],
)
