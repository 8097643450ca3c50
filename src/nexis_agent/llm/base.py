"""Provider-neutral message and tool-call types.

The dispatch loop only ever sees these types: messages in, either final text
or a list of requested tool calls out.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolDefinition:
    """A tool as advertised to the model: name, description, JSON schema."""

    name: str
    description: str
    parameters: dict[str, Any]


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMMessage:
    """One conversation entry.

    ``role`` is ``system``, ``user``, ``assistant`` or ``tool``. Assistant
    messages may carry ``tool_calls`` (dicts with ``id``/``name``/
    ``arguments``); tool messages carry the ``tool_call_id`` they answer.
    """

    role: str
    content: str = ""
    tool_calls: list[dict[str, Any]] | None = None
    tool_call_id: str | None = None


@dataclass
class LLMResponse:
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    usage: dict[str, int] | None = None
    stop_reason: str | None = None


class BaseLLMProvider(ABC):
    """Common constructor and interface for every model backend."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.7,
        timeout: float = 25.0,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
    ) -> LLMResponse:
        """Run one model turn."""
