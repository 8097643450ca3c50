"""Model-call abstraction for the Nexis agent.

The dispatch loop treats the language model as an opaque step: messages in,
final text or requested tool calls out. Anthropic, OpenAI and any
OpenAI-compatible endpoint sit behind the same interface.
"""

from nexis_agent.llm.base import (
    BaseLLMProvider,
    LLMMessage,
    LLMResponse,
    ToolCall,
    ToolDefinition,
)
from nexis_agent.llm.router import LLMRouter

__all__ = [
    "BaseLLMProvider",
    "LLMMessage",
    "LLMResponse",
    "LLMRouter",
    "ToolCall",
    "ToolDefinition",
]
