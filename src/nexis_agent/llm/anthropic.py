"""Anthropic LLM provider using the ``anthropic`` SDK."""

from __future__ import annotations

import json
import logging

import anthropic

from nexis_agent.llm.base import (
    BaseLLMProvider,
    LLMMessage,
    LLMResponse,
    ToolCall,
    ToolDefinition,
)

logger = logging.getLogger("nexis_agent.llm.anthropic")


class AnthropicProvider(BaseLLMProvider):
    """LLM provider backed by the Anthropic Messages API."""

    def __init__(self, api_key: str, model: str, **kwargs):
        super().__init__(api_key=api_key, model=model, **kwargs)

        client_kwargs: dict = {"api_key": self.api_key, "timeout": self.timeout}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        self._client = anthropic.AsyncAnthropic(**client_kwargs)

    # ------------------------------------------------------------------
    # Format conversion helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_system(messages: list[LLMMessage]) -> tuple[str | None, list[LLMMessage]]:
        """Anthropic takes the system prompt as a top-level parameter."""
        system_parts = [m.content for m in messages if m.role == "system"]
        non_system = [m for m in messages if m.role != "system"]
        return ("\n".join(system_parts) if system_parts else None), non_system

    @staticmethod
    def _convert_messages(messages: list[LLMMessage]) -> list[dict]:
        """Convert ``LLMMessage`` objects to Anthropic content blocks.

        Consecutive ``tool`` messages are merged into a single ``user`` turn,
        since every ``tool_use`` of one assistant turn must be answered in the
        next message.
        """
        converted: list[dict] = []
        for msg in messages:
            if msg.role == "assistant" and msg.tool_calls:
                blocks: list[dict] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls:
                    arguments = tc.get("arguments", {})
                    if isinstance(arguments, str):
                        try:
                            arguments = json.loads(arguments)
                        except json.JSONDecodeError:
                            arguments = {}
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": tc.get("id", ""),
                            "name": tc.get("name", ""),
                            "input": arguments,
                        }
                    )
                converted.append({"role": "assistant", "content": blocks})

            elif msg.role == "tool":
                result_block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id or "",
                    "content": msg.content,
                }
                previous = converted[-1] if converted else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(result_block)
                else:
                    converted.append({"role": "user", "content": [result_block]})

            else:
                converted.append({"role": msg.role, "content": msg.content})

        return converted

    @staticmethod
    def _convert_tools(tools: list[ToolDefinition]) -> list[dict]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters,
            }
            for tool in tools
        ]

    @staticmethod
    def _parse_response(response) -> LLMResponse:
        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []

        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.id,
                        name=block.name,
                        arguments=block.input if isinstance(block.input, dict) else {},
                    )
                )

        usage = None
        if response.usage:
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }

        return LLMResponse(
            content="\n".join(text_parts),
            tool_calls=tool_calls or None,
            usage=usage,
            stop_reason=response.stop_reason,
        )

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    async def complete(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
    ) -> LLMResponse:
        system_text, non_system = self._extract_system(messages)

        kwargs: dict = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": self._convert_messages(non_system),
        }
        if system_text:
            kwargs["system"] = system_text
        if tools:
            kwargs["tools"] = self._convert_tools(tools)

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            logger.error("Anthropic API call failed: %s", type(exc).__name__)
            raise

        return self._parse_response(response)
