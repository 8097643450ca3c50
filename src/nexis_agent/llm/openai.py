"""OpenAI LLM provider using the ``openai`` SDK."""

from __future__ import annotations

import json
import logging

import openai

from nexis_agent.llm.base import (
    BaseLLMProvider,
    LLMMessage,
    LLMResponse,
    ToolCall,
    ToolDefinition,
)

logger = logging.getLogger("nexis_agent.llm.openai")


class OpenAIProvider(BaseLLMProvider):
    """LLM provider backed by the Chat Completions API.

    ``base_url`` is forwarded so any OpenAI-compatible endpoint works.
    """

    def __init__(self, api_key: str, model: str, **kwargs):
        super().__init__(api_key=api_key, model=model, **kwargs)

        client_kwargs: dict = {"api_key": self.api_key, "timeout": self.timeout}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)

    @staticmethod
    def _convert_messages(messages: list[LLMMessage]) -> list[dict]:
        converted: list[dict] = []
        for msg in messages:
            if msg.role == "assistant" and msg.tool_calls:
                calls = []
                for tc in msg.tool_calls:
                    arguments = tc.get("arguments", {})
                    if not isinstance(arguments, str):
                        arguments = json.dumps(arguments)
                    calls.append(
                        {
                            "id": tc.get("id", ""),
                            "type": "function",
                            "function": {"name": tc.get("name", ""), "arguments": arguments},
                        }
                    )
                converted.append(
                    {"role": "assistant", "content": msg.content or None, "tool_calls": calls}
                )
            elif msg.role == "tool":
                converted.append(
                    {
                        "role": "tool",
                        "content": msg.content,
                        "tool_call_id": msg.tool_call_id or "",
                    }
                )
            else:
                converted.append({"role": msg.role, "content": msg.content})
        return converted

    @staticmethod
    def _convert_tools(tools: list[ToolDefinition]) -> list[dict]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in tools
        ]

    @staticmethod
    def _parse_response(response) -> LLMResponse:
        choice = response.choices[0]
        message = choice.message

        tool_calls: list[ToolCall] = []
        for tc in message.tool_calls or []:
            try:
                arguments = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError:
                # left for the registry's validation to report back to the model
                arguments = {"__raw__": tc.function.arguments}
            tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=arguments))

        usage = None
        if response.usage:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }

        return LLMResponse(
            content=message.content or "",
            tool_calls=tool_calls or None,
            usage=usage,
            stop_reason=choice.finish_reason,
        )

    async def complete(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
    ) -> LLMResponse:
        kwargs: dict = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": self._convert_messages(messages),
        }
        if tools:
            kwargs["tools"] = self._convert_tools(tools)

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            logger.error("OpenAI API call failed: %s", type(exc).__name__)
            raise

        return self._parse_response(response)
