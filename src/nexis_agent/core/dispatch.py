"""The model/tool dispatch loop."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from nexis_agent.llm.base import BaseLLMProvider, LLMMessage, ToolCall, ToolDefinition
from nexis_agent.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from nexis_agent.tools.context import ToolContext

logger = logging.getLogger("nexis_agent.dispatch")

ROUND_CAP_MESSAGE = (
    "I was unable to complete this request within the allowed number of steps. "
    "Please try again with a simpler or more specific request."
)


@dataclass
class DispatchResult:
    answer: str
    rounds: int
    completed: bool
    tool_calls: int = 0


class DispatchLoop:
    """Alternates model calls and tool rounds until the model answers in text.

    The calls of a round run concurrently, unless one of them connects or
    disconnects a wallet; such a round runs sequentially in request order.
    Results are appended in request order, one ``tool`` message per call.
    Tool failures are already strings by then. Model-call failures
    propagate to the caller.
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        tools: ToolRegistry | None = None,
        max_rounds: int = 10,
    ):
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.provider = provider
        self.tools = tools or ToolRegistry.get()
        self.max_rounds = max_rounds

    def _mutates_wallet(self, name: str) -> bool:
        tool = self.tools.get_tool(name)
        return tool is not None and tool.mutates_wallet

    async def _run_round(self, calls: list[ToolCall], ctx: ToolContext) -> list[str]:
        if any(self._mutates_wallet(tc.name) for tc in calls):
            logger.debug("Round changes the wallet; running its calls in order")
            return [await self.tools.invoke(ctx, tc.name, tc.arguments) for tc in calls]
        return list(
            await asyncio.gather(
                *(self.tools.invoke(ctx, tc.name, tc.arguments) for tc in calls)
            )
        )

    @property
    def tool_definitions(self) -> list[ToolDefinition]:
        return self.tools.definitions()

    async def run(self, conversation: list[LLMMessage], ctx: ToolContext) -> DispatchResult:
        """Drive *conversation* (mutated in place) to a terminal answer."""
        definitions = self.tool_definitions
        executed = 0

        for round_no in range(1, self.max_rounds + 1):
            response = await self.provider.complete(messages=conversation, tools=definitions)

            if not response.tool_calls:
                answer = response.content or "No result produced."
                conversation.append(LLMMessage(role="assistant", content=answer))
                logger.info(f"Answered after {round_no} round(s), {executed} tool call(s)")
                return DispatchResult(
                    answer=answer, rounds=round_no, completed=True, tool_calls=executed
                )

            calls = response.tool_calls
            if response.content:
                logger.debug(f"Model says: {response.content[:200]}")
            conversation.append(
                LLMMessage(
                    role="assistant",
                    content=response.content or "",
                    tool_calls=[
                        {"id": tc.id, "name": tc.name, "arguments": tc.arguments}
                        for tc in calls
                    ],
                )
            )

            results = await self._run_round(calls, ctx)
            executed += len(calls)

            for tc, result in zip(calls, results):
                conversation.append(
                    LLMMessage(role="tool", content=result, tool_call_id=tc.id)
                )

        logger.warning(f"Round cap of {self.max_rounds} reached without a final answer")
        conversation.append(LLMMessage(role="assistant", content=ROUND_CAP_MESSAGE))
        return DispatchResult(
            answer=ROUND_CAP_MESSAGE,
            rounds=self.max_rounds,
            completed=False,
            tool_calls=executed,
        )
