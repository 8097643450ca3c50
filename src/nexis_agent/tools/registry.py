"""Tool registry - declare, discover and invoke agent tools."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, ValidationError

from nexis_agent.errors import NexisError
from nexis_agent.llm.base import ToolDefinition

if TYPE_CHECKING:
    from nexis_agent.tools.context import ToolContext

logger = logging.getLogger("nexis_agent.tools.registry")


class ToolArgs(BaseModel):
    """Base class for tool argument models.

    Fields use snake_case names with camelCase aliases, so the model sees
    ``evmPrivateKey`` while the tool function receives ``evm_private_key``.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class NoArgs(ToolArgs):
    pass


@dataclass
class Tool:
    name: str
    description: str
    args_model: type[ToolArgs]
    func: Callable[..., Any] | Callable[..., Awaitable[Any]]
    is_async: bool = False
    # waits for on-chain confirmation; gets the confirmation timeout on top
    long_running: bool = False
    # binds or clears signers; never runs alongside other calls
    mutates_wallet: bool = False

    @property
    def parameters(self) -> dict[str, Any]:
        schema = self.args_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        return schema

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )

    async def execute(self, ctx: ToolContext, arguments: dict[str, Any]) -> str:
        """Validate *arguments* and run the tool. Errors propagate."""
        args = self.args_model.model_validate(arguments or {})
        kwargs = args.model_dump()
        if self.is_async:
            result = await self.func(ctx, **kwargs)
        else:
            result = await asyncio.to_thread(self.func, ctx, **kwargs)
        if isinstance(result, str):
            return result
        return json.dumps(result, default=str)


def _describe_validation_error(exc: ValidationError) -> str:
    # loc/msg only: the offending input may be key material
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


class ToolRegistry:
    """Global catalog of available tools.

    The catalog itself is stateless; everything session-specific arrives in
    the :class:`ToolContext` passed to :meth:`invoke`.
    """

    _instance: ToolRegistry | None = None
    _tools: dict[str, Tool]

    def __init__(self):
        self._tools = {}

    @classmethod
    def get(cls) -> ToolRegistry:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def get_tools(self, names: list[str] | None = None) -> list[Tool]:
        if names is None:
            return list(self._tools.values())
        return [self._tools[n] for n in names if n in self._tools]

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    def definitions(self) -> list[ToolDefinition]:
        return [t.to_definition() for t in self._tools.values()]

    async def invoke(self, ctx: ToolContext, name: str, arguments: dict[str, Any]) -> str:
        """Run one tool call and always return a result string.

        Unknown tools, invalid arguments, typed agent errors, timeouts and
        unexpected exceptions all become the call's result so the model can
        react to them.
        """
        tool = self._tools.get(name)
        if tool is None:
            return f"Error: unknown tool '{name}'. Available tools: {', '.join(self._tools)}"

        logger.info(f"Calling tool {name} (args: {sorted((arguments or {}).keys())})")
        timeout = ctx.dispatch.tool_timeout_seconds
        if tool.long_running:
            timeout += ctx.dispatch.confirmation_timeout_seconds

        try:
            return await asyncio.wait_for(tool.execute(ctx, arguments), timeout=timeout)
        except ValidationError as exc:
            return f"Error: invalid arguments for {name}: {_describe_validation_error(exc)}"
        except NexisError as exc:
            logger.info(f"Tool {name} rejected the call: {type(exc).__name__}")
            return f"Error: {exc.user_message()}"
        except asyncio.TimeoutError:
            logger.warning(f"Tool {name} timed out after {timeout:.0f}s")
            return f"Error: {name} timed out after {timeout:.0f} seconds."
        except Exception as exc:
            logger.exception(f"Tool {name} failed")
            return f"Error: {name} failed: {exc}"


def tool(
    name: str,
    description: str,
    args_model: type[ToolArgs] = NoArgs,
    long_running: bool = False,
    mutates_wallet: bool = False,
):
    """Decorator to register a function as a tool.

    The function receives the :class:`ToolContext` first, then the validated
    arguments as keywords::

        @tool("getBalance", "Check balances on one chain", BalanceArgs)
        async def get_balance(ctx, chain: str, address: str | None = None) -> str:
            ...
    """

    def decorator(func: Callable) -> Callable:
        ToolRegistry.get().register(
            Tool(
                name=name,
                description=description,
                args_model=args_model,
                func=func,
                is_async=inspect.iscoroutinefunction(func),
                long_running=long_running,
                mutates_wallet=mutates_wallet,
            )
        )
        return func

    return decorator
