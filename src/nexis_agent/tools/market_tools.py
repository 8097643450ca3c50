"""Market data, faucet and assistant tools."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from pydantic import Field

from nexis_agent.core.prompts import build_help_text, build_web3_expert_prompt
from nexis_agent.errors import UnknownChain
from nexis_agent.llm.base import LLMMessage
from nexis_agent.prices import resolve_coin_id
from nexis_agent.tools.registry import NoArgs, ToolArgs, tool
from nexis_agent.wallet.provider import format_units

if TYPE_CHECKING:
    from nexis_agent.tools.context import ToolContext

logger = logging.getLogger("nexis_agent.tools.market")


class TokenPricesArgs(ToolArgs):
    tokens: str = Field(
        ...,
        description="Comma-separated tokens, tickers or CoinGecko ids (e.g. 'bitcoin,ETH,solana')",
    )


class FaucetArgs(ToolArgs):
    chains: Optional[str] = Field(
        None, description="Comma-separated chain keys. Omit to show every chain."
    )


class QuestionArgs(ToolArgs):
    question: str = Field(..., description="Web3, blockchain or coding question")


def _format_usd(price: float) -> str:
    value = Decimal(str(price))
    if value >= 1:
        return f"{value:,.2f}"
    return format(value.normalize(), "f")


@tool("getGasPrices", "Get current gas prices across all EVM chains.", NoArgs)
async def get_gas_prices(ctx: ToolContext) -> str:
    chains = ctx.chains.evm_chains()
    results = await asyncio.gather(
        *(asyncio.to_thread(ctx.evm.get_gas_price, c.key) for c in chains),
        return_exceptions=True,
    )

    lines = []
    failures = 0
    for chain, result in zip(chains, results):
        if isinstance(result, BaseException):
            failures += 1
            logger.warning(f"Gas price on {chain.key} unavailable: {type(result).__name__}")
            lines.append(f"{chain.display_name}: Error fetching gas price")
        else:
            lines.append(f"{chain.display_name}: {format_units(result, 9)} gwei")

    if failures == len(chains):
        return "Unable to fetch gas prices from any chain."
    return "Current Gas Prices:\n" + "\n".join(lines)


@tool(
    "getTokenPrices",
    "Get real-time USD token prices from CoinGecko for one or more tokens.",
    TokenPricesArgs,
)
async def get_token_prices(ctx: ToolContext, tokens: str) -> str:
    requested = [t.strip() for t in tokens.split(",") if t.strip()]
    if not requested:
        return "Please name at least one token, e.g. 'bitcoin,ethereum'."

    coin_ids = [resolve_coin_id(t) for t in requested]
    prices = await ctx.prices.get_usd_prices(coin_ids)

    lines = []
    for token, coin_id in zip(requested, coin_ids):
        price = prices.get(coin_id)
        if price is None:
            lines.append(f"{token.upper()}: Price not found")
        else:
            lines.append(f"{token.upper()}: ${_format_usd(price)} USD")
    return "Current Token Prices:\n" + "\n".join(lines)


@tool(
    "getFaucetTokens",
    "Get faucet links and the connected address for requesting testnet tokens.",
    FaucetArgs,
)
def get_faucet_tokens(ctx: ToolContext, chains: str | None = None) -> str:
    if chains:
        targets = []
        for key in (k.strip() for k in chains.split(",")):
            if not key:
                continue
            try:
                targets.append(ctx.chains.lookup(key))
            except UnknownChain:
                continue
    else:
        targets = ctx.chains.all()

    blocks = []
    for chain in targets:
        if not chain.faucet_url:
            continue
        signer = ctx.wallet.get_signer(chain.key)
        address = signer.address if signer else "No wallet connected"
        blocks.append(
            f"**{chain.display_name}**\n"
            f"   Address: {address}\n"
            f"   Faucet: {chain.faucet_url}\n"
            f"   Token: {chain.native_symbol}"
        )

    if not blocks:
        return "No valid chains specified."
    return (
        "**Testnet Faucets:**\n"
        + "\n\n".join(blocks)
        + "\n\nTips:\n"
        "- Connect your wallets to see your addresses here\n"
        "- Some faucets require social or Discord verification\n"
        "- Testnet tokens have no real value"
    )


@tool(
    "web3Question",
    "Answer Web3, blockchain or coding questions with multi-chain expertise.",
    QuestionArgs,
)
async def web3_question(ctx: ToolContext, question: str) -> str:
    if ctx.llm is None:
        return "The Web3 assistant is unavailable right now."
    try:
        response = await ctx.llm.complete(
            [
                LLMMessage(role="system", content=build_web3_expert_prompt(ctx.chains)),
                LLMMessage(role="user", content=question),
            ]
        )
    except Exception as exc:
        logger.error(f"web3Question model call failed: {type(exc).__name__}")
        return "I encountered an error while processing your question. Please try again."
    return response.content or "I don't have an answer to that question."


@tool("help", "List all available commands and capabilities of the agent.", NoArgs)
def show_help(ctx: ToolContext) -> str:
    return build_help_text(ctx.chains)
