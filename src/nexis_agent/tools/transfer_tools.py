"""Native-token transfer tools.

``transferTokens`` takes structured arguments. ``smartTransfer`` first asks
the model to extract a :class:`TransferIntent` from free text and then runs
the same validated path. Every check happens before the first network call.
"""

from __future__ import annotations

import asyncio
import logging
import re
from decimal import Decimal, DecimalException, localcontext
from typing import TYPE_CHECKING, Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, Field, ValidationError

from nexis_agent.core.prompts import build_extraction_prompt
from nexis_agent.errors import InvalidAmount, NoWalletBound, UpstreamTransportError
from nexis_agent.llm.base import BaseLLMProvider, LLMMessage
from nexis_agent.tools.registry import ToolArgs, tool
from nexis_agent.wallet.addresses import validate_address
from nexis_agent.wallet.provider import format_units

if TYPE_CHECKING:
    from nexis_agent.tools.context import ToolContext
    from nexis_agent.wallet.chains import Chain, ChainRegistry

logger = logging.getLogger("nexis_agent.tools.transfer")

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

# Informal ticker -> the native symbol it stands for.
_NATIVE_SYMBOL_ALIASES = {"MONAD": "MON", "MATIC": "POL"}

# Chain assumed when the instruction names a token but no chain.
_TOKEN_CHAINS = {
    "SOL": "solana",
    "MON": "monad",
    "MONAD": "monad",
    "MATIC": "polygon",
    "POL": "polygon",
}


def _number_to_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# Models sometimes send amounts as JSON numbers.
AmountStr = Annotated[str, BeforeValidator(_number_to_str)]


class TransferArgs(ToolArgs):
    chain: str = Field(..., description="Chain key, e.g. ethereum, baseSepolia, monad, polygon, arbitrum, solana")
    to: str = Field(..., description="Recipient address")
    amount: AmountStr = Field(..., description="Amount of the native token, e.g. '0.01'")


class SmartTransferArgs(ToolArgs):
    instruction: str = Field(
        ...,
        description=(
            "Natural language transfer instruction, e.g. 'send 0.1 ETH to 0x123... on Base' "
            "or 'transfer 0.5 SOL to ABC...'"
        ),
    )


class TransferIntent(BaseModel):
    """Fields extracted from a free-text transfer instruction."""

    amount: Optional[AmountStr] = None
    token: Optional[str] = None
    chain: Optional[str] = None
    recipient: Optional[str] = None


# ---------------------------------------------------------------------------
# Validation and execution
# ---------------------------------------------------------------------------


# Largest value a uint256 transfer field can carry.
MAX_BASE_UNITS = 2**256 - 1


def parse_amount(amount: str, decimals: int) -> int:
    """Convert a decimal string to base units. Raises :class:`InvalidAmount`."""
    text = str(amount).strip()
    try:
        value = Decimal(text)
        if not value.is_finite() or value <= 0:
            raise InvalidAmount(text)
        with localcontext() as dec_ctx:
            dec_ctx.prec = 80
            scaled = value.scaleb(decimals)
            if scaled > MAX_BASE_UNITS:
                raise InvalidAmount(text, "amount exceeds the largest transferable value")
            if scaled != scaled.to_integral_value():
                raise InvalidAmount(text, f"at most {decimals} decimal places are allowed")
            return int(scaled)
    except DecimalException:
        raise InvalidAmount(text) from None


async def execute_transfer(ctx: ToolContext, chain_key: str, to: str, amount: str) -> str:
    """Validate, submit and confirm a native transfer on *chain_key*."""
    chain = ctx.chains.lookup(chain_key)
    signer = ctx.wallet.get_signer(chain.key)
    if signer is None:
        raise NoWalletBound(chain.display_name)
    recipient = validate_address(chain, to)
    base_units = parse_amount(amount, chain.native_decimals)

    try:
        if chain.is_evm:
            tx_hash = await asyncio.to_thread(
                ctx.evm.send_native,
                chain.key,
                signer.account,
                recipient,
                base_units,
                ctx.dispatch.confirmation_timeout_seconds,
            )
        else:
            tx_hash = await ctx.solana.send_native(
                chain.key, signer.account, recipient, base_units
            )
    except Exception as exc:
        logger.error(f"Transfer on {chain.key} failed: {type(exc).__name__}")
        raise UpstreamTransportError(
            f"{chain.display_name} transfer", str(exc) or type(exc).__name__
        ) from exc

    shown = format_units(base_units, chain.native_decimals)
    symbol = chain.native_symbol
    logger.info(f"Transfer: {shown} {symbol} to {recipient} on {chain.key}, Tx: {tx_hash}")
    return (
        f"Successfully transferred {shown} {symbol} to {recipient} on {chain.display_name}.\n"
        f"Transaction: {chain.tx_url(tx_hash)}"
    )


# ---------------------------------------------------------------------------
# Extraction stage
# ---------------------------------------------------------------------------


def infer_chain(token: str | None) -> str:
    """Chain to use when an instruction names only a token."""
    return _TOKEN_CHAINS.get((token or "").strip().upper(), "ethereum")


def _is_native_token(chain: Chain, token: str | None) -> bool:
    if not token:
        return True
    symbol = token.strip().upper()
    return _NATIVE_SYMBOL_ALIASES.get(symbol, symbol) == chain.native_symbol.upper()


async def extract_transfer_intent(
    llm: BaseLLMProvider, chains: ChainRegistry, instruction: str
) -> TransferIntent | None:
    """Ask the model for the transfer fields. None when no valid JSON came back."""
    response = await llm.complete(
        [
            LLMMessage(role="system", content=build_extraction_prompt(chains)),
            LLMMessage(role="user", content=instruction),
        ]
    )
    match = _JSON_OBJECT_RE.search(response.content or "")
    if match is None:
        return None
    try:
        return TransferIntent.model_validate_json(match.group(0))
    except ValidationError:
        return None


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@tool(
    "transferTokens",
    "Send native tokens to an address on one chain and wait for confirmation.",
    TransferArgs,
    long_running=True,
)
async def transfer_tokens(ctx: ToolContext, chain: str, to: str, amount: str) -> str:
    return await execute_transfer(ctx, chain, to, amount)


@tool(
    "smartTransfer",
    "Execute a native-token transfer from a natural language instruction. Detects chain, amount and recipient.",
    SmartTransferArgs,
    long_running=True,
)
async def smart_transfer(ctx: ToolContext, instruction: str) -> str:
    if ctx.llm is None:
        return "Natural language transfers are unavailable right now. Use transferTokens instead."

    try:
        intent = await extract_transfer_intent(ctx.llm, ctx.chains, instruction)
    except Exception as exc:
        logger.error(f"Transfer extraction failed: {type(exc).__name__}")
        return "Could not interpret the transfer instruction right now. Use transferTokens with chain, recipient and amount."

    if intent is None:
        return (
            "Failed to parse transfer instruction. Please be more specific with "
            'format like: "send 0.1 ETH to 0x123... on Base"'
        )
    if not intent.amount or not intent.recipient:
        return "Please specify both amount and recipient address in your instruction."

    chain = ctx.chains.lookup(intent.chain or infer_chain(intent.token))
    if not _is_native_token(chain, intent.token):
        return (
            f"Only native-token transfers are supported. {chain.display_name} "
            f"uses {chain.native_symbol}, not {intent.token}."
        )
    return await execute_transfer(ctx, chain.key, intent.recipient, intent.amount)
