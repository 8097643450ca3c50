"""Agent-facing wallet tools.

These tools connect and disconnect the session's signers, report addresses
and balances, and sign messages. Keys arrive as tool arguments, are bound to
the session's :class:`SessionWallet` and never leave process memory.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from pydantic import Field

from nexis_agent.errors import (
    InvalidAddress,
    NoWalletBound,
    UnknownChain,
    UpstreamTransportError,
)
from nexis_agent.tools.registry import ToolArgs, tool
from nexis_agent.wallet.addresses import address_family, validate_address
from nexis_agent.wallet.chains import Chain, ChainFamily
from nexis_agent.wallet.provider import format_units

if TYPE_CHECKING:
    from nexis_agent.tools.context import ToolContext

logger = logging.getLogger("nexis_agent.tools.wallet")

NO_WALLETS_MESSAGE = "No wallets connected. Please connect your wallets first."


# ---------------------------------------------------------------------------
# Argument models
# ---------------------------------------------------------------------------


class ConnectWalletArgs(ToolArgs):
    evm_private_key: Optional[str] = Field(
        None,
        alias="evmPrivateKey",
        description="The EVM private key (hex) used for every EVM chain",
    )
    solana_private_key: Optional[str] = Field(
        None,
        alias="solanaPrivateKey",
        description="The Solana secret key, base58 or a JSON byte array",
    )


class OptionalChainArgs(ToolArgs):
    chain: Optional[str] = Field(
        None, description="Chain key (e.g. ethereum, baseSepolia, solana). Omit for all chains."
    )


class BalanceArgs(ToolArgs):
    chain: str = Field(..., description="Chain key, e.g. ethereum, baseSepolia, monad, solana")
    address: Optional[str] = Field(
        None, description="Address to inspect. Defaults to the connected wallet."
    )


class AllBalancesArgs(ToolArgs):
    address: Optional[str] = Field(
        None,
        description="Address to inspect on every chain of its family. Defaults to the connected wallets.",
    )


class SignMessageArgs(ToolArgs):
    chain: str = Field(..., description="Chain key whose wallet signs the message")
    message: str = Field(..., description="The text to sign")


# ---------------------------------------------------------------------------
# Shared balance logic
# ---------------------------------------------------------------------------


async def _fetch_native(ctx: ToolContext, chain: Chain, address: str) -> int:
    try:
        if chain.is_evm:
            return await asyncio.to_thread(ctx.evm.get_native_balance, chain.key, address)
        return await ctx.solana.get_balance(chain.key, address)
    except Exception as exc:
        raise UpstreamTransportError(
            f"{chain.display_name} RPC", str(exc) or type(exc).__name__
        ) from exc


async def balance_lines(ctx: ToolContext, chain: Chain, address: str) -> list[str]:
    """Native balance first, then one line per registered token.

    A token that cannot be read degrades to an "Unable to fetch" line; a
    failed native read raises :class:`UpstreamTransportError`.
    """
    native = await _fetch_native(ctx, chain, address)
    symbol = chain.native_symbol
    lines = [f"{symbol} Balance: {format_units(native, chain.native_decimals)} {symbol}"]
    if not chain.is_evm:
        return lines

    for token in ctx.chains.tokens_for(chain.key):
        try:
            raw, decimals = await asyncio.gather(
                asyncio.to_thread(
                    ctx.evm.get_token_balance, chain.key, token.contract_address, address
                ),
                asyncio.to_thread(
                    ctx.evm.get_token_decimals, chain.key, token.contract_address
                ),
            )
        except Exception as exc:
            logger.warning(
                f"{token.symbol} balance on {chain.key} unavailable: {type(exc).__name__}"
            )
            lines.append(f"{token.symbol} Balance: Unable to fetch")
            continue
        lines.append(f"{token.symbol} Balance: {format_units(raw, decimals)} {token.symbol}")
    return lines


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@tool(
    "connectWallet",
    (
        "Connect wallets using private keys. An EVM key connects every EVM chain; "
        "a Solana key connects Solana. At least one key must be provided."
    ),
    ConnectWalletArgs,
    mutates_wallet=True,
)
def connect_wallet(
    ctx: ToolContext,
    evm_private_key: str | None = None,
    solana_private_key: str | None = None,
) -> str:
    if not evm_private_key and not solana_private_key:
        return "Please provide at least one private key (EVM or Solana)."

    results: list[str] = []
    if evm_private_key:
        signer = ctx.wallet.connect_evm(evm_private_key)
        evm_keys = ", ".join(c.key for c in ctx.chains.evm_chains())
        results.append(f"EVM wallets connected to address: {signer.address}")
        results.append(f"Supported EVM chains: {evm_keys}")
    if solana_private_key:
        signer = ctx.wallet.connect_non_evm(solana_private_key)
        results.append(f"Solana wallet connected to address: {signer.address}")

    logger.info(f"Wallets connected for chains: {', '.join(ctx.wallet.connected_chains())}")
    return "\n".join(results)


@tool(
    "disconnectWallet",
    "Disconnect the wallet of one chain, or every wallet when no chain is given, and clear it from memory.",
    OptionalChainArgs,
    mutates_wallet=True,
)
def disconnect_wallet(ctx: ToolContext, chain: str | None = None) -> str:
    if chain:
        try:
            target = ctx.chains.lookup(chain)
        except UnknownChain as exc:
            return f"Nothing to disconnect: {exc.user_message()}"
        if not ctx.wallet.disconnect(target.key):
            return f"No wallet was connected for {target.display_name}."
        return f"Wallet disconnected for {target.display_name}."

    if not ctx.wallet.disconnect():
        return "No wallets were connected."
    return "All wallets disconnected successfully."


@tool(
    "getWalletAddress",
    "Get the connected wallet address for one chain, or for every connected chain.",
    OptionalChainArgs,
)
def get_wallet_address(ctx: ToolContext, chain: str | None = None) -> str:
    if chain:
        target = ctx.chains.lookup(chain)
        signer = ctx.wallet.get_signer(target.key)
        if signer is None:
            return f"No wallet connected for {target.display_name}."
        return f"{target.display_name}: {signer.address}"

    lines = []
    for key in ctx.wallet.connected_chains():
        signer = ctx.wallet.get_signer(key)
        lines.append(f"{ctx.chains.lookup(key).display_name}: {signer.address}")
    if not lines:
        return NO_WALLETS_MESSAGE
    return "Connected wallet addresses:\n" + "\n".join(lines)


@tool(
    "getBalance",
    "Get the native token balance and known token balances on one chain.",
    BalanceArgs,
)
async def get_balance(ctx: ToolContext, chain: str, address: str | None = None) -> str:
    target = ctx.chains.lookup(chain)
    if address:
        owner = validate_address(target, address)
    else:
        signer = ctx.wallet.get_signer(target.key)
        if signer is None:
            return (
                f"No wallet connected for {target.display_name}. "
                "Connect a wallet or provide an address to check."
            )
        owner = signer.address

    lines = await balance_lines(ctx, target, owner)
    return f"Balances on {target.display_name} for {owner}:\n" + "\n".join(lines)


@tool(
    "getAllBalances",
    "Get balances across every connected chain (or every chain an address belongs to).",
    AllBalancesArgs,
)
async def get_all_balances(ctx: ToolContext, address: str | None = None) -> str:
    if address:
        family = address_family(address)
        if family is None:
            raise InvalidAddress(address, "any supported chain")
        targets = [(c, validate_address(c, address)) for c in ctx.chains.chains_of(family)]
    else:
        targets = [
            (ctx.chains.lookup(key), ctx.wallet.get_signer(key).address)
            for key in ctx.wallet.connected_chains()
        ]
    if not targets:
        return NO_WALLETS_MESSAGE

    results = await asyncio.gather(
        *(balance_lines(ctx, chain, owner) for chain, owner in targets),
        return_exceptions=True,
    )

    blocks = []
    for (chain, owner), result in zip(targets, results):
        if isinstance(result, BaseException):
            logger.warning(f"Balance on {chain.key} unavailable: {type(result).__name__}")
            blocks.append(f"{chain.display_name}: Error fetching balance")
            continue
        blocks.append(f"{chain.display_name}:\n" + "\n".join(f"  {line}" for line in result))
    return "Token Balances Across All Chains:\n" + "\n".join(blocks)


@tool(
    "signMessage",
    "Sign a text message with the wallet connected for a chain (personal_sign on EVM, ed25519 on Solana).",
    SignMessageArgs,
)
def sign_message(ctx: ToolContext, chain: str, message: str) -> str:
    target = ctx.chains.lookup(chain)
    signer = ctx.wallet.get_signer(target.key)
    if signer is None:
        raise NoWalletBound(target.display_name)
    signature = signer.sign_message(message)
    scheme = "EIP-191" if signer.family is ChainFamily.EVM else "ed25519"
    return (
        f"Message signed on {target.display_name} by {signer.address} ({scheme}).\n"
        f"Signature: {signature}"
    )
