"""Per-session context handed to every tool invocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from nexis_agent.config import DispatchConfig

if TYPE_CHECKING:
    from nexis_agent.llm.base import BaseLLMProvider
    from nexis_agent.prices import CoinGeckoClient
    from nexis_agent.wallet.chains import ChainRegistry
    from nexis_agent.wallet.provider import Web3Provider
    from nexis_agent.wallet.session import SessionWallet
    from nexis_agent.wallet.solana import SolanaProvider


@dataclass
class ToolContext:
    """The session's wallet store plus the shared, secret-free providers.

    ``llm`` is used by tools that make a nested model call (smartTransfer,
    web3Question).
    """

    chains: ChainRegistry
    wallet: SessionWallet
    evm: Web3Provider
    solana: SolanaProvider
    prices: CoinGeckoClient
    llm: BaseLLMProvider | None = None
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
