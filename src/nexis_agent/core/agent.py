"""Agent runtime and per-session state."""

from __future__ import annotations

import logging

from nexis_agent.config import AgentConfig, require_llm_credentials
from nexis_agent.core.dispatch import DispatchLoop, DispatchResult
from nexis_agent.core.prompts import build_system_prompt
from nexis_agent.llm.base import BaseLLMProvider, LLMMessage
from nexis_agent.llm.router import LLMRouter
from nexis_agent.prices import CoinGeckoClient
from nexis_agent.tools import ToolContext, ToolRegistry
from nexis_agent.wallet.chains import ChainRegistry
from nexis_agent.wallet.provider import Web3Provider
from nexis_agent.wallet.session import SessionWallet
from nexis_agent.wallet.solana import SolanaProvider

logger = logging.getLogger("nexis_agent.agent")


class AgentRuntime:
    """Process-wide collaborators shared by every session.

    Nothing here holds wallet material: the chain registry, the RPC
    providers, the price client and the model provider.
    """

    def __init__(
        self,
        config: AgentConfig,
        provider: BaseLLMProvider,
        chains: ChainRegistry | None = None,
        evm: Web3Provider | None = None,
        solana: SolanaProvider | None = None,
        prices: CoinGeckoClient | None = None,
    ):
        self.config = config
        self.provider = provider
        self.chains = chains or ChainRegistry.from_config(config.chains)
        self.evm = evm or Web3Provider(self.chains)
        self.solana = solana or SolanaProvider(self.chains)
        self.prices = prices or CoinGeckoClient(config.prices)

    @classmethod
    def from_config(cls, config: AgentConfig) -> AgentRuntime:
        """Build the runtime, failing fast with ConfigurationError without a model key."""
        require_llm_credentials(config)
        provider = LLMRouter(config.llm).get_provider()
        return cls(config, provider)

    def new_session(self) -> AgentSession:
        return AgentSession(self)


class AgentSession:
    """One conversation plus its own wallet store.

    An HTTP request gets a fresh session; the interactive chat keeps one for
    its lifetime. Call :meth:`close` to drop the signers.
    """

    def __init__(self, runtime: AgentRuntime):
        self.runtime = runtime
        self.wallet = SessionWallet(runtime.chains)
        self.context = ToolContext(
            chains=runtime.chains,
            wallet=self.wallet,
            evm=runtime.evm,
            solana=runtime.solana,
            prices=runtime.prices,
            llm=runtime.provider,
            dispatch=runtime.config.dispatch,
        )
        self.conversation: list[LLMMessage] = [
            LLMMessage(role="system", content=build_system_prompt(runtime.chains))
        ]
        self._loop = DispatchLoop(
            runtime.provider,
            ToolRegistry.get(),
            max_rounds=runtime.config.dispatch.max_rounds,
        )

    def connect_credentials(
        self, evm_key: str | None = None, solana_key: str | None = None
    ) -> str | None:
        """Bind request-supplied keys directly, without involving the model.

        Returns a note naming the connected addresses (never the keys) to
        prepend to the user's message, or None when nothing was supplied.
        Raises :class:`InvalidCredential` for unparsable keys.
        """
        parts = []
        if evm_key:
            signer = self.wallet.connect_evm(evm_key)
            evm_keys = ", ".join(c.key for c in self.runtime.chains.evm_chains())
            parts.append(f"EVM wallet {signer.address} is connected on: {evm_keys}.")
        if solana_key:
            signer = self.wallet.connect_non_evm(solana_key)
            parts.append(f"Solana wallet {signer.address} is connected.")
        if not parts:
            return None
        return "[Wallet connected] " + " ".join(parts)

    async def handle(
        self,
        text: str,
        evm_key: str | None = None,
        solana_key: str | None = None,
    ) -> DispatchResult:
        """Append the user's message and run the dispatch loop to an answer."""
        note = self.connect_credentials(evm_key, solana_key)
        content = f"{note}\n\n{text}" if note else text
        self.conversation.append(LLMMessage(role="user", content=content))
        return await self._loop.run(self.conversation, self.context)

    def close(self) -> None:
        self.wallet.disconnect()
