"""Shared fixtures: fake RPC providers, a scripted model and price transport."""

from __future__ import annotations

import json
from typing import Callable

import httpx
import pytest
from solders.keypair import Keypair

from nexis_agent.config import AgentConfig, LLMProviderConfig, PricesConfig
from nexis_agent.core.agent import AgentRuntime
from nexis_agent.llm.base import BaseLLMProvider, LLMMessage, LLMResponse, ToolCall
from nexis_agent.prices import CoinGeckoClient
from nexis_agent.tools.context import ToolContext
from nexis_agent.wallet.chains import ChainRegistry
from nexis_agent.wallet.session import SessionWallet

# Well-known development account (Hardhat/Anvil account #0). Never funded on a real network.
EVM_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
EVM_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_EVM_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"

BURN_ADDRESS = "0x000000000000000000000000000000000000dEaD"

SOLANA_KEYPAIR = Keypair.from_seed(bytes(range(32)))
SOLANA_RECIPIENT = str(Keypair.from_seed(bytes([7] * 32)).pubkey())


class FakeEvmProvider:
    """Stands in for :class:`Web3Provider`; records every call."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.native: dict[str, int] = {}
        self.token_balances: dict[str, int] = {}
        self.token_decimals: dict[str, int] = {}
        self.gas_prices: dict[str, int] = {}
        self.failing_chains: set[str] = set()
        self.failing_tokens: set[str] = set()
        self.sent: list[dict] = []
        self.tx_hash = "0x" + "ab" * 32

    def _check(self, chain_key: str) -> None:
        if chain_key in self.failing_chains:
            raise ConnectionError(f"RPC for {chain_key} unreachable")

    def get_native_balance(self, chain_key, address):
        self.calls.append(("native", chain_key, address))
        self._check(chain_key)
        return self.native.get(chain_key, 0)

    def get_token_balance(self, chain_key, token_address, owner):
        self.calls.append(("token", chain_key, token_address, owner))
        if token_address in self.failing_tokens:
            raise ValueError("execution reverted")
        return self.token_balances.get(token_address, 0)

    def get_token_decimals(self, chain_key, token_address):
        self.calls.append(("decimals", chain_key, token_address))
        if token_address in self.failing_tokens:
            raise ValueError("execution reverted")
        return self.token_decimals.get(token_address, 6)

    def get_gas_price(self, chain_key):
        self.calls.append(("gas", chain_key))
        self._check(chain_key)
        return self.gas_prices.get(chain_key, 1_000_000_000)

    def send_native(self, chain_key, account, to_address, value_wei, confirmation_timeout=120.0):
        self.calls.append(("send", chain_key, to_address, value_wei))
        self._check(chain_key)
        self.sent.append(
            {"chain": chain_key, "from": account.address, "to": to_address, "value": value_wei}
        )
        return self.tx_hash


class FakeSolanaProvider:
    def __init__(self):
        self.calls: list[tuple] = []
        self.balance = 0
        self.fail = False
        self.sent: list[dict] = []
        self.signature = "5" * 64

    async def get_balance(self, chain_key, address):
        self.calls.append(("balance", chain_key, address))
        if self.fail:
            raise ConnectionError("devnet unreachable")
        return self.balance

    async def send_native(self, chain_key, keypair, to_address, lamports):
        self.calls.append(("send", chain_key, to_address, lamports))
        self.sent.append({"from": str(keypair.pubkey()), "to": to_address, "lamports": lamports})
        return self.signature


class ScriptedProvider(BaseLLMProvider):
    """Model double: replies from a list, or computes a reply from the messages."""

    def __init__(self, script: list[LLMResponse] | Callable[[list[LLMMessage]], LLMResponse]):
        super().__init__(api_key="test-key", model="scripted")
        self.script = script
        self.requests: list[list[LLMMessage]] = []

    async def complete(self, messages, tools=None):
        self.requests.append(list(messages))
        if callable(self.script):
            return self.script(messages)
        return self.script.pop(0)


def tool_response(*calls: tuple[str, dict], content: str = "") -> LLMResponse:
    return LLMResponse(
        content=content,
        tool_calls=[
            ToolCall(id=f"call_{i}", name=name, arguments=args)
            for i, (name, args) in enumerate(calls)
        ],
    )


def price_transport(payload: dict, status_code: int = 200, seen: list | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, content=json.dumps(payload))

    return httpx.MockTransport(handler)


@pytest.fixture
def chains():
    return ChainRegistry()


@pytest.fixture
def evm():
    return FakeEvmProvider()


@pytest.fixture
def solana():
    return FakeSolanaProvider()


@pytest.fixture
def prices():
    return CoinGeckoClient(PricesConfig(), transport=price_transport({}))


@pytest.fixture
def wallet(chains):
    return SessionWallet(chains)


@pytest.fixture
def ctx(chains, wallet, evm, solana, prices):
    return ToolContext(chains=chains, wallet=wallet, evm=evm, solana=solana, prices=prices)


@pytest.fixture
def agent_config():
    config = AgentConfig()
    config.llm.openai = LLMProviderConfig(api_key="test-key", model="gpt-4o-mini")
    return config


@pytest.fixture
def make_runtime(agent_config, chains, evm, solana, prices):
    def _make(provider: BaseLLMProvider) -> AgentRuntime:
        return AgentRuntime(
            agent_config, provider, chains=chains, evm=evm, solana=solana, prices=prices
        )

    return _make
