"""Tests for agent sessions: credential seeding and isolation."""

import asyncio

import base58
import pytest

from conftest import EVM_ADDRESS, EVM_KEY, OTHER_EVM_KEY, SOLANA_KEYPAIR, ScriptedProvider, tool_response
from nexis_agent.config import AgentConfig
from nexis_agent.core.agent import AgentRuntime
from nexis_agent.errors import ConfigurationError, InvalidCredential
from nexis_agent.llm.base import LLMResponse


def _balances_then_echo(messages):
    """Ask for all balances once, then answer with whatever the tool returned."""
    last = messages[-1]
    if last.role == "user":
        return tool_response(("getAllBalances", {}))
    return LLMResponse(content=last.content)


class TestSeeding:
    @pytest.mark.asyncio
    async def test_credentials_connected_before_model_runs(self, make_runtime):
        provider = ScriptedProvider([LLMResponse(content="hi")])
        session = make_runtime(provider).new_session()

        await session.handle("what is my address?", evm_key=EVM_KEY)

        first_request = provider.requests[0]
        assert first_request[0].role == "system"
        user_message = first_request[-1]
        assert EVM_ADDRESS in user_message.content
        assert "what is my address?" in user_message.content
        assert EVM_KEY not in user_message.content
        assert EVM_KEY[2:] not in user_message.content
        assert session.wallet.get_signer("monad").address == EVM_ADDRESS

    def test_solana_note(self, make_runtime):
        session = make_runtime(ScriptedProvider([])).new_session()
        note = session.connect_credentials(
            solana_key=base58.b58encode(bytes(SOLANA_KEYPAIR)).decode()
        )
        assert str(SOLANA_KEYPAIR.pubkey()) in note

    def test_no_credentials_no_note(self, make_runtime):
        session = make_runtime(ScriptedProvider([])).new_session()
        assert session.connect_credentials() is None

    @pytest.mark.asyncio
    async def test_invalid_credentials_raise_before_model(self, make_runtime):
        provider = ScriptedProvider([LLMResponse(content="unused")])
        session = make_runtime(provider).new_session()

        with pytest.raises(InvalidCredential):
            await session.handle("hi", evm_key="0xnope")
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_conversation_persists_within_session(self, make_runtime):
        provider = ScriptedProvider([LLMResponse(content="one"), LLMResponse(content="two")])
        session = make_runtime(provider).new_session()

        await session.handle("first")
        await session.handle("second")

        contents = [m.content for m in provider.requests[1]]
        assert contents[1:] == ["first", "one", "second"]

    def test_close_clears_wallets(self, make_runtime):
        session = make_runtime(ScriptedProvider([])).new_session()
        session.connect_credentials(evm_key=EVM_KEY)
        session.close()
        assert session.wallet.is_empty()


class TestIsolation:
    @pytest.mark.asyncio
    async def test_concurrent_sessions_see_only_their_wallets(self, make_runtime):
        runtime = make_runtime(ScriptedProvider(_balances_then_echo))
        alice = runtime.new_session()
        bob = runtime.new_session()

        result_a, result_b = await asyncio.gather(
            alice.handle("show my balances", evm_key=EVM_KEY),
            bob.handle("show my balances"),
        )

        assert result_a.completed and result_b.completed
        assert "Ethereum Sepolia:" in result_a.answer
        assert result_b.answer == "No wallets connected. Please connect your wallets first."
        assert bob.wallet.is_empty()

    @pytest.mark.asyncio
    async def test_sessions_with_different_keys(self, make_runtime):
        runtime = make_runtime(ScriptedProvider(_balances_then_echo))
        first = runtime.new_session()
        second = runtime.new_session()

        await asyncio.gather(
            first.handle("balances", evm_key=EVM_KEY),
            second.handle("balances", evm_key=OTHER_EVM_KEY),
        )

        assert first.wallet.get_signer("ethereum").address == EVM_ADDRESS
        assert second.wallet.get_signer("ethereum").address != EVM_ADDRESS


class TestRuntime:
    def test_from_config_requires_model_key(self):
        config = AgentConfig()
        with pytest.raises(ConfigurationError):
            AgentRuntime.from_config(config)

    def test_round_cap_from_config(self, make_runtime, agent_config):
        agent_config.dispatch.max_rounds = 3
        runtime = make_runtime(ScriptedProvider(lambda m: tool_response(("help", {}))))
        session = runtime.new_session()

        result = asyncio.run(session.handle("loop forever"))

        assert not result.completed
        assert result.rounds == 3
