"""Tests for the EVM and Solana RPC providers, with the network mocked out."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from solana.rpc.commitment import Confirmed
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from web3.middleware import ExtraDataToPOAMiddleware

from conftest import BURN_ADDRESS, EVM_ADDRESS, SOLANA_KEYPAIR, SOLANA_RECIPIENT
from nexis_agent.wallet.provider import Web3Provider
from nexis_agent.wallet.solana import SolanaProvider

TX_HASH = bytes.fromhex("ab" * 32)


def _mock_w3(block: dict, status: int = 1) -> MagicMock:
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.get_block.return_value = block
    w3.eth.max_priority_fee = 2
    w3.eth.gas_price = 5
    w3.eth.estimate_gas.return_value = 21_000
    w3.eth.send_raw_transaction.return_value = TX_HASH
    w3.eth.wait_for_transaction_receipt.return_value = {"status": status, "blockNumber": 12}
    return w3


def _account() -> MagicMock:
    account = MagicMock(address=EVM_ADDRESS)
    account.sign_transaction.return_value = MagicMock(raw_transaction=b"signed")
    return account


class TestWeb3Provider:
    def test_poa_middleware_only_off_mainnet_family(self, chains):
        with patch("nexis_agent.wallet.provider.Web3") as web3_cls:
            Web3Provider(chains).get_web3("baseSepolia")
            web3_cls.return_value.middleware_onion.inject.assert_called_once_with(
                ExtraDataToPOAMiddleware, layer=0
            )

        with patch("nexis_agent.wallet.provider.Web3") as web3_cls:
            Web3Provider(chains).get_web3("ethereum")
            web3_cls.return_value.middleware_onion.inject.assert_not_called()

    def test_instances_are_cached_per_chain(self, chains):
        with patch("nexis_agent.wallet.provider.Web3") as web3_cls:
            provider = Web3Provider(chains, request_timeout=3.0)
            first = provider.get_web3("monad")
            assert provider.get_web3("monad") is first

        web3_cls.HTTPProvider.assert_called_once_with(
            chains.lookup("monad").rpc_url, request_kwargs={"timeout": 3.0}
        )

    def test_send_uses_eip1559_fees_when_base_fee_known(self, chains):
        provider = Web3Provider(chains)
        w3 = _mock_w3({"baseFeePerGas": 100})
        provider._instances["baseSepolia"] = w3
        account = _account()

        tx_hash = provider.send_native("baseSepolia", account, BURN_ADDRESS, 10**17, 30.0)

        assert tx_hash == "0x" + "ab" * 32
        tx = account.sign_transaction.call_args.args[0]
        assert tx["maxFeePerGas"] == 202
        assert tx["maxPriorityFeePerGas"] == 2
        assert "gasPrice" not in tx
        assert tx["gas"] == 21_000
        assert tx["nonce"] == 7
        assert tx["value"] == 10**17
        assert tx["to"] == BURN_ADDRESS
        assert tx["chainId"] == chains.lookup("baseSepolia").chain_id
        w3.eth.send_raw_transaction.assert_called_once_with(b"signed")
        w3.eth.wait_for_transaction_receipt.assert_called_once_with(TX_HASH, timeout=30.0)

    def test_send_falls_back_to_legacy_gas_price(self, chains):
        provider = Web3Provider(chains)
        provider._instances["monad"] = _mock_w3({})
        account = _account()

        provider.send_native("monad", account, BURN_ADDRESS, 1)

        tx = account.sign_transaction.call_args.args[0]
        assert tx["gasPrice"] == 5
        assert "maxFeePerGas" not in tx

    def test_reverted_receipt_raises(self, chains):
        provider = Web3Provider(chains)
        provider._instances["ethereum"] = _mock_w3({"baseFeePerGas": 1}, status=0)

        with pytest.raises(RuntimeError, match="reverted on Ethereum Sepolia"):
            provider.send_native("ethereum", _account(), BURN_ADDRESS, 1)


@pytest.fixture
def rpc_client():
    with patch("nexis_agent.wallet.solana.AsyncClient") as client_cls:
        client = AsyncMock()
        client_cls.return_value.__aenter__.return_value = client
        client.cls = client_cls
        yield client


class TestSolanaProvider:
    @pytest.mark.asyncio
    async def test_balance_in_lamports(self, chains, rpc_client):
        rpc_client.get_balance.return_value = MagicMock(value=2_500_000_000)

        balance = await SolanaProvider(chains, request_timeout=4.0).get_balance(
            "solana", SOLANA_RECIPIENT
        )

        assert balance == 2_500_000_000
        rpc_client.get_balance.assert_awaited_once_with(Pubkey.from_string(SOLANA_RECIPIENT))
        rpc_client.cls.assert_called_once_with(
            chains.lookup("solana").rpc_url, commitment=Confirmed, timeout=4.0
        )

    @pytest.mark.asyncio
    async def test_send_signs_transfer_and_waits(self, chains, rpc_client):
        signature = Signature.default()
        rpc_client.get_latest_blockhash.return_value = MagicMock(
            value=MagicMock(blockhash=Hash.default(), last_valid_block_height=99)
        )
        rpc_client.send_transaction.return_value = MagicMock(value=signature)

        result = await SolanaProvider(chains).send_native(
            "solana", SOLANA_KEYPAIR, SOLANA_RECIPIENT, 1_000
        )

        assert result == str(signature)
        tx = rpc_client.send_transaction.await_args.args[0]
        assert tx.message.account_keys[0] == SOLANA_KEYPAIR.pubkey()
        assert Pubkey.from_string(SOLANA_RECIPIENT) in tx.message.account_keys
        rpc_client.confirm_transaction.assert_awaited_once_with(
            signature,
            commitment=Confirmed,
            sleep_seconds=0.5,
            last_valid_block_height=99,
        )

    @pytest.mark.asyncio
    async def test_rejects_evm_chain(self, chains, rpc_client):
        with pytest.raises(ValueError):
            await SolanaProvider(chains).get_balance("ethereum", SOLANA_RECIPIENT)
        rpc_client.cls.assert_not_called()
