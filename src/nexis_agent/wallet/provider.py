"""Web3 multi-chain provider for the EVM networks in the registry."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from nexis_agent.wallet.chains import ChainRegistry

logger = logging.getLogger("nexis_agent.wallet.provider")

ERC20_ABI: list[dict[str, Any]] = [
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]


def format_units(raw: int, decimals: int) -> str:
    """Render an integer base-unit amount as a plain decimal string."""
    return format(Decimal(raw).scaleb(-decimals).normalize(), "f")


class Web3Provider:
    """Manages Web3 connections across the registry's EVM chains.

    Instances hold no secrets and are shared by every session. All methods
    are blocking; callers run them in a worker thread.
    """

    def __init__(self, registry: ChainRegistry, request_timeout: float = 15.0) -> None:
        self.registry = registry
        self.request_timeout = request_timeout
        self._instances: dict[str, Web3] = {}

    def get_web3(self, chain_key: str) -> Web3:
        """Return a (cached) Web3 instance for the given chain.

        Injects POA middleware for every chain except Ethereum itself.
        """
        chain = self.registry.lookup(chain_key)
        if chain.key in self._instances:
            return self._instances[chain.key]

        w3 = Web3(
            Web3.HTTPProvider(
                chain.rpc_url, request_kwargs={"timeout": self.request_timeout}
            )
        )
        if chain.key != "ethereum":
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        self._instances[chain.key] = w3
        return w3

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_native_balance(self, chain_key: str, address: str) -> int:
        """Native balance in wei."""
        w3 = self.get_web3(chain_key)
        return w3.eth.get_balance(Web3.to_checksum_address(address))

    def get_token_balance(self, chain_key: str, token_address: str, owner: str) -> int:
        contract = self._erc20(chain_key, token_address)
        return contract.functions.balanceOf(Web3.to_checksum_address(owner)).call()

    def get_token_decimals(self, chain_key: str, token_address: str) -> int:
        return int(self._erc20(chain_key, token_address).functions.decimals().call())

    def get_gas_price(self, chain_key: str) -> int:
        """Current gas price in wei."""
        return self.get_web3(chain_key).eth.gas_price

    def _erc20(self, chain_key: str, token_address: str):
        w3 = self.get_web3(chain_key)
        return w3.eth.contract(
            address=Web3.to_checksum_address(token_address), abi=ERC20_ABI
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def send_native(
        self,
        chain_key: str,
        account: Any,
        to_address: str,
        value_wei: int,
        confirmation_timeout: float = 120.0,
    ) -> str:
        """Build, sign, send a native-token transfer and wait for its receipt.

        Uses EIP-1559 fee parameters with a legacy gas price fallback.
        Returns the 0x-prefixed transaction hash.
        """
        w3 = self.get_web3(chain_key)
        chain = self.registry.lookup(chain_key)
        tx: dict = {
            "from": account.address,
            "to": Web3.to_checksum_address(to_address),
            "value": value_wei,
            "nonce": w3.eth.get_transaction_count(account.address),
            "chainId": chain.chain_id,
        }

        latest = w3.eth.get_block("latest")
        base_fee = latest.get("baseFeePerGas")
        if base_fee is not None:
            max_priority = w3.eth.max_priority_fee
            tx["maxFeePerGas"] = base_fee * 2 + max_priority
            tx["maxPriorityFeePerGas"] = max_priority
        else:
            tx["gasPrice"] = w3.eth.gas_price
        tx["gas"] = w3.eth.estimate_gas(tx)

        signed = account.sign_transaction(tx)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=confirmation_timeout
        )
        hex_hash = Web3.to_hex(tx_hash)
        if receipt.get("status") == 0:
            raise RuntimeError(f"Transaction {hex_hash} reverted on {chain.display_name}")
        logger.info(f"Confirmed {hex_hash} on {chain.key} (block {receipt.get('blockNumber')})")
        return hex_hash
