"""Solana RPC access for the registry's Solana-family chains."""

from __future__ import annotations

import logging
from typing import Any

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from nexis_agent.wallet.chains import Chain, ChainFamily, ChainRegistry

logger = logging.getLogger("nexis_agent.wallet.solana")

LAMPORTS_PER_SOL = 1_000_000_000


def is_solana_address(value: str) -> bool:
    try:
        Pubkey.from_string(value.strip())
    except Exception:
        return False
    return True


class SolanaProvider:
    """Async RPC access for Solana-family chains.

    Holds no secrets. A client is opened per call so the provider can be
    shared across event loops (one per CLI command, one for the server).
    """

    def __init__(self, registry: ChainRegistry, request_timeout: float = 15.0) -> None:
        self.registry = registry
        self.request_timeout = request_timeout

    def _chain(self, chain_key: str) -> Chain:
        chain = self.registry.lookup(chain_key)
        if chain.family is not ChainFamily.SOLANA:
            raise ValueError(f"{chain.display_name} is not a Solana chain")
        return chain

    def client(self, chain_key: str) -> AsyncClient:
        chain = self._chain(chain_key)
        return AsyncClient(chain.rpc_url, commitment=Confirmed, timeout=self.request_timeout)

    async def get_balance(self, chain_key: str, address: str) -> int:
        """Balance in lamports."""
        async with self.client(chain_key) as client:
            resp = await client.get_balance(Pubkey.from_string(address))
        return resp.value

    async def send_native(
        self,
        chain_key: str,
        keypair: Any,
        to_address: str,
        lamports: int,
    ) -> str:
        """Send a system-program transfer and wait until it is confirmed.

        Returns the base58 transaction signature.
        """
        ix = transfer(
            TransferParams(
                from_pubkey=keypair.pubkey(),
                to_pubkey=Pubkey.from_string(to_address),
                lamports=lamports,
            )
        )
        async with self.client(chain_key) as client:
            latest = (await client.get_latest_blockhash()).value
            message = Message([ix], keypair.pubkey())
            tx = Transaction([keypair], message, latest.blockhash)
            signature = (await client.send_transaction(tx)).value
            await client.confirm_transaction(
                signature,
                commitment=Confirmed,
                sleep_seconds=0.5,
                last_valid_block_height=latest.last_valid_block_height,
            )
        logger.info(f"Confirmed {signature} on {chain_key} ({lamports} lamports)")
        return str(signature)
