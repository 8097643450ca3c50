"""In-memory wallet store scoped to one agent session.

Nothing here is ever persisted. A session is one HTTP request or one
interactive chat, and its signers disappear with it.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import base58
from eth_account import Account
from eth_account.messages import encode_defunct
from solders.keypair import Keypair

from nexis_agent.errors import InvalidCredential
from nexis_agent.wallet.chains import ChainFamily, ChainRegistry

logger = logging.getLogger("nexis_agent.wallet.session")


class Signer:
    """Credential-bound signer for one chain family.

    Holds the key object privately; ``repr`` and ``str`` show the address
    only.
    """

    __slots__ = ("family", "address", "_key")

    def __init__(self, family: ChainFamily, address: str, key: Any) -> None:
        self.family = family
        self.address = address
        self._key = key

    def __repr__(self) -> str:
        return f"Signer(family={self.family.value}, address={self.address})"

    __str__ = __repr__

    @property
    def account(self) -> Any:
        """The underlying ``LocalAccount`` (EVM) or ``Keypair`` (Solana)."""
        return self._key

    def sign_message(self, message: str) -> str:
        if self.family is ChainFamily.EVM:
            signed = self._key.sign_message(encode_defunct(text=message))
            return "0x" + signed.signature.hex().removeprefix("0x")
        return str(self._key.sign_message(message.encode("utf-8")))

    def wipe(self) -> None:
        self._key = None


def parse_evm_key(private_key: str) -> Signer:
    text = (private_key or "").strip()
    if len(text) == 64 and not text.startswith("0x"):
        text = "0x" + text
    try:
        account = Account.from_key(text)
    except Exception:
        # never chain the original error: its message can contain the key
        raise InvalidCredential("EVM") from None
    return Signer(ChainFamily.EVM, account.address, account)


def parse_solana_key(key_material: str) -> Signer:
    """Accept a base58 secret or a JSON array of byte values.

    64 bytes are a full secret key; 32 bytes are treated as the seed.
    """
    text = (key_material or "").strip()
    try:
        if text.startswith("["):
            numbers = json.loads(text)
            if not isinstance(numbers, list) or not all(
                isinstance(n, int) and 0 <= n <= 255 for n in numbers
            ):
                raise ValueError("expected a list of byte values")
            raw = bytes(numbers)
        else:
            raw = base58.b58decode(text)
        if len(raw) == 64:
            keypair = Keypair.from_bytes(raw)
        elif len(raw) == 32:
            keypair = Keypair.from_seed(raw)
        else:
            raise ValueError("unexpected secret length")
    except Exception:
        raise InvalidCredential("Solana") from None
    return Signer(ChainFamily.SOLANA, str(keypair.pubkey()), keypair)


class SessionWallet:
    """Zero or one signer per chain family, bound per chain.

    Tools that connect or disconnect are flagged ``mutates_wallet``; the
    dispatch loop runs any round containing one sequentially.
    """

    def __init__(self, registry: ChainRegistry) -> None:
        self.registry = registry
        self._bound: dict[str, Signer] = {}

    # ------------------------------------------------------------------
    # Connect / disconnect
    # ------------------------------------------------------------------

    def connect_evm(self, private_key: str) -> Signer:
        """Bind one EVM signer to every EVM chain in the registry."""
        signer = parse_evm_key(private_key)
        self._bind_family(ChainFamily.EVM, signer)
        logger.info(f"EVM wallet connected: {signer.address}")
        return signer

    def connect_non_evm(self, key_material: str) -> Signer:
        """Bind one Solana signer to the Solana chain family."""
        signer = parse_solana_key(key_material)
        self._bind_family(ChainFamily.SOLANA, signer)
        logger.info(f"Solana wallet connected: {signer.address}")
        return signer

    def _bind_family(self, family: ChainFamily, signer: Signer) -> None:
        for chain in self.registry.chains_of(family):
            previous = self._bound.get(chain.key)
            self._bound[chain.key] = signer
            if previous is not None and previous is not signer:
                self._release(previous)

    def disconnect(self, chain_key: str | None = None) -> list[str]:
        """Clear one chain's signer, or every signer when *chain_key* is None.

        Returns the keys that were actually disconnected. Safe to call with
        nothing connected.
        """
        if chain_key is None:
            cleared = self.connected_chains()
            for key in cleared:
                self._release(self._bound.pop(key))
            if cleared:
                logger.info("All wallets cleared from memory")
            return cleared

        key = self.registry.lookup(chain_key).key
        signer = self._bound.pop(key, None)
        if signer is None:
            return []
        self._release(signer)
        logger.info(f"Wallet cleared for chain: {key}")
        return [key]

    def _release(self, signer: Signer) -> None:
        # one EVM signer is shared by several chains; wipe it with the last one
        if signer not in self._bound.values():
            signer.wipe()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_signer(self, chain_key: str) -> Signer | None:
        return self._bound.get(self.registry.lookup(chain_key).key)

    def connected_chains(self) -> list[str]:
        """Keys with a bound signer, in registry order."""
        return [key for key in self.registry.list_keys() if key in self._bound]

    def is_empty(self) -> bool:
        return not self._bound
