"""Recipient/owner address validation per chain family."""

from __future__ import annotations

import re

from web3 import Web3

from nexis_agent.errors import InvalidAddress
from nexis_agent.wallet.chains import Chain, ChainFamily
from nexis_agent.wallet.solana import is_solana_address

_EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_evm_address(value: str) -> bool:
    """Syntactic check; mixed-case input must also carry a valid checksum."""
    if not _EVM_ADDRESS_RE.match(value):
        return False
    body = value[2:]
    if body.islower() or body.isupper() or body.isdigit():
        return True
    return Web3.is_checksum_address(value)


def address_family(value: str) -> ChainFamily | None:
    value = value.strip()
    if is_evm_address(value):
        return ChainFamily.EVM
    if is_solana_address(value):
        return ChainFamily.SOLANA
    return None


def validate_address(chain: Chain, address: str) -> str:
    """Return the canonical form of *address* on *chain* or raise InvalidAddress."""
    candidate = (address or "").strip()
    if chain.family is ChainFamily.EVM:
        if not is_evm_address(candidate):
            raise InvalidAddress(candidate, chain.display_name)
        return Web3.to_checksum_address(candidate)
    if not is_solana_address(candidate):
        raise InvalidAddress(candidate, chain.display_name)
    return candidate
