"""Multi-chain wallet layer for the Nexis agent.

Provides the chain registry, an in-memory per-session wallet store, and the
shared RPC providers for EVM chains (web3) and Solana (solana-py). Keys are
held in memory only and are never written anywhere.
"""

from nexis_agent.wallet.chains import Chain, ChainFamily, ChainRegistry, Token
from nexis_agent.wallet.session import SessionWallet, Signer

__all__ = ["Chain", "ChainFamily", "ChainRegistry", "SessionWallet", "Signer", "Token"]
