"""Chain definitions for the supported networks."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Iterable

from nexis_agent.errors import UnknownChain

if TYPE_CHECKING:
    from nexis_agent.config import ChainsConfig


class ChainFamily(str, Enum):
    """Signing/address scheme shared by a group of networks."""

    EVM = "evm"
    SOLANA = "solana"


@dataclass(frozen=True)
class Chain:
    """A supported blockchain network."""

    key: str
    display_name: str
    family: ChainFamily
    rpc_url: str
    explorer_url: str
    native_symbol: str
    native_decimals: int = 18
    chain_id: int | None = None
    faucet_url: str | None = None
    explorer_tx_suffix: str = ""

    @property
    def is_evm(self) -> bool:
        return self.family is ChainFamily.EVM

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}{self.explorer_tx_suffix}"


@dataclass(frozen=True)
class Token:
    """A fungible token contract on one chain. Decimals are read on demand."""

    chain_key: str
    symbol: str
    contract_address: str


DEFAULT_CHAINS: tuple[Chain, ...] = (
    Chain(
        key="ethereum",
        display_name="Ethereum Sepolia",
        family=ChainFamily.EVM,
        chain_id=11155111,
        rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
        explorer_url="https://sepolia.etherscan.io",
        faucet_url="https://sepoliafaucet.com/",
        native_symbol="ETH",
    ),
    Chain(
        key="baseSepolia",
        display_name="Base Sepolia",
        family=ChainFamily.EVM,
        chain_id=84532,
        rpc_url="https://sepolia.base.org",
        explorer_url="https://sepolia.basescan.org",
        faucet_url="https://www.coinbase.com/faucets/base-ethereum-sepolia-faucet",
        native_symbol="ETH",
    ),
    Chain(
        key="monad",
        display_name="Monad Testnet",
        family=ChainFamily.EVM,
        chain_id=10143,
        rpc_url="https://testnet-rpc.monad.xyz",
        explorer_url="https://testnet.monadexplorer.com",
        faucet_url="https://testnet.monad.xyz/",
        native_symbol="MON",
    ),
    Chain(
        key="polygon",
        display_name="Polygon Amoy",
        family=ChainFamily.EVM,
        chain_id=80002,
        rpc_url="https://rpc-amoy.polygon.technology",
        explorer_url="https://amoy.polygonscan.com",
        faucet_url="https://faucet.polygon.technology/",
        native_symbol="POL",
    ),
    Chain(
        key="arbitrum",
        display_name="Arbitrum Sepolia",
        family=ChainFamily.EVM,
        chain_id=421614,
        rpc_url="https://sepolia-rollup.arbitrum.io/rpc",
        explorer_url="https://sepolia.arbiscan.io",
        faucet_url="https://bridge.arbitrum.io/",
        native_symbol="ETH",
    ),
    Chain(
        key="solana",
        display_name="Solana Devnet",
        family=ChainFamily.SOLANA,
        rpc_url="https://api.devnet.solana.com",
        explorer_url="https://explorer.solana.com",
        faucet_url="https://faucet.solana.com/",
        native_symbol="SOL",
        native_decimals=9,
        explorer_tx_suffix="?cluster=devnet",
    ),
)

DEFAULT_TOKENS: tuple[Token, ...] = (
    Token("ethereum", "USDC", "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"),
    Token("baseSepolia", "USDC", "0x036CbD53842c5426634e7929541eC2318f3dCF7e"),
)

# Informal names users type for a chain -> canonical key.
DEFAULT_ALIASES: dict[str, str] = {
    "base": "baseSepolia",
    "base-sepolia": "baseSepolia",
    "sepolia": "ethereum",
    "eth": "ethereum",
    "monad-testnet": "monad",
    "matic": "polygon",
    "amoy": "polygon",
    "arb": "arbitrum",
    "sol": "solana",
}


def normalize_key(key: str) -> str:
    return key.strip().casefold()


class ChainRegistry:
    """Immutable lookup table of chains and their known tokens.

    Lookups are case-insensitive; every tool resolves its chain argument
    through :meth:`lookup` exactly once.
    """

    def __init__(
        self,
        chains: Iterable[Chain] = DEFAULT_CHAINS,
        tokens: Iterable[Token] = DEFAULT_TOKENS,
        aliases: dict[str, str] | None = None,
    ) -> None:
        self._chains: dict[str, Chain] = {}
        self._index: dict[str, str] = {}
        for chain in chains:
            norm = normalize_key(chain.key)
            if norm in self._index:
                raise ValueError(f"Duplicate chain key '{chain.key}'")
            self._chains[chain.key] = chain
            self._index[norm] = chain.key

        for alias, target in (DEFAULT_ALIASES if aliases is None else aliases).items():
            if target in self._chains:
                self._index.setdefault(normalize_key(alias), target)

        self._tokens: dict[str, list[Token]] = {key: [] for key in self._chains}
        for token in tokens:
            chain_key = self.lookup(token.chain_key).key
            existing = {t.symbol.upper() for t in self._tokens[chain_key]}
            if token.symbol.upper() in existing:
                raise ValueError(
                    f"Duplicate token '{token.symbol}' on chain '{chain_key}'"
                )
            self._tokens[chain_key].append(replace(token, chain_key=chain_key))

    @classmethod
    def from_config(cls, config: ChainsConfig) -> ChainRegistry:
        """Apply endpoint overrides and extra tokens on top of the defaults."""
        chains = []
        for chain in DEFAULT_CHAINS:
            override = config.overrides.get(chain.key)
            if override is not None:
                chain = replace(
                    chain,
                    rpc_url=override.rpc_url or chain.rpc_url,
                    explorer_url=override.explorer_url or chain.explorer_url,
                    faucet_url=override.faucet_url or chain.faucet_url,
                )
            chains.append(chain)
        tokens = list(DEFAULT_TOKENS)
        for chain_key, symbols in config.tokens.items():
            for symbol, address in symbols.items():
                tokens.append(Token(chain_key, symbol, address))
        return cls(chains, tokens)

    def lookup(self, key: str) -> Chain:
        """Return the chain for *key*. Raises :class:`UnknownChain`."""
        canonical = self._index.get(normalize_key(key or ""))
        if canonical is None:
            raise UnknownChain(key, self.list_keys())
        return self._chains[canonical]

    def list_keys(self) -> list[str]:
        return list(self._chains.keys())

    def all(self) -> list[Chain]:
        return list(self._chains.values())

    def chains_of(self, family: ChainFamily) -> list[Chain]:
        return [c for c in self._chains.values() if c.family is family]

    def evm_chains(self) -> list[Chain]:
        return self.chains_of(ChainFamily.EVM)

    def tokens_for(self, key: str) -> list[Token]:
        return list(self._tokens[self.lookup(key).key])
