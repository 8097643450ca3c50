"""Error taxonomy for the Nexis agent.

Tools raise these for contract violations; the dispatch loop turns them into
short, non-sensitive messages that are fed back to the model. Anything that
escapes the loop is mapped to the error envelope by the server.
"""

from __future__ import annotations


class NexisError(Exception):
    """Base class for all agent errors."""

    def user_message(self) -> str:
        """Text that is safe to show to the user (and to the model)."""
        return str(self)


class UnknownChain(NexisError):
    """A chain key that is not in the registry."""

    def __init__(self, key: str, available: list[str]):
        self.key = key
        self.available = list(available)
        super().__init__(
            f"Chain '{key}' is not supported. Available chains: {', '.join(self.available)}"
        )


class InvalidCredential(NexisError):
    """Key material that could not be parsed.

    The offending input is never stored on the exception.
    """

    def __init__(self, family: str):
        self.family = family
        super().__init__(
            f"The {family} private key could not be parsed. "
            "Check the format and try again."
        )


class NoWalletBound(NexisError):
    """A signed operation was requested without a connected wallet."""

    def __init__(self, chain_name: str):
        self.chain_name = chain_name
        super().__init__(
            f"No wallet connected for {chain_name}. "
            "Connect a wallet with connectWallet first."
        )


class InvalidAddress(NexisError):
    def __init__(self, address: str, chain_name: str):
        self.address = address
        self.chain_name = chain_name
        super().__init__(f"'{address}' is not a valid recipient address on {chain_name}.")


class InvalidAmount(NexisError):
    def __init__(self, amount: str, reason: str = "amount must be a positive number"):
        self.amount = amount
        super().__init__(f"Invalid amount '{amount}': {reason}.")


class UpstreamTransportError(NexisError):
    """RPC or HTTP API failure (network error, timeout, non-2xx)."""

    def __init__(self, service: str, detail: str):
        self.service = service
        self.detail = detail
        super().__init__(f"{service} request failed: {detail}")


class ConfigurationError(NexisError):
    """A required setting (e.g. the model API key) is missing. Fatal at startup."""
