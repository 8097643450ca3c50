"""Nexis - a multi-chain Web3 chat agent."""

__version__ = "0.1.0"
