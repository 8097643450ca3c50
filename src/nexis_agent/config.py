"""Configuration system for the Nexis agent.

Loads settings from a ``config.yaml`` file, expands ``${VAR}`` placeholders
from the environment, and validates the result with pydantic. When no file
is given the same structure is built from environment variables alone.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from nexis_agent.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    Unset variables expand to an empty string so that an unset
    ``${COINGECKO_API_KEY}`` simply means "no key".
    """

    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class LLMProviderConfig(BaseModel):
    """Configuration for a single LLM provider (Anthropic, OpenAI, etc.)."""

    api_key: str = ""
    model: str = ""
    base_url: Optional[str] = None  # For OpenAI-compatible endpoints
    max_tokens: int = 2048
    temperature: float = 0.7
    timeout_seconds: float = 25.0


class LLMConfig(BaseModel):
    """Top-level LLM configuration that can hold multiple providers."""

    default_provider: str = "openai"
    anthropic: Optional[LLMProviderConfig] = None
    openai: Optional[LLMProviderConfig] = None


class ChainOverride(BaseModel):
    """Per-chain endpoint overrides. Empty values keep the built-in default."""

    rpc_url: str = ""
    explorer_url: str = ""
    faucet_url: str = ""


class ChainsConfig(BaseModel):
    overrides: dict[str, ChainOverride] = Field(default_factory=dict)
    # chain key -> {symbol: contract address}, appended after the built-in tokens
    tokens: dict[str, dict[str, str]] = Field(default_factory=dict)


class PricesConfig(BaseModel):
    """CoinGecko settings. The API key is optional (public tier)."""

    base_url: str = "https://api.coingecko.com/api/v3"
    api_key: str = ""
    timeout_seconds: float = 10.0


class DispatchConfig(BaseModel):
    """Limits for the model/tool loop."""

    max_rounds: int = Field(10, ge=1)
    tool_timeout_seconds: float = Field(20.0, gt=0)
    request_timeout_seconds: float = Field(30.0, gt=0)
    confirmation_timeout_seconds: float = Field(120.0, gt=0)


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://localhost:8080",
        ]
    )


class AgentConfig(BaseModel):
    """Root configuration object."""

    name: str = "Nexis Multi-Chain Agent"
    llm: LLMConfig = Field(default_factory=LLMConfig)
    chains: ChainsConfig = Field(default_factory=ChainsConfig)
    prices: PricesConfig = Field(default_factory=PricesConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------

# Environment variables consulted by ``default_config`` for RPC overrides.
_RPC_ENV_VARS = {
    "ethereum": "ETHEREUM_RPC_URL",
    "baseSepolia": "BASE_SEPOLIA_RPC_URL",
    "monad": "MONAD_RPC_URL",
    "polygon": "POLYGON_RPC_URL",
    "arbitrum": "ARBITRUM_RPC_URL",
    "solana": "SOLANA_RPC_URL",
}


def load_config(path: Path) -> AgentConfig:
    """Load and validate configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation. Invalid values raise :class:`ConfigurationError`.
    """
    raw_text = path.read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    expanded = _expand_env_recursive(raw_data)
    try:
        return AgentConfig.model_validate(expanded)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid config {path}: {problems}") from None


def save_config(config: AgentConfig, path: Path) -> None:
    """Serialize an :class:`AgentConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="python", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)


def default_config() -> AgentConfig:
    """Build a configuration purely from environment variables."""
    config = AgentConfig()
    config.llm.default_provider = os.environ.get("NEXIS_LLM_PROVIDER", "openai")
    if os.environ.get("OPENAI_API_KEY") or config.llm.default_provider == "openai":
        config.llm.openai = LLMProviderConfig(
            api_key=os.environ.get("OPENAI_API_KEY", ""),
            model=os.environ.get("OPENAI_MODEL", "gpt-4o-mini"),
            base_url=os.environ.get("OPENAI_BASE_URL") or None,
        )
    if os.environ.get("ANTHROPIC_API_KEY") or config.llm.default_provider == "anthropic":
        config.llm.anthropic = LLMProviderConfig(
            api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            model=os.environ.get("ANTHROPIC_MODEL", "claude-sonnet-4-5-20250929"),
        )
    config.prices.api_key = os.environ.get("COINGECKO_API_KEY", "")
    for chain_key, env_var in _RPC_ENV_VARS.items():
        rpc_url = os.environ.get(env_var)
        if rpc_url:
            config.chains.overrides[chain_key] = ChainOverride(rpc_url=rpc_url)
    if os.environ.get("PORT"):
        config.server.port = int(os.environ["PORT"])
    return config


def resolve_config(path: Path | None = None) -> AgentConfig:
    """Load *path* when given (or ``./config.yaml`` if present), else the env."""
    if path is None:
        candidate = Path.cwd() / "config.yaml"
        if candidate.exists():
            path = candidate
    if path is None:
        return default_config()
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    return load_config(path)


def require_llm_credentials(config: AgentConfig) -> LLMProviderConfig:
    """Return the selected provider block or raise :class:`ConfigurationError`.

    The agent refuses to serve without a model API key instead of failing on
    the first request.
    """
    name = config.llm.default_provider
    block = getattr(config.llm, name, None)
    if block is None:
        raise ConfigurationError(
            f"LLM provider '{name}' is selected but has no configuration block."
        )
    if not block.api_key:
        raise ConfigurationError(
            f"API key for LLM provider '{name}' is missing. "
            f"Set it in config.yaml or via the environment."
        )
    return block
