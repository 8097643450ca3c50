"""LLM provider router that maps provider names to concrete instances."""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from nexis_agent.config import LLMConfig
from nexis_agent.errors import ConfigurationError
from nexis_agent.llm.base import BaseLLMProvider

if TYPE_CHECKING:
    from nexis_agent.config import LLMProviderConfig

logger = logging.getLogger("nexis_agent.llm.router")

# Provider name -> implementation class, imported on first use.
_PROVIDER_FACTORIES: dict[str, str] = {
    "anthropic": "nexis_agent.llm.anthropic.AnthropicProvider",
    "openai": "nexis_agent.llm.openai.OpenAIProvider",
}


def _import_provider_class(dotted_path: str) -> type[BaseLLMProvider]:
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    if not (isinstance(cls, type) and issubclass(cls, BaseLLMProvider)):
        raise TypeError(
            f"Expected a BaseLLMProvider subclass at '{dotted_path}', got {cls!r}"
        )
    return cls


class LLMRouter:
    """Builds and caches provider instances from the ``llm`` config section.

    One router is shared by every session; providers hold only the model API
    key, never wallet material.
    """

    def __init__(self, llm_config: LLMConfig):
        self._config = llm_config
        self._providers: dict[str, BaseLLMProvider] = {}

    def _get_provider_config(self, provider_name: str) -> "LLMProviderConfig":
        config_block = getattr(self._config, provider_name, None)
        if config_block is None:
            available = [
                attr
                for attr in _PROVIDER_FACTORIES
                if getattr(self._config, attr, None) is not None
            ]
            raise ConfigurationError(
                f"Provider '{provider_name}' is not configured. "
                f"Available configured providers: {available or 'none'}."
            )
        return config_block

    def get_provider(
        self,
        provider_name: str | None = None,
        model_override: str | None = None,
    ) -> BaseLLMProvider:
        """Get or create a provider instance.

        Falls back to ``default_provider`` when *provider_name* is None.
        Raises :class:`ConfigurationError` for unknown or unconfigured
        providers and for a missing API key.
        """
        name = provider_name or self._config.default_provider
        cache_key = f"{name}:{model_override}" if model_override else name
        if cache_key in self._providers:
            return self._providers[cache_key]

        if name not in _PROVIDER_FACTORIES:
            raise ConfigurationError(
                f"Unknown provider '{name}'. "
                f"Supported providers: {sorted(_PROVIDER_FACTORIES)}"
            )

        provider_config = self._get_provider_config(name)
        if not provider_config.api_key:
            raise ConfigurationError(
                f"API key for provider '{name}' is empty. Set it in config.yaml "
                f"or via the environment."
            )

        model = model_override or provider_config.model
        if not model:
            raise ConfigurationError(f"No model specified for provider '{name}'.")

        provider_cls = _import_provider_class(_PROVIDER_FACTORIES[name])
        provider = provider_cls(
            api_key=provider_config.api_key,
            model=model,
            base_url=provider_config.base_url,
            max_tokens=provider_config.max_tokens,
            temperature=provider_config.temperature,
            timeout=provider_config.timeout_seconds,
        )

        self._providers[cache_key] = provider
        logger.info(
            "Created %s provider (model=%s, base_url=%s)",
            name,
            model,
            provider_config.base_url or "default",
        )
        return provider
