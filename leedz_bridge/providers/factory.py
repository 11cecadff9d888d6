"""
Provider factory for LLM provider instantiation.

Single entry point to build the chat provider named in the translator's
`llm.provider` setting. Uses a registry pattern for provider classes.
"""

import logging
from typing import Any, Dict, Optional, Type

from .base import LLMProvider

logger = logging.getLogger(__name__)


class ProviderFactory:
    """
    Factory for creating LLM provider instances.

    Features:
    - Registry pattern for provider classes
    - Translation of the camelCase `llm` config block into provider kwargs
    """

    _providers: Dict[str, Type[LLMProvider]] = {}

    @classmethod
    def register(cls, name: str, provider_class: Type[LLMProvider]) -> None:
        """
        Register a provider class.

        Args:
            name: Provider identifier (e.g., 'openai', 'anthropic')
            provider_class: LLMProvider subclass
        """
        cls._providers[name] = provider_class
        logger.debug(f"Registered provider: {name}")

    @classmethod
    def create(cls, name: str, config: Optional[Dict] = None) -> LLMProvider:
        """
        Create a provider instance.

        Args:
            name: Provider name (openai, anthropic)
            config: Provider-specific configuration (snake_case keys)

        Raises:
            ValueError: If provider name is unknown
        """
        if name not in cls._providers:
            available = list(cls._providers.keys())
            raise ValueError(f"Unknown provider: '{name}'. Available: {available}")

        instance = cls._providers[name](config or {})
        logger.info(f"Created provider instance: {name}")
        return instance

    @classmethod
    def from_llm_config(cls, llm: Dict[str, Any]) -> LLMProvider:
        """Build the provider described by a translator `llm` config block."""
        options = {
            "url": llm.get("url"),
            "model": llm.get("model"),
            "api_key": llm.get("apiKey"),
            "timeout": llm.get("timeout"),
            "max_tokens": llm.get("maxTokens"),
            "temperature": llm.get("temperature"),
            "anthropic_version": llm.get("anthropicVersion"),
        }
        return cls.create(
            llm.get("provider", "openai"),
            {key: value for key, value in options.items() if value is not None},
        )


def _auto_register_providers():
    """
    Register the built-in providers.
    Called on module import.
    """
    from .anthropic_provider import AnthropicProvider
    from .openai_provider import OpenAICompatibleProvider

    ProviderFactory.register("openai", OpenAICompatibleProvider)
    ProviderFactory.register("anthropic", AnthropicProvider)


# Auto-register on import
_auto_register_providers()
