"""
Providers package for the Leedz tool servers.

- LLM chat providers used by the translator's intent resolver:
  OpenAI-compatible servers (local or cloud) and Anthropic Claude.
- The Gmail REST client used by the mailer.

Use the ProviderFactory for creating LLM provider instances:
    from leedz_bridge.providers import ProviderFactory
    provider = ProviderFactory.from_llm_config(config["llm"])
"""

from .anthropic_provider import AnthropicProvider
from .base import LLMProvider
from .factory import ProviderFactory
from .gmail_client import (
    GmailApiError,
    GmailAuthError,
    GmailClient,
    GmailError,
    GmailNetworkError,
)
from .openai_provider import OpenAICompatibleProvider

__all__ = [
    "LLMProvider",
    "ProviderFactory",
    "OpenAICompatibleProvider",
    "AnthropicProvider",
    "GmailClient",
    "GmailError",
    "GmailAuthError",
    "GmailApiError",
    "GmailNetworkError",
]
