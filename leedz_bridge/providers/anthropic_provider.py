"""
Anthropic provider for Claude chat completions.

Uses the Messages API: the system prompt travels in the top-level `system`
field and the reply text is the first content block.
"""

from typing import Dict, Optional

import requests

from .base import LLMProvider
from ..utils.logger import logger


class AnthropicProvider(LLMProvider):
    """
    Anthropic provider for Claude.

    Features:
    - Claude Haiku by default (fast and cheap for short JSON replies)
    - API key may be assigned after construction
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize Anthropic provider.

        Args:
            config: Provider configuration with:
                - url: Messages endpoint (default: https://api.anthropic.com/v1/messages)
                - model: Model name
                - api_key: API key (may be assigned later)
                - anthropic_version: API version header
                - timeout: Request timeout in seconds
                - max_tokens: Maximum response tokens
                - temperature: Sampling temperature

        A missing key is tolerated here: the translator resolves it from
        the database façade or the keyring after start-up.
        """
        config = config or {}
        self.url = config.get("url", "https://api.anthropic.com/v1/messages")
        self.model = config.get("model", "claude-3-5-haiku-latest")
        self.api_key = config.get("api_key")
        self.anthropic_version = config.get("anthropic_version", "2023-06-01")
        self.timeout = max(config.get("timeout", 60), 30)
        self.max_tokens = config.get("max_tokens", 1024)
        self.temperature = config.get("temperature", 0.1)

    def get_name(self) -> str:
        return "anthropic"

    @property
    def is_local(self) -> bool:
        return False

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key or "",
            "anthropic-version": self.anthropic_version,
            "content-type": "application/json",
        }

    def health_check(self) -> bool:
        """
        Check if Anthropic API is accessible.
        Uses a minimal message request to verify authentication.
        """
        if not self.api_key:
            return False
        try:
            response = requests.post(
                self.url,
                headers=self._headers(),
                json={
                    "model": self.model,
                    "max_tokens": 1,
                    "messages": [{"role": "user", "content": "hi"}],
                },
                timeout=10,
            )

            if response.status_code == 401:
                logger.error("Anthropic API key is invalid")
                return False

            if response.status_code == 429:
                logger.warning("Anthropic rate limit hit during health check")
                return True  # API is reachable, just rate limited

            return response.status_code == 200
        except requests.exceptions.Timeout:
            logger.warning("Anthropic health check timed out")
            return False
        except requests.exceptions.RequestException as e:
            logger.warning(f"Anthropic health check failed: {e}")
            return False

    def complete(self, system_prompt: str, user_message: str) -> Optional[str]:
        if not self.api_key:
            logger.error("Anthropic API key missing, cannot translate request")
            return None

        logger.debug(f"Sending request to Claude: {user_message[:100]}")
        try:
            response = requests.post(
                self.url,
                headers=self._headers(),
                json={
                    "model": self.model,
                    "max_tokens": self.max_tokens,
                    "temperature": self.temperature,
                    "system": system_prompt,
                    "messages": [{"role": "user", "content": user_message}],
                },
                timeout=self.timeout,
            )

            if response.status_code == 429:
                logger.warning("Anthropic rate limit exceeded")
                return None

            response.raise_for_status()
            data = response.json()
            blocks = data.get("content") or []
            content = blocks[0].get("text", "") if blocks else ""
            logger.debug(f"Claude response: {content[:200]}")
            return content

        except requests.exceptions.Timeout:
            logger.error("Anthropic request timed out")
            return None
        except requests.exceptions.RequestException as e:
            logger.error(f"Claude API error: {e}")
            return None
        except (ValueError, AttributeError, TypeError) as e:
            logger.error(f"Unexpected Claude response shape: {e}")
            return None
