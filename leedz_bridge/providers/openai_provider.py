"""
OpenAI-compatible chat-completion provider.

Talks to any server that implements POST /v1/chat/completions: LM Studio,
llama.cpp server, Ollama's OpenAI endpoint, vLLM, or OpenAI itself.
"""

from typing import Dict, Optional
from urllib.parse import urlparse

import requests

from .base import LLMProvider
from ..utils.logger import logger

LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


class OpenAICompatibleProvider(LLMProvider):
    """
    Chat-completion provider for OpenAI-shaped APIs.

    Features:
    - Works against local servers without an API key
    - Bearer auth only when a key is set
    - Low temperature for consistent JSON output
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize provider.

        Args:
            config: Provider configuration with:
                - url: Full chat-completions URL
                - model: Model name
                - api_key: API key (may be assigned later)
                - timeout: Request timeout in seconds (default: 60)
                - max_tokens: Maximum response tokens
                - temperature: Sampling temperature
        """
        config = config or {}
        self.url = config.get("url", "http://127.0.0.1:1234/v1/chat/completions")
        self.model = config.get("model", "local-model")
        self.timeout = max(config.get("timeout", 60), 30)
        self.max_tokens = config.get("max_tokens", 1024)
        self.temperature = config.get("temperature", 0.1)
        self.api_key = config.get("api_key")

    def get_name(self) -> str:
        return "openai"

    @property
    def is_local(self) -> bool:
        return urlparse(self.url).hostname in LOCAL_HOSTS

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def health_check(self) -> bool:
        """
        Check if the server answers on its models endpoint.
        """
        models_url = self.url.rsplit("/chat/completions", 1)[0] + "/models"
        try:
            response = requests.get(models_url, headers=self._headers(), timeout=5)

            if response.status_code == 401:
                logger.error("LLM API key is invalid")
                return False

            return response.status_code == 200
        except requests.exceptions.Timeout:
            logger.warning("LLM health check timed out")
            return False
        except requests.exceptions.RequestException as e:
            logger.warning(f"LLM health check failed: {e}")
            return False

    def complete(self, system_prompt: str, user_message: str) -> Optional[str]:
        """
        Send one chat completion and return the assistant message text.
        """
        logger.debug(f"Sending request to LLM: {user_message[:100]}")
        try:
            response = requests.post(
                self.url,
                headers=self._headers(),
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_message},
                    ],
                    "max_tokens": self.max_tokens,
                    "temperature": self.temperature,
                },
                timeout=self.timeout,
            )

            if response.status_code == 429:
                logger.warning("LLM rate limit exceeded")
                return None

            response.raise_for_status()
            data = response.json()
            content = data["choices"][0]["message"]["content"] or ""
            logger.debug(f"LLM response: {content[:200]}")
            return content

        except requests.exceptions.Timeout:
            logger.error("LLM request timed out")
            return None
        except requests.exceptions.RequestException as e:
            logger.error(f"LLM API error: {e}")
            return None
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Unexpected LLM response shape: {e}")
            return None
