"""
Base provider interface for the chat-completion LLMs behind the translator.

A provider turns one (system prompt, user message) pair into the model's
raw reply text. Parsing that text into an action is not its job.
"""

from abc import ABC, abstractmethod
from typing import Optional


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers (Model Agnostic).
    """

    @abstractmethod
    def complete(self, system_prompt: str, user_message: str) -> Optional[str]:
        """
        Run one chat completion.

        Args:
            system_prompt: Instructions describing the expected JSON reply
            user_message: The user's natural-language request

        Returns:
            The reply text, or None if the model could not be reached or
            answered with an error.
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """
        Check if the provider service is available.
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """
        Return provider identifier for logging.
        """
        pass

    @property
    @abstractmethod
    def is_local(self) -> bool:
        """Whether provider runs locally (no cloud costs)."""
        pass

