"""
Intent resolver - turns a natural-language request into a database action.

Flow: user message -> LLM (system prompt from config) -> tolerant JSON
extraction -> ResolvedAction validation. Every failure along the way
resolves to None, which the translator answers with a friendly
"couldn't understand" reply instead of touching the database.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .json_extract import parse_json_reply
from ..providers.base import LLMProvider
from ..utils.logger import logger

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE")


@dataclass
class ResolvedAction:
    """
    Structured result of intent resolution.

    Attributes:
        actionable: False for conversational replies
        method: HTTP method for actionable requests
        endpoint: Path relative to the database API base URL
        data: JSON body for POST/PUT
        description: Short summary shown to the user
        response: Verbatim reply for non-actionable requests
    """
    actionable: bool
    method: Optional[str] = None
    endpoint: Optional[str] = None
    data: Any = None
    description: Optional[str] = None
    response: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ResolvedAction":
        """
        Validate a decoded LLM reply.

        Raises:
            ValueError: if the reply is not a usable action
        """
        if not isinstance(payload, dict):
            raise ValueError("LLM reply is not a JSON object")

        actionable = payload.get("actionable", True)
        if not isinstance(actionable, bool):
            raise ValueError("'actionable' must be a boolean")

        if not actionable:
            response = payload.get("response")
            if not isinstance(response, str) or not response.strip():
                raise ValueError("Conversational reply has no 'response' text")
            return cls(actionable=False, response=response)

        method = payload.get("method")
        if not isinstance(method, str) or method.upper() not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method!r}")

        endpoint = payload.get("endpoint")
        if not isinstance(endpoint, str) or not endpoint.startswith("/") or endpoint.startswith("//"):
            raise ValueError(f"Endpoint must be a path starting with '/': {endpoint!r}")

        description = payload.get("description")
        if not isinstance(description, str) or not description.strip():
            description = f"{method.upper()} {endpoint}"

        return cls(
            actionable=True,
            method=method.upper(),
            endpoint=endpoint,
            data=payload.get("data"),
            description=description,
        )


class IntentResolver:
    """
    Asks the LLM to translate a request and validates what comes back.

    Args:
        provider: Chat provider used for the translation
        system_prompt: Instructions describing endpoints and reply format
    """

    def __init__(self, provider: LLMProvider, system_prompt: str):
        self.provider = provider
        self.system_prompt = system_prompt

    def resolve(self, message: str) -> Optional[ResolvedAction]:
        content = self.provider.complete(self.system_prompt, message)
        if content is None:
            return None

        payload = parse_json_reply(content)
        if payload is None:
            return None

        try:
            action = ResolvedAction.from_dict(payload)
        except ValueError as e:
            logger.warning(f"Discarding LLM reply: {e}")
            return None

        logger.info("Successfully parsed LLM response")
        return action
