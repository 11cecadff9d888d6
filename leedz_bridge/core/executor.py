"""
Action executor - runs a ResolvedAction against the invoicing database API.
"""

import json
import logging
from typing import Any, Optional

import requests

from .intent import ResolvedAction

logger = logging.getLogger(__name__)


class ActionError(Exception):
    """The database API call failed; the message is shown to the caller."""


class ActionExecutor:
    """
    Issues HTTP calls against the database façade.

    Args:
        base_url: Database API root, e.g. http://127.0.0.1:3000
        timeout: Request timeout in seconds
    """

    def __init__(self, base_url: str, timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def execute(self, action: ResolvedAction) -> Any:
        """
        Run an actionable ResolvedAction.

        GET and DELETE carry no body; POST and PUT send `data` as JSON.

        Returns:
            Decoded JSON body, raw text for non-JSON bodies, None when empty

        Raises:
            ActionError: "HTTP <status>: <error>" or "Network error"
        """
        if not action.actionable:
            raise ValueError("Non-actionable replies must not reach the database")

        url = f"{self.base_url}{action.endpoint}"
        body = action.data if action.method in ("POST", "PUT") else None
        logger.info(f"Executing {action.method} {action.endpoint}")

        try:
            response = requests.request(
                action.method,
                url,
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"HTTP request failed: {e}")
            raise ActionError("Network error") from e

        if not 200 <= response.status_code < 300:
            message = f"HTTP {response.status_code}: {_error_text(response)}"
            logger.error(f"HTTP request failed: {message}")
            raise ActionError(message)

        logger.info(f"HTTP request successful: {response.status_code}")
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def fetch_llm_api_key(self) -> Optional[str]:
        """
        Read the LLM API key the database publishes in its Config record.

        Returns:
            The key, or None if the database is unreachable or has none.
        """
        try:
            response = requests.get(f"{self.base_url}/config", timeout=5)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Could not fetch API key from database: {e}")
            return None

        key = data.get("llmApiKey") if isinstance(data, dict) else None
        return key or None


def _error_text(response) -> str:
    try:
        data = response.json()
    except ValueError:
        return "Request failed"
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return "Request failed"


def _pretty(result: Any) -> str:
    return json.dumps(result, indent=2, ensure_ascii=False)


def format_action_result(result: Any, action: ResolvedAction) -> str:
    """Render an executor result as the text shown to the user."""
    method = (action.method or "").upper()
    description = action.description or ""

    if method == "GET":
        if "/stats" in (action.endpoint or ""):
            return f"📊 {description}\n\n{_pretty(result)}"
        if isinstance(result, list):
            return f"📋 {description}\n\nFound {len(result)} items:\n{_pretty(result)}"
        return f"📄 {description}\n\n{_pretty(result)}"
    if method == "POST":
        return f"✅ {description}\n\nCreated successfully:\n{_pretty(result)}"
    if method == "PUT":
        return f"🔄 {description}\n\nUpdated successfully:\n{_pretty(result)}"
    if method == "DELETE":
        return f"🗑 {description}\n\nDeleted successfully"
    return f"✅ {description}\n\n{_pretty(result)}"
