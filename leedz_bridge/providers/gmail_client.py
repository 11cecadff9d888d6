"""
Gmail REST client used by the mailer.

Works with a bare OAuth bearer token handed over by the browser extension.
Only three endpoints are used: the profile (as a token probe), messages/send
and drafts.
"""

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1/users/me"


class GmailError(Exception):
    """Base class for Gmail API failures."""


class GmailAuthError(GmailError):
    """The provider rejected the bearer token (HTTP 401)."""


class GmailApiError(GmailError):
    """Any other non-2xx answer from the provider."""

    def __init__(self, status: int, message: str):
        super().__init__(f"Gmail API returned {status}: {message}")
        self.status = status
        self.message = message


class GmailNetworkError(GmailError):
    """The provider could not be reached."""


class GmailClient:
    """
    Thin wrapper over the Gmail v1 API.

    Args:
        api_base: `.../gmail/v1/users/me` base URL (overridable for tests)
        timeout: Timeout in seconds for send and draft calls
        probe_timeout: Timeout in seconds for the token probe
    """

    def __init__(
        self,
        api_base: str = GMAIL_API_BASE,
        timeout: float = 30,
        probe_timeout: float = 5,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.probe_timeout = probe_timeout

    @staticmethod
    def _headers(token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def check_token(self, token: str) -> bool:
        """
        Probe the profile endpoint with the token.

        Returns:
            True only on a 2xx answer; errors and timeouts count as invalid.
        """
        try:
            response = requests.get(
                f"{self.api_base}/profile",
                headers=self._headers(token),
                timeout=self.probe_timeout,
            )
        except requests.exceptions.Timeout:
            logger.warning("Gmail token probe timed out")
            return False
        except requests.exceptions.RequestException as e:
            logger.warning(f"Gmail token probe failed: {e}")
            return False

        if 200 <= response.status_code < 300:
            return True
        logger.warning(f"Gmail token probe returned status {response.status_code}")
        return False

    def send_message(self, token: str, raw: str) -> Dict[str, Any]:
        """POST a base64url message to messages/send."""
        return self._post(token, "/messages/send", {"raw": raw})

    def create_draft(self, token: str, raw: str) -> Dict[str, Any]:
        """POST a base64url message to drafts."""
        return self._post(token, "/drafts", {"message": {"raw": raw}})

    def _post(self, token: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(
                f"{self.api_base}{path}",
                headers=self._headers(token),
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Gmail request to {path} failed: {e}")
            raise GmailNetworkError("Network error") from e

        if response.status_code == 401:
            raise GmailAuthError("Gmail rejected the OAuth token")
        if not 200 <= response.status_code < 300:
            message = _error_message(response)
            logger.error(f"Gmail API error {response.status_code} on {path}: {message}")
            raise GmailApiError(response.status_code, message)

        try:
            data = response.json()
        except ValueError:
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Unexpected Gmail reply on {path}: {type(data).__name__}")
            return {}
        return data


def _error_message(response) -> str:
    """Pull Google's `error.message` out of a failed response when present."""
    try:
        data = response.json()
    except ValueError:
        data = None

    message: Optional[str] = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            message = error.get("message")
        elif isinstance(error, str):
            message = data.get("error_description") or error
    if not message:
        message = (response.text or "").strip()[:300] or response.reason or "Request failed"
    return str(message)
