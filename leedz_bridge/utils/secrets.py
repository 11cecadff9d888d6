"""
Secrets management for the Leedz tool servers using the system keyring.

Stores the LLM provider API key used by the translator when neither the
config file nor the database façade supplies one. Uses the `keyring`
library which supports:
- Windows Credential Manager
- macOS Keychain
- Linux Secret Service (GNOME Keyring, KWallet)

OAuth tokens for Gmail are never stored here; they live in process memory.
"""

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

# Service name for keyring entries
SERVICE_NAME = "leedz-bridge"


def _entry(provider: str) -> str:
    return f"{provider}_api_key"


def get_api_key(provider: str) -> Optional[str]:
    """
    Retrieve API key for an LLM provider from secure storage.

    Args:
        provider: Provider name (e.g., 'openai', 'anthropic')

    Returns:
        API key string or None if not found or the keyring is unusable
    """
    try:
        key = keyring.get_password(SERVICE_NAME, _entry(provider))
        if key:
            logger.debug(f"Retrieved API key for {provider} from keyring")
        return key
    except KeyringError as e:
        logger.warning(f"Keyring unavailable, no stored API key for {provider}: {e}")
        return None


def set_api_key(provider: str, api_key: str) -> bool:
    """
    Store API key for an LLM provider in secure storage.

    Returns:
        True if successful, False otherwise
    """
    try:
        keyring.set_password(SERVICE_NAME, _entry(provider), api_key)
        logger.info(f"Stored API key for {provider} in keyring")
        return True
    except KeyringError as e:
        logger.error(f"Failed to store API key for {provider}: {e}")
        return False


def delete_api_key(provider: str) -> bool:
    """
    Remove API key for an LLM provider from secure storage.

    Returns:
        True if successful, False otherwise
    """
    try:
        keyring.delete_password(SERVICE_NAME, _entry(provider))
        logger.info(f"Deleted API key for {provider} from keyring")
        return True
    except PasswordDeleteError:
        logger.warning(f"No API key found for {provider} to delete")
        return False
    except KeyringError as e:
        logger.error(f"Failed to delete API key for {provider}: {e}")
        return False
