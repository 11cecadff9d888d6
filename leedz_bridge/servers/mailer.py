"""
Gmail mailer tool server.

Sends or drafts mail through the Gmail API with an OAuth token the browser
extension deposits on the loopback control plane. When another instance
owns the control port, the token is pulled from it on demand.
"""

from typing import Any, Dict, List, Optional, Tuple

import requests

from ..core.control_plane import ControlPlane, Role
from ..core.mime import MailValidationError, OutgoingMail, build_mime_message, encode_base64url
from ..core.protocol import (
    AUTH_REQUIRED,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    RpcError,
    ToolServer,
    text_result,
)
from ..core.token_store import Token, TokenStore, from_iso
from ..providers.gmail_client import (
    GmailApiError,
    GmailAuthError,
    GmailClient,
    GmailNetworkError,
)
from ..utils.logger import logger

TOOL_NAME = "gmail_send"

NO_TOKEN_MESSAGE = (
    "No valid OAuth token. Please authorize Gmail from the browser extension first."
)
TOKEN_REJECTED_MESSAGE = (
    "Gmail rejected the OAuth token (expired or revoked). "
    "Please re-authorize Gmail from the browser extension."
)

SIBLING_TIMEOUT = 5

INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "to": {"type": "string", "description": "Recipient email address"},
        "subject": {"type": "string", "description": "Email subject line"},
        "body": {"type": "string", "description": "Email body (plain text)"},
        "cc": {"type": "string", "description": "CC recipients (comma-separated)"},
        "bcc": {"type": "string", "description": "BCC recipients (comma-separated)"},
        "draft": {
            "type": "boolean",
            "description": "Save as a Gmail draft instead of sending",
        },
        "attachments": {
            "type": "array",
            "description": (
                "Optional file attachments. Each attachment must have: filename (string), "
                "content (base64 string), contentType (MIME type like \"application/pdf\" "
                "or \"image/png\")"
            ),
            "items": {
                "type": "object",
                "properties": {
                    "filename": {"type": "string", "description": "Filename with extension"},
                    "content": {"type": "string", "description": "Base64 encoded file content"},
                    "contentType": {
                        "type": "string",
                        "description": "MIME type (application/pdf, image/png, image/jpeg, etc.)",
                    },
                },
                "required": ["filename", "content", "contentType"],
            },
        },
    },
    "required": ["to", "subject", "body"],
}


class MailerServer(ToolServer):
    """
    Tool server for the gmail_send tool.

    Args:
        token_store: Holder of the deposited OAuth token
        gmail: Gmail API client
        control_plane: Control plane whose role decides whether tokens are
            pulled from a primary instance
    """

    def __init__(
        self,
        token_store: TokenStore,
        gmail: GmailClient,
        control_plane: Optional[ControlPlane] = None,
        name: str = "gmail-mcp",
        version: str = "1.0.0",
        protocol_version: str = "2025-06-18",
    ):
        super().__init__(name=name, version=version, protocol_version=protocol_version)
        self.token_store = token_store
        self.gmail = gmail
        self.control_plane = control_plane

    def list_tools(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": TOOL_NAME,
                "description": (
                    "Send email via Gmail using the authorized account, or save it as a draft. "
                    "Supports plain text and file attachments. When the user uploads files, "
                    "include them in the attachments array with base64-encoded content."
                ),
                "inputSchema": INPUT_SCHEMA,
            }
        ]

    def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        if name != TOOL_NAME:
            raise RpcError(INVALID_PARAMS, f"Unknown tool: {name}")

        token = self._acquire_token()
        if token is None:
            raise RpcError(AUTH_REQUIRED, NO_TOKEN_MESSAGE)

        try:
            mail = OutgoingMail.from_arguments(arguments)
        except MailValidationError as e:
            raise RpcError(INVALID_PARAMS, str(e))

        attached = f" with {len(mail.attachments)} attachment(s)" if mail.attachments else ""
        action = "Drafting" if mail.draft else "Sending"
        logger.info(f"{action} email to {mail.to}{attached}")

        raw = encode_base64url(build_mime_message(mail))

        try:
            if mail.draft:
                result = self.gmail.create_draft(token.value, raw)
            else:
                result = self.gmail.send_message(token.value, raw)
        except GmailAuthError:
            # The token read above is the one rejected; a newer deposit survives
            self.token_store.invalidate(expected=token.value, reason="Gmail returned 401")
            raise RpcError(AUTH_REQUIRED, TOKEN_REJECTED_MESSAGE)
        except GmailNetworkError:
            raise RpcError(INTERNAL_ERROR, "Network error")
        except GmailApiError as e:
            verb = "create draft" if mail.draft else "send email"
            raise RpcError(INTERNAL_ERROR, f"Failed to {verb}: {e.message}")

        if mail.draft:
            text = f"Draft created successfully for {mail.to}. Draft ID: {result.get('id', 'unknown')}"
        else:
            text = f"Email sent successfully to {mail.to}. Message ID: {result.get('id', 'unknown')}"
        logger.info(text)
        return text_result(text)

    def _acquire_token(self) -> Optional[Token]:
        token = self.token_store.current()
        if token is not None:
            return token
        if self.control_plane is not None and self.control_plane.role is Role.SECONDARY:
            return self._fetch_from_primary()
        return None

    def _fetch_from_primary(self) -> Optional[Token]:
        """Copy the token held by the instance that owns the control port."""
        url = f"{self.control_plane.base_url}/token"
        try:
            response = requests.get(url, timeout=SIBLING_TIMEOUT)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Could not reach primary instance at {url}: {e}")
            return None

        if response.status_code != 200:
            logger.info(f"Primary instance has no token (HTTP {response.status_code})")
            return None

        try:
            data = response.json()
            value = data["token"]
            expires_at = from_iso(data["expiry"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Malformed token reply from primary instance: {e}")
            return None

        return self.token_store.adopt(value, expires_at)


def create_mailer(config: Dict[str, Any]) -> Tuple[MailerServer, ControlPlane]:
    """Wire a MailerServer, its token store and control plane from config."""
    http = config["http"]
    gmail_cfg = config.get("gmail", {})
    token_cfg = config.get("token", {})
    mcp = config["mcp"]

    gmail = GmailClient(
        api_base=gmail_cfg.get("apiBase", "https://gmail.googleapis.com/gmail/v1/users/me"),
        timeout=gmail_cfg.get("timeout", 30),
        probe_timeout=token_cfg.get("probeTimeoutSeconds", 5),
    )
    token_store = TokenStore(
        probe=gmail.check_token,
        lifetime=token_cfg.get("lifetimeSeconds", 3600),
        probe_interval=token_cfg.get("probeIntervalSeconds", 2700),
    )
    control_plane = ControlPlane(
        service=mcp["name"],
        version=mcp["version"],
        token_store=token_store,
        host=http.get("host", "127.0.0.1"),
        port=http["port"],
    )
    server = MailerServer(
        token_store=token_store,
        gmail=gmail,
        control_plane=control_plane,
        name=mcp["name"],
        version=mcp["version"],
        protocol_version=mcp["protocolVersion"],
    )
    return server, control_plane
