"""
Core modules for the Leedz MCP bridge.

This package contains the pieces shared by both daemons:
- transport: line-delimited JSON over stdio
- protocol: JSON-RPC envelopes and MCP method dispatch
- lifecycle: daemon startup and shutdown
- control_plane: loopback HTTP endpoints (health, token deposit)
- token_store: OAuth token holder with periodic validation
- mime: outgoing mail composition
- json_extract / intent / executor: translator pipeline
"""

from .control_plane import ControlPlane, ControlResponse, Role
from .executor import ActionError, ActionExecutor, format_action_result
from .intent import IntentResolver, ResolvedAction
from .lifecycle import run_daemon
from .mime import FileAttachment, MailValidationError, OutgoingMail, build_mime_message
from .protocol import RpcError, ToolServer
from .token_store import Token, TokenState, TokenStore
from .transport import LineTransport

__all__ = [
    "ActionError",
    "ActionExecutor",
    "ControlPlane",
    "ControlResponse",
    "FileAttachment",
    "IntentResolver",
    "LineTransport",
    "MailValidationError",
    "OutgoingMail",
    "ResolvedAction",
    "Role",
    "RpcError",
    "Token",
    "TokenState",
    "TokenStore",
    "ToolServer",
    "build_mime_message",
    "format_action_result",
    "run_daemon",
]
