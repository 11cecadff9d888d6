"""
JSON-RPC 2.0 envelopes and the tool-server dispatch shared by both daemons.

A ToolServer answers the small MCP method set the parent LLM host uses:
initialize, tools/list, tools/call, prompts/list, resources/list, ping and
notifications. Subclasses only describe their tools and run them.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

# Error codes
AUTH_REQUIRED = -32001
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class Method(str, Enum):
    """Methods understood by every tool server."""
    INITIALIZE = "initialize"
    INITIALIZED = "notifications/initialized"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    PROMPTS_LIST = "prompts/list"
    RESOURCES_LIST = "resources/list"
    PING = "ping"


class RpcError(Exception):
    """Raised by handlers to reply with a JSON-RPC error envelope."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class ToolCall:
    """Parameters of a tools/call request."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_params(cls, params: Any) -> "ToolCall":
        if not isinstance(params, dict):
            raise RpcError(INVALID_PARAMS, "tools/call params must be an object")
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise RpcError(INVALID_PARAMS, "tools/call requires a tool name")
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise RpcError(INVALID_PARAMS, "tools/call arguments must be an object")
        return cls(name=name, arguments=arguments)


def success(request_id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def failure(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": {"code": code, "message": message},
    }


def text_result(text: str) -> Dict[str, Any]:
    """Shape a tool result as a single text content block."""
    return {"content": [{"type": "text", "text": text}]}


class ToolServer(ABC):
    """
    Routes JSON-RPC requests to handlers and shapes their replies.

    handle() never raises: handler failures become error envelopes so a
    single bad request cannot take the daemon down.
    """

    def __init__(self, name: str, version: str, protocol_version: str):
        self.name = name
        self.version = version
        self.protocol_version = protocol_version

    @abstractmethod
    def list_tools(self) -> List[Dict[str, Any]]:
        """Return the tool manifest advertised by tools/list."""
        pass

    @abstractmethod
    def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run a tool and return its result object.

        Raises:
            RpcError: for invalid parameters, missing auth or provider failures
        """
        pass

    def handle(self, message: Any) -> Optional[Any]:
        """Handle one decoded line: a request object or a batch array."""
        if isinstance(message, list):
            replies = [r for r in (self.handle_request(m) for m in message) if r is not None]
            return replies or None
        return self.handle_request(message)

    def handle_request(self, request: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(request, dict):
            logger.warning(f"Ignoring non-object JSON-RPC message: {str(request)[:100]}")
            return None

        request_id = request.get("id")
        method = request.get("method")
        is_notification = "id" not in request

        if method == Method.INITIALIZED:
            logger.info("Client finished initialization")
            return None
        if isinstance(method, str) and method.startswith("notifications/"):
            logger.debug(f"Notification received: {method}")
            return None

        try:
            result = self._dispatch(method, request.get("params"))
        except RpcError as e:
            logger.warning(f"{method} failed with {e.code}: {e.message}")
            return None if is_notification else failure(request_id, e.code, e.message)
        except Exception as e:
            logger.error(f"Request processing error in {method}: {e}", exc_info=True)
            return None if is_notification else failure(request_id, INTERNAL_ERROR, "Internal error")

        return None if is_notification else success(request_id, result)

    def _dispatch(self, method: Any, params: Any) -> Any:
        if method == Method.INITIALIZE:
            logger.info("Handling initialize request")
            return {
                "protocolVersion": self.protocol_version,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": self.name, "version": self.version},
            }
        if method == Method.TOOLS_LIST:
            logger.info("Handling tools/list request")
            return {"tools": self.list_tools()}
        if method == Method.TOOLS_CALL:
            call = ToolCall.from_params(params)
            logger.info(f"Handling tools/call for '{call.name}'")
            return self.call_tool(call.name, call.arguments)
        if method == Method.PROMPTS_LIST:
            return {"prompts": []}
        if method == Method.RESOURCES_LIST:
            return {"resources": []}
        if method == Method.PING:
            return {}

        logger.warning(f"Unknown method: {method}")
        raise RpcError(METHOD_NOT_FOUND, "Method not found")

    def serve(self, transport) -> None:
        """Answer every message from the transport until its input closes."""
        for message in transport.messages():
            reply = self.handle(message)
            if reply is None:
                continue
            try:
                transport.send(reply)
            except (OSError, ValueError) as e:
                logger.error(f"Failed to write reply: {e}")
