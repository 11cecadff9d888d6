"""
Translator tool server.

Exposes one natural-language tool. Each call is translated by the LLM into
an HTTP action against the Leedz database API, executed, and rendered back
as text. Requests the model treats as conversation are answered without
touching the database.
"""

from typing import Any, Dict, List, Optional, Tuple

from ..core.control_plane import ControlPlane
from ..core.executor import ActionError, ActionExecutor, format_action_result
from ..core.intent import IntentResolver
from ..core.protocol import INTERNAL_ERROR, INVALID_PARAMS, RpcError, ToolServer, text_result
from ..providers.factory import ProviderFactory
from ..utils.logger import logger
from ..utils.secrets import get_api_key

NOT_UNDERSTOOD = (
    "I couldn't understand your request. Please try being more specific "
    "about what you want to do with the Leedz."
)


class TranslatorServer(ToolServer):
    """
    Tool server mapping natural-language requests onto database actions.

    Args:
        resolver: LLM-backed intent resolver
        executor: HTTP executor for the database API
        tool_name: Name advertised in tools/list
    """

    def __init__(
        self,
        resolver: IntentResolver,
        executor: ActionExecutor,
        tool_name: str = "the_leedz",
        name: str = "leedz-mcp",
        version: str = "2.0.0",
        protocol_version: str = "2025-06-18",
    ):
        super().__init__(name=name, version=version, protocol_version=protocol_version)
        self.resolver = resolver
        self.executor = executor
        self.tool_name = tool_name

    def list_tools(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": self.tool_name,
                "description": (
                    "Interact with the Leedz CRM system. Create clients, manage bookings, "
                    "generate IDs, and get statistics."
                ),
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "message": {
                            "type": "string",
                            "description": "Natural language request to the Leedz CRM",
                        }
                    },
                    "required": ["message"],
                },
            }
        ]

    def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        if name != self.tool_name:
            raise RpcError(INVALID_PARAMS, f"Unknown tool: {name}")

        message = arguments.get("message") or arguments.get("request")
        if not isinstance(message, str) or not message.strip():
            logger.warning("No user message found in tool call")
            raise RpcError(INVALID_PARAMS, "No user message found in request")

        logger.info(f"Processing tool call: {message[:100]}")
        action = self.resolver.resolve(message)

        if action is None:
            return text_result(NOT_UNDERSTOOD)

        if not action.actionable:
            logger.info("Returning conversational response")
            return text_result(action.response)

        logger.info(f"Executing database operation: {action.method} {action.endpoint}")
        try:
            result = self.executor.execute(action)
        except ActionError as e:
            raise RpcError(INTERNAL_ERROR, str(e))

        return text_result(format_action_result(result, action))

    def resolve_api_key(self) -> Optional[str]:
        """
        Give the provider an API key when the config file has none.

        Sources in order: the config file, the database Config record
        (llmApiKey), then the system keyring.

        Returns:
            Name of the source the key came from, or None without a key
        """
        provider = self.resolver.provider
        if provider.api_key:
            return "config"

        key = self.executor.fetch_llm_api_key()
        if key:
            provider.api_key = key
            logger.info("Using LLM API key from database Config")
            return "database"

        key = get_api_key(provider.get_name())
        if key:
            provider.api_key = key
            logger.info("Using LLM API key from keyring")
            return "keyring"

        if provider.is_local:
            logger.info("No LLM API key found; local endpoint used without auth")
        else:
            logger.warning(
                f"No LLM API key found for {provider.get_name()}. Set llm.apiKey, "
                "publish llmApiKey in the database Config, or store it in the keyring"
            )
        return None

    def prepare_llm(self) -> None:
        """Resolve the API key, then report whether the LLM endpoint answers."""
        self.resolve_api_key()
        provider = self.resolver.provider
        if provider.health_check():
            logger.info(f"LLM provider {provider.get_name()} is reachable")
        else:
            logger.warning(
                f"LLM provider {provider.get_name()} did not answer its health check; "
                "requests will fail until it is available"
            )


def create_translator(config: Dict[str, Any]) -> Tuple[TranslatorServer, ControlPlane]:
    """Wire a TranslatorServer and its health-only control plane from config."""
    llm = config["llm"]
    database = config["database"]
    mcp = config["mcp"]
    http = config.get("http", {})

    provider = ProviderFactory.from_llm_config(llm)
    server = TranslatorServer(
        resolver=IntentResolver(provider, llm["systemPrompt"]),
        executor=ActionExecutor(database["apiUrl"], timeout=database.get("timeout", 30)),
        tool_name=mcp.get("toolName", "the_leedz"),
        name=mcp["name"],
        version=mcp["version"],
        protocol_version=mcp["protocolVersion"],
    )

    control_plane = ControlPlane(
        service=mcp["name"],
        version=mcp["version"],
        host=http.get("host", "127.0.0.1"),
        port=http.get("port", 3002),
    )

    logger.info(f"Database API: {database['apiUrl']}")
    logger.info(f"LLM API: {llm['url']} ({provider.get_name()}, model {llm['model']})")
    return server, control_plane
