"""
Method Router — Dispatch MCP methods to handlers

Routes:
  initialize       -> server capabilities handshake
  initialized      -> notification (no response)
  tools/list       -> registered tool definitions
  tools/call       -> tool handler dispatch
  resources/list   -> resource providers
  resources/read   -> resource reader dispatch
  ping             -> pong
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

from moodle_mcp.config import Config
from moodle_mcp.server.logger import get_logger
from moodle_mcp.server.protocol import (
    initialize_result,
    tools_list_result,
    error_result,
    resources_list_result,
    resource_read_result,
    ProtocolError,
    METHOD_NOT_FOUND,
    INVALID_PARAMS,
    INTERNAL_ERROR,
)

log = get_logger("router")

ToolHandler = Callable[[str, Dict[str, Any]], Awaitable[Dict[str, Any]]]
ResourceLister = Callable[[], Awaitable[List[Dict[str, Any]]]]
ResourceReader = Callable[[str], Awaitable[Optional[List[Dict[str, Any]]]]]


class Router:
    """MCP method dispatcher."""

    def __init__(self):
        self._tools: List[Dict[str, Any]] = []
        self._tool_handlers: List = []
        self._resource_providers: List = []
        self._initialized = False

    def register_tools_module(self, tools_list: List[Dict], handler: ToolHandler):
        """Register a tools module."""
        self._tools.extend(tools_list)
        self._tool_handlers.append((
            {t["name"] for t in tools_list},
            handler,
        ))
        log.info(f"Registered {len(tools_list)} tools: {[t['name'] for t in tools_list]}")

    def register_resources(self, lister: ResourceLister, reader: ResourceReader):
        """Register a resource provider: an async lister and an async reader."""
        self._resource_providers.append((lister, reader))
        log.info("Registered resource provider")

    async def route(self, msg_type: str, msg: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Route a validated message to the appropriate handler.
        Returns the result payload or None for notifications.
        """
        method = msg.get("method", "")
        params = msg.get("params") or {}

        if msg_type in ("response", "error"):
            return None

        if method == "initialize":
            return self._handle_initialize(params)

        if method in ("initialized", "notifications/initialized"):
            self._initialized = True
            return None

        if method.startswith("notifications/"):
            return None

        if method == "ping":
            return {}

        if method == "tools/list":
            return tools_list_result(self._tools)

        if method == "tools/call":
            return await self._handle_tools_call(params)

        if method == "resources/list":
            return await self._handle_resources_list()

        if method == "resources/read":
            return await self._handle_resources_read(params)

        raise ProtocolError(METHOD_NOT_FOUND, f"Unknown method: {method}")

    def _handle_initialize(self, params: Dict) -> Dict[str, Any]:
        log.info(
            f"Client initialize: {params.get('clientInfo', {}).get('name', '?')} "
            f"protocol={params.get('protocolVersion', '?')}"
        )
        return initialize_result(
            server_name=Config.SERVER_NAME,
            server_version=Config.SERVER_VERSION,
            protocol_version=Config.PROTOCOL_VERSION,
        )

    async def _handle_tools_call(self, params: Dict) -> Dict[str, Any]:
        name = params.get("name", "")
        args = params.get("arguments") or {}

        if not name:
            raise ProtocolError(INVALID_PARAMS, "Missing tool name")

        for tool_names, handler in self._tool_handlers:
            if name in tool_names:
                try:
                    return await handler(name, args)
                except Exception as exc:
                    log.error(f"Tool {name} error: {exc}", exc_info=True)
                    return error_result(str(exc))

        log.warning(f"Unknown tool requested: {name}")
        return error_result(f"Unknown tool: {name}")

    async def _handle_resources_list(self) -> Dict[str, Any]:
        resources: List[Dict[str, Any]] = []
        for lister, _ in self._resource_providers:
            try:
                resources.extend(await lister())
            except Exception as exc:
                log.error(f"Resource listing failed: {exc}", exc_info=True)
        return resources_list_result(resources)

    async def _handle_resources_read(self, params: Dict) -> Dict[str, Any]:
        uri = params.get("uri", "")
        if not uri:
            raise ProtocolError(INVALID_PARAMS, "Missing resource URI")

        for _, reader in self._resource_providers:
            try:
                contents = await reader(uri)
            except Exception as exc:
                log.error(f"Resource {uri} error: {exc}")
                raise ProtocolError(INTERNAL_ERROR, f"Failed to read resource: {exc}")
            if contents is not None:
                return resource_read_result(contents)

        raise ProtocolError(INVALID_PARAMS, f"Unsupported resource URI: {uri}")

    @property
    def tool_count(self) -> int:
        return len(self._tools)

    @property
    def resource_provider_count(self) -> int:
        return len(self._resource_providers)
