"""Model Context Protocol (MCP) server implementation.

Exposes the resource graph as MCP resources (one per addressable URI) and
the mutation tools as MCP tools. Two transports are supported: ``stdio``
(the ``mcp`` library's stdio transport driving a low-level
:class:`mcp.server.Server`) and ``http`` (served by the FastAPI app in
:mod:`resource_graph_api.app` under ``POST /mcp``, dispatched by
:meth:`MCPServer.handle_message`).

High-level responsibilities:
    * Dispatch JSON-RPC messages (``initialize``, ``ping``, ``resources/*``,
      ``tools/*``, ``completion/complete``) with optional bearer auth.
    * Convert read failures to JSON-RPC errors and tool failures to
      ``isError`` tool results.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import ErrorData, Resource, ResourceTemplate, TextContent, Tool

from . import __version__
from .completions import complete_uri
from .models import ResourceGraphError, Result
from .monitoring import get_monitor
from .resolver import SchemeRegistry
from .resources import ReadConfig, ReadResult, list_resources, read_resource, resource_templates
from .tools import TOOLS, call_tool

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
RESOURCE_NOT_FOUND = -32002

MAX_COMPLETIONS = 100


@dataclass
class MCPConfig:
    """Configuration container for :class:`MCPServer`.

    Attributes:
        transport: Transport backend ("stdio" or "http").
        port: TCP port for HTTP transport (ignored for stdio).
        host: Bind host for HTTP transport.
        auth_token: Optional bearer token for simple auth.
        require_auth: If True, reject unauthenticated requests.
        log_level: Python logging level name.
        server_name: Name reported by ``initialize``.
    """

    transport: str = "stdio"
    port: Optional[int] = None
    host: str = "localhost"
    auth_token: Optional[str] = None
    require_auth: bool = False
    log_level: str = "INFO"
    server_name: str = "resource-graph-api"

    @classmethod
    def from_env(cls) -> "MCPConfig":
        """Create configuration from environment variables."""
        return cls(
            transport=os.getenv("MCP_TRANSPORT", "stdio"),
            port=int(os.getenv("MCP_PORT", "8001")) if os.getenv("MCP_PORT") else None,
            host=os.getenv("MCP_HOST", "localhost"),
            auth_token=os.getenv("MCP_AUTH_TOKEN"),
            require_auth=os.getenv("MCP_REQUIRE_AUTH", "false").lower() == "true",
            log_level=os.getenv("MCP_LOG_LEVEL", "INFO"),
        )


class MCPServer:
    """JSON-RPC front end over a :class:`SchemeRegistry`.

    Args:
        config: Transport and auth settings.
        registry: Registered schemes served as resources.
        read_config: Pagination caps for ``resources/read``.

    Raises:
        ValueError: For unsupported transport values.
    """

    def __init__(
        self,
        config: MCPConfig,
        registry: SchemeRegistry,
        read_config: Optional[ReadConfig] = None,
    ):
        if config.transport not in ["stdio", "http"]:
            raise ValueError(f"Unsupported transport: {config.transport}")

        self.config = config
        self.registry = registry
        self.read_config = read_config or ReadConfig.from_env()
        self.running = False
        self.auth_middleware: Optional[Any] = None

        self._setup_logging()
        self._setup_authentication()

    def _setup_logging(self) -> None:
        logging.basicConfig(
            level=getattr(logging, self.config.log_level.upper()),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    def _setup_authentication(self) -> None:
        if self.config.require_auth:
            self.auth_middleware = self._create_auth_middleware()
            logger.info("Authentication middleware configured")

    def _create_auth_middleware(self) -> Any:
        # Simple token-based authentication
        class AuthMiddleware:
            def __init__(self, expected_token: Optional[str]):
                self.expected_token = expected_token

            def authenticate(self, token: Optional[str]) -> bool:
                return self.expected_token is not None and token == self.expected_token

        return AuthMiddleware(self.config.auth_token)

    async def start(self) -> None:
        if self.running:
            logger.warning("Server is already running")
            return
        self.running = True
        logger.info(
            f"MCP server started with {self.config.transport} transport "
            f"serving schemes: {', '.join(self.registry.schemes()) or '(none)'}"
        )

    async def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        logger.info("MCP server stopped")

    # ---------------- Handlers ---------------- #

    def _initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "protocolVersion": params.get("protocolVersion", PROTOCOL_VERSION),
            "capabilities": {"resources": {}, "tools": {}, "completions": {}},
            "serverInfo": {"name": self.config.server_name, "version": __version__},
        }

    def resource_models(self) -> List[Resource]:
        return [Resource(**entry) for entry in list_resources(self.registry)]

    def template_models(self) -> List[ResourceTemplate]:
        return [ResourceTemplate(**entry) for entry in resource_templates(self.registry)]

    def tool_models(self) -> List[Tool]:
        return [
            Tool(name=t.name, description=t.description, inputSchema=t.input_schema)
            for t in TOOLS.values()
        ]

    def read(self, uri: str) -> ReadResult:
        """Read ``uri`` through the resource boundary and record the outcome."""
        started = time.perf_counter()
        result = read_resource(uri, self.registry, self.read_config)
        get_monitor().record_read(
            uri,
            ok=result.ok,
            response_time=time.perf_counter() - started,
            error=result.error,
            paginated=isinstance(result.data, dict) and "_pagination" in result.data,
        )
        return result

    def run_tool(self, name: str, arguments: Dict[str, Any]) -> Result[Dict[str, Any]]:
        result = call_tool(name, arguments, self.registry)
        get_monitor().record_tool_call(name, result.ok)
        return result

    def _list_resources(self) -> Dict[str, Any]:
        serialized = []
        for r in self.resource_models():
            d = _dump(r)
            d["uri"] = str(d["uri"])
            serialized.append(d)
        return {"resources": serialized}

    def _list_templates(self) -> Dict[str, Any]:
        return {"resourceTemplates": [_dump(t) for t in self.template_models()]}

    def _list_tools(self) -> Dict[str, Any]:
        return {"tools": [_dump(t) for t in self.tool_models()]}

    def _read(self, uri: str) -> Dict[str, Any]:
        result = self.read(uri)
        if not result.ok:
            raise _RPCError(RESOURCE_NOT_FOUND, result.error, {"uri": uri})
        return {"contents": [{"uri": uri, "mimeType": result.mime_type, "text": result.text}]}

    def _call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        if name not in TOOLS:
            raise _RPCError(INVALID_PARAMS, f"Unknown tool: {name}")
        result = self.run_tool(name, arguments)
        if result.ok:
            content = TextContent(type="text", text=json.dumps(result.value, default=str))
            return {"content": [_dump(content)], "isError": False}
        content = TextContent(type="text", text=result.error or "Tool failed")
        return {"content": [_dump(content)], "isError": True}

    def _complete(self, params: Dict[str, Any]) -> Dict[str, Any]:
        argument = params.get("argument")
        if not isinstance(argument, dict) or not isinstance(argument.get("value"), str):
            raise _RPCError(INVALID_PARAMS, "Missing 'argument.value' parameter")
        values = [c.value for c in complete_uri(argument["value"], self.registry)]
        return {
            "completion": {
                "values": values[:MAX_COMPLETIONS],
                "total": len(values),
                "hasMore": len(values) > MAX_COMPLETIONS,
            }
        }

    def _dispatch(self, method: Optional[str], params: Dict[str, Any]) -> Any:
        if method == "initialize":
            return self._initialize(params)
        if method == "ping":
            return {}
        if method == "resources/list":
            return self._list_resources()
        if method == "resources/templates/list":
            return self._list_templates()
        if method == "resources/read":
            uri = params.get("uri")
            if not isinstance(uri, str):
                raise _RPCError(INVALID_PARAMS, "Missing 'uri' parameter")
            return self._read(uri)
        if method == "tools/list":
            return self._list_tools()
        if method == "tools/call":
            name = params.get("name")
            if not isinstance(name, str):
                raise _RPCError(INVALID_PARAMS, "Missing 'name' parameter")
            return self._call_tool(name, params.get("arguments") or {})
        if method == "completion/complete":
            return self._complete(params)
        raise _RPCError(METHOD_NOT_FOUND, f"Method not found: {method}")

    async def handle_message(
        self, message: str, auth_token: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Decode, authenticate (optional), and dispatch a single MCP message.

        Args:
            message: Raw JSON string representing an MCP request.
            auth_token: Optional bearer token when auth is enforced.

        Returns:
            JSON-RPC response envelope, or None for notifications.
        """
        if self.config.require_auth and self.auth_middleware:
            if not self.auth_middleware.authenticate(auth_token):
                return _error(None, INVALID_REQUEST, "Authentication required")

        try:
            msg = json.loads(message)
        except json.JSONDecodeError:
            return _error(None, PARSE_ERROR, "Parse error")

        if not isinstance(msg, dict) or not isinstance(msg.get("method"), str):
            return _error(None, INVALID_REQUEST, "Invalid request")

        request_id = msg.get("id")
        method = msg["method"]
        if request_id is None and method.startswith("notifications/"):
            logger.debug(f"Notification received: {method}")
            return None

        params = msg.get("params") or {}
        try:
            result = self._dispatch(method, params)
        except _RPCError as e:
            logger.debug(f"{method} failed: {e.message}")
            return _error(request_id, e.code, e.message, e.data)
        except Exception as e:
            logger.error(f"Error handling {method}: {e}")
            return _error(request_id, INTERNAL_ERROR, f"Internal error: {str(e)}")
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def build_stdio_server(self) -> Server:
        """Low-level ``mcp`` server whose handlers share this instance's registry."""
        server: Server = Server(self.config.server_name, version=__version__)

        @server.list_resources()
        async def handle_list_resources() -> List[Resource]:
            return self.resource_models()

        @server.list_resource_templates()
        async def handle_list_templates() -> List[ResourceTemplate]:
            return self.template_models()

        @server.read_resource()
        async def handle_read(uri: Any) -> List[ReadResourceContents]:
            result = self.read(str(uri))
            if not result.ok:
                raise McpError(
                    ErrorData(code=RESOURCE_NOT_FOUND, message=result.error, data={"uri": str(uri)})
                )
            return [ReadResourceContents(content=result.text, mime_type=result.mime_type)]

        @server.list_tools()
        async def handle_list_tools() -> List[Tool]:
            return self.tool_models()

        @server.call_tool()
        async def handle_call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
            if name not in TOOLS:
                raise ResourceGraphError(f"Unknown tool: {name}")
            result = self.run_tool(name, arguments or {})
            if not result.ok:
                raise ResourceGraphError(result.error or "Tool failed")
            return [TextContent(type="text", text=json.dumps(result.value, default=str))]

        return server

    async def serve_stdio(self) -> None:
        """Serve MCP over stdin/stdout until the client disconnects."""
        server = self.build_stdio_server()
        await self.start()
        try:
            async with stdio_server() as (read_stream, write_stream):
                await server.run(read_stream, write_stream, server.create_initialization_options())
        finally:
            await self.stop()


class _RPCError(Exception):
    def __init__(self, code: int, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def _dump(model: Any) -> Dict[str, Any]:
    """Wire form of an ``mcp.types`` model (camelCase protocol field names)."""
    return model.model_dump(by_alias=True, exclude_none=True)


def _error(
    request_id: Any, code: int, message: str, data: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


async def run_server(config: Optional[MCPConfig] = None) -> None:
    """Run the MCP server on the configured transport."""
    from .loader import LoaderConfig, build_registry

    if config is None:
        config = MCPConfig.from_env()
    registry = build_registry(LoaderConfig.from_env())
    server = MCPServer(config, registry)

    if config.transport == "stdio":
        await server.serve_stdio()
        return

    import uvicorn

    from .app import app, get_registry

    app.dependency_overrides[get_registry] = lambda: registry
    server_config = uvicorn.Config(app, host=config.host, port=config.port or 8001)
    await uvicorn.Server(server_config).serve()


def main() -> None:
    """CLI entry point for running the server via ``python -m``."""
    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        logger.info("Server shutdown complete")
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
