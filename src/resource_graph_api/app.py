"""FastAPI application exposing the resource graph over HTTP.

Quick start (run the server)::

    RESOURCE_GRAPH_SCHEMA=myapp.schema:Root RESOURCE_GRAPH_DATA=data.json \
        uvicorn resource_graph_api.app:app --reload

Core endpoints (REST):

    GET  /health                      Basic health check
    GET  /resources                   Root-level resources of every scheme
    GET  /resources/templates         URI templates derived from the schemas
    GET  /resources/read?uri=...      Resolve a resource URI
    GET  /tools                       Available mutation tools
    POST /tools/{name}                Run a mutation tool (JSON arguments)
    POST /mcp                         MCP JSON-RPC endpoint (HTTP transport)
    GET  /metrics/*                   Read/request metrics

Example: read a filtered, sorted page of a collection::

    curl "http://localhost:8000/resources/read" \
         --data-urlencode "uri=notes://folders/Work/notes?sort=title.asc&limit=5" -G

Example: move a note::

    curl -X POST http://localhost:8000/tools/move \
         -H "Content-Type: application/json" \
         -d '{"item": "notes://folders/Work/notes/7", "destination": "notes://folders/Archive/notes"}'

Error handling:
    * Unresolvable URIs and unknown tools return 404 JSON payloads.
    * Tool failures return 400 with the backing store's message.
"""

from __future__ import annotations

import time
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .loader import LoaderConfig, build_registry
from .mcp_server import MCPConfig, MCPServer
from .monitoring import get_monitor
from .resolver import SchemeRegistry
from .resources import ReadConfig, list_resources, read_resource, resource_templates
from .tools import TOOLS, call_tool, list_tools

app = FastAPI(
    title="Resource Graph API",
    version=__version__,
    description="URI-addressable, lazily resolved resource trees with filtering, sorting and pagination",
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.middleware("http")
async def monitor_requests(request: Request, call_next):
    """Middleware to monitor API request performance."""
    start_time = time.time()
    response = await call_next(request)
    response_time = time.time() - start_time

    monitor = get_monitor()
    endpoint = f"{request.method} {request.url.path}"
    monitor.record_endpoint_request(endpoint, response_time, response.status_code)

    response.headers["X-Response-Time"] = f"{response_time:.3f}s"
    response.headers["X-API-Version"] = __version__
    return response


class ReadResponse(BaseModel):
    """Response model for resource reads."""

    uri: str = Field(..., description="Requested URI")
    mimeType: str = Field(..., description="Payload media type")
    data: Any = Field(None, description="Resolved value or pagination envelope")


class ToolResponse(BaseModel):
    """Response model for successful tool calls."""

    tool: str = Field(..., description="Tool name")
    result: Dict[str, Any] = Field(default_factory=dict, description="Tool payload")


@lru_cache(maxsize=1)
def get_registry() -> SchemeRegistry:
    return build_registry(LoaderConfig.from_env())


@lru_cache(maxsize=1)
def get_read_config() -> ReadConfig:
    return ReadConfig.from_env()


def get_mcp_server(
    registry: SchemeRegistry = Depends(get_registry),
    read_config: ReadConfig = Depends(get_read_config),
) -> MCPServer:
    config = MCPConfig.from_env()
    config.transport = "http"
    return MCPServer(config, registry, read_config)


@app.get("/health")
def health(registry: SchemeRegistry = Depends(get_registry)) -> Dict[str, Any]:
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__, "schemes": registry.schemes()}


@app.get("/resources")
def resources(registry: SchemeRegistry = Depends(get_registry)) -> Dict[str, List[Dict[str, str]]]:
    """List the root-level resources of every registered scheme."""
    return {"resources": list_resources(registry)}


@app.get("/resources/templates")
def templates(registry: SchemeRegistry = Depends(get_registry)) -> Dict[str, List[Dict[str, str]]]:
    """URI templates derived from collection accessors."""
    return {"resourceTemplates": resource_templates(registry)}


@app.get("/resources/read", response_model=ReadResponse)
async def read(
    uri: str = Query(..., description="Resource URI, e.g. notes://folders/Work"),
    registry: SchemeRegistry = Depends(get_registry),
    read_config: ReadConfig = Depends(get_read_config),
) -> ReadResponse:
    """Resolve a resource URI.

    Runs on the event loop like every other handler that touches backing
    data, so reads never interleave with mutations.

    Example::

        curl "http://localhost:8000/resources/read?uri=notes://folders%5B0%5D"
    """
    started = time.perf_counter()
    result = read_resource(uri, registry, read_config)
    get_monitor().record_read(
        uri,
        ok=result.ok,
        response_time=time.perf_counter() - started,
        error=result.error,
        paginated=isinstance(result.data, dict) and "_pagination" in result.data,
    )
    if not result.ok:
        raise HTTPException(status_code=404, detail=result.error)
    return ReadResponse(uri=uri, mimeType=result.mime_type, data=result.data)


@app.get("/tools")
def tools() -> Dict[str, List[Dict[str, Any]]]:
    """List the available mutation tools."""
    return {"tools": list_tools()}


@app.post("/tools/{name}", response_model=ToolResponse)
async def run_tool(
    name: str,
    arguments: Optional[Dict[str, Any]] = Body(None),
    registry: SchemeRegistry = Depends(get_registry),
) -> ToolResponse:
    """Run a mutation tool with JSON ``arguments``."""
    if name not in TOOLS:
        raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")
    result = call_tool(name, arguments or {}, registry)
    get_monitor().record_tool_call(name, result.ok)
    if not result.ok:
        raise HTTPException(status_code=400, detail=result.error)
    return ToolResponse(tool=name, result=result.value)


@app.post("/mcp")
async def mcp(
    request: Request,
    authorization: Optional[str] = Header(None),
    server: MCPServer = Depends(get_mcp_server),
) -> Response:
    """MCP JSON-RPC over HTTP; notifications get ``202 Accepted``."""
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:]
    message = (await request.body()).decode("utf-8")
    response = await server.handle_message(message, auth_token=token)
    if response is None:
        return Response(status_code=202)
    return JSONResponse(content=response)


@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Custom 404 handler with more helpful error messages."""
    return JSONResponse(
        status_code=404,
        content={
            "error": "Not Found",
            "detail": (
                str(exc.detail)
                if hasattr(exc, "detail")
                else "The requested resource was not found"
            ),
            "path": str(request.url.path),
        },
    )


@app.exception_handler(400)
async def bad_request_handler(request, exc):
    return JSONResponse(
        status_code=400,
        content={"error": "Bad Request", "detail": str(getattr(exc, "detail", exc))},
    )


# Performance monitoring endpoints


@app.get("/metrics/performance")
def get_performance_metrics():
    """Read, tool and request metrics."""
    return get_monitor().get_performance_summary()


@app.get("/metrics/system")
def get_system_metrics():
    """Process-level memory and CPU metrics."""
    return get_monitor().get_system_snapshot()


@app.post("/metrics/reset")
def reset_metrics():
    """Reset all performance metrics (useful for testing)."""
    get_monitor().reset_metrics()
    return {
        "message": "All metrics have been reset",
        "timestamp": datetime.now().isoformat(),
    }


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Custom 500 handler for internal errors."""
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": "An unexpected error occurred processing your request",
        },
    )
