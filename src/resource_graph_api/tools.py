"""URI-addressed mutation tools: ``set``, ``make``, ``move`` and ``delete``.

Each tool resolves its URI arguments, checks that the target schema node
carries the matching mutation method (see :mod:`resource_graph_api.mutations`)
and returns a ``Result`` whose value is a small JSON payload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from .models import Result
from .resolver import SchemeRegistry, resolve_uri
from .specifier import Specifier, get

logger = logging.getLogger(__name__)

ToolHandler = Callable[[SchemeRegistry, Mapping[str, Any]], Result[Dict[str, Any]]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    handler: ToolHandler
    input_schema: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


def _resolve_with(registry: SchemeRegistry, uri: str, method: str) -> Result[Specifier]:
    resolved = resolve_uri(uri, registry)
    if not resolved.ok:
        return resolved
    if not resolved.value.node.has_method(method):
        return Result.failure(f"'{uri}' does not support {method}")
    return resolved


def _require(arguments: Mapping[str, Any], *names: str) -> Optional[str]:
    missing = [name for name in names if name not in arguments]
    if missing:
        return f"Missing required argument(s): {', '.join(missing)}"
    return None


def set_tool(registry: SchemeRegistry, arguments: Mapping[str, Any]) -> Result[Dict[str, Any]]:
    error = _require(arguments, "uri", "value")
    if error:
        return Result.failure(error)
    target = _resolve_with(registry, arguments["uri"], "set")
    if not target.ok:
        return Result.failure(target.error)
    done = get(target.value, "set")(arguments["value"])
    if not done.ok:
        return Result.failure(done.error)
    return Result.success({"uri": done.value, "value": arguments["value"]})


def make_tool(registry: SchemeRegistry, arguments: Mapping[str, Any]) -> Result[Dict[str, Any]]:
    error = _require(arguments, "collection")
    if error:
        return Result.failure(error)
    target = _resolve_with(registry, arguments["collection"], "create")
    if not target.ok:
        return Result.failure(target.error)
    created = get(target.value, "create")(dict(arguments.get("properties") or {}))
    if not created.ok:
        return Result.failure(created.error)
    return Result.success({"uri": created.value.uri()})


def move_tool(registry: SchemeRegistry, arguments: Mapping[str, Any]) -> Result[Dict[str, Any]]:
    error = _require(arguments, "item", "destination")
    if error:
        return Result.failure(error)
    item = _resolve_with(registry, arguments["item"], "move")
    if not item.ok:
        return Result.failure(item.error)
    destination = resolve_uri(arguments["destination"], registry)
    if not destination.ok:
        return Result.failure(destination.error)
    moved = get(item.value, "move")(destination.value)
    if not moved.ok:
        return Result.failure(moved.error)
    return Result.success({"from": arguments["item"], "uri": moved.value.uri()})


def delete_tool(registry: SchemeRegistry, arguments: Mapping[str, Any]) -> Result[Dict[str, Any]]:
    error = _require(arguments, "item")
    if error:
        return Result.failure(error)
    item = _resolve_with(registry, arguments["item"], "delete")
    if not item.ok:
        return Result.failure(item.error)
    deleted = get(item.value, "delete")()
    if not deleted.ok:
        return Result.failure(deleted.error)
    return Result.success({"deleted": deleted.value})


TOOLS: Dict[str, ToolDefinition] = {
    tool.name: tool
    for tool in (
        ToolDefinition(
            name="set",
            description="Assign a new value to the property addressed by a URI.",
            handler=set_tool,
            input_schema={
                "type": "object",
                "properties": {
                    "uri": {"type": "string", "description": "Property URI"},
                    "value": {"description": "New value"},
                },
                "required": ["uri", "value"],
            },
        ),
        ToolDefinition(
            name="make",
            description="Create a new item in the collection addressed by a URI.",
            handler=make_tool,
            input_schema={
                "type": "object",
                "properties": {
                    "collection": {"type": "string", "description": "Collection URI"},
                    "properties": {"type": "object", "description": "Initial properties"},
                },
                "required": ["collection"],
            },
        ),
        ToolDefinition(
            name="move",
            description="Move an item into another collection.",
            handler=move_tool,
            input_schema={
                "type": "object",
                "properties": {
                    "item": {"type": "string", "description": "Item URI"},
                    "destination": {"type": "string", "description": "Collection URI"},
                },
                "required": ["item", "destination"],
            },
        ),
        ToolDefinition(
            name="delete",
            description="Delete the item addressed by a URI.",
            handler=delete_tool,
            input_schema={
                "type": "object",
                "properties": {"item": {"type": "string", "description": "Item URI"}},
                "required": ["item"],
            },
        ),
    )
}


def list_tools() -> List[Dict[str, Any]]:
    return [tool.to_dict() for tool in TOOLS.values()]


def call_tool(
    name: str, arguments: Mapping[str, Any], registry: SchemeRegistry
) -> Result[Dict[str, Any]]:
    """Run tool ``name``.

    Raises:
        KeyError: If no tool is registered under ``name``.
    """
    tool = TOOLS[name]
    result = tool.handler(registry, arguments or {})
    if result.ok:
        logger.info(f"Tool '{name}' succeeded: {result.value}")
    else:
        logger.info(f"Tool '{name}' failed: {result.error}")
    return result
