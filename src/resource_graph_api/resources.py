"""Resource-read boundary plus resource listing and URI templates.

:func:`read_resource` turns a URI into a transport-ready payload:

        * URI errors become ``"URI resolution failed: <msg>"``.
        * Exceptions raised while resolving become ``"Resolution error: <msg>"``.
        * Collection results are windowed. When the collection holds more items
          than the effective limit (requested ``limit`` capped at
          ``max_limit``; a missing or zero limit means ``default_limit``), or the
          request carries an offset, the page is wrapped as::

                {"_pagination": {"total", "returned", "offset", "limit", "next"},
                 "items": [...]}

          ``next`` is the same URI with the offset advanced (filter, sort and
          expand preserved), or ``None`` on the last page.
          Expanded fields are resolved for the returned page only.
        * Dict results gain ``_uri`` when the canonical address differs from
          the requested one.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from .query import PaginationSpec
from .resolver import SchemeRegistry, resolve_uri
from .schema import SchemaNode, references_only
from .specifier import Specifier

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
JSON_MIME_TYPE = "application/json"


@dataclass
class ReadConfig:
    """Pagination caps applied by :func:`read_resource`.

    Attributes:
        default_limit: Page size when the request names no limit.
        max_limit: Upper bound for an explicit limit.
    """

    default_limit: int = DEFAULT_LIMIT
    max_limit: int = MAX_LIMIT

    @classmethod
    def from_env(cls) -> "ReadConfig":
        return cls(
            default_limit=int(os.getenv("RESOURCE_GRAPH_DEFAULT_LIMIT", str(DEFAULT_LIMIT))),
            max_limit=int(os.getenv("RESOURCE_GRAPH_MAX_LIMIT", str(MAX_LIMIT))),
        )


@dataclass
class ReadResult:
    """Outcome of :func:`read_resource`."""

    ok: bool
    uri: str
    data: Any = None
    error: Optional[str] = None
    mime_type: str = JSON_MIME_TYPE

    @property
    def text(self) -> str:
        if not self.ok:
            return self.error or ""
        return json.dumps(self.data, default=str)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "uri": self.uri, "mimeType": self.mime_type, "data": self.data}
        return {"ok": False, "uri": self.uri, "error": self.error}


def _window(spec: Specifier, config: ReadConfig) -> Any:
    state = spec.delegate.query_state()
    requested = state.pagination
    offset = (requested.offset or 0) if requested else 0
    if requested is not None and requested.limit:
        limit = min(requested.limit, config.max_limit)
    else:
        limit = config.default_limit

    unpaged = spec.delegate.with_pagination(None) if requested is not None else spec.delegate
    # Count on references; field expansion only runs for the returned page.
    references = spec.derive(unpaged, references_only(spec.node)).resolve()
    if not isinstance(references, list):
        return references
    total = len(references)
    if state.expand:
        window = unpaged.with_pagination(PaginationSpec(limit=limit, offset=offset))
        page = spec.derive(window, spec.node).resolve()
    else:
        page = references[offset : offset + limit]
    if total <= limit and offset == 0:
        return page

    next_uri = None
    if offset + limit < total:
        advanced = unpaged.with_pagination(PaginationSpec(limit=limit, offset=offset + limit))
        next_uri = advanced.canonical_uri()
    return {
        "_pagination": {
            "total": total,
            "returned": len(page),
            "offset": offset,
            "limit": limit,
            "next": next_uri,
        },
        "items": page,
    }


def read_resource(
    uri: str, registry: SchemeRegistry, config: Optional[ReadConfig] = None
) -> ReadResult:
    """Resolve ``uri`` and shape the value for transport.

    Args:
        uri: Resource URI.
        registry: Registered schemes.
        config: Pagination caps; defaults to :class:`ReadConfig` defaults.

    Returns:
        ReadResult: Never raises for URI or resolution problems.
    """
    config = config or ReadConfig()
    resolved = resolve_uri(uri, registry)
    if not resolved.ok:
        logger.debug(f"Read of {uri} failed: {resolved.error}")
        return ReadResult(ok=False, uri=uri, error=f"URI resolution failed: {resolved.error}")

    spec = resolved.value
    try:
        if spec.node.kind in ("collection", "query"):
            data = _window(spec, config)
        else:
            data = spec.resolve()
    except Exception as e:  # noqa: BLE001 - boundary converts everything
        logger.warning(f"Resolution of {uri} raised: {e}")
        return ReadResult(ok=False, uri=uri, error=f"Resolution error: {e}")

    canonical = spec.uri()
    if isinstance(data, dict) and "_pagination" not in data and canonical != uri:
        data = {**data, "_uri": canonical}
    return ReadResult(ok=True, uri=uri, data=data)


# ---------------- Listing ---------------- #


def _join(base: str, key: str) -> str:
    return f"{base}{key}" if base.endswith("://") else f"{base}/{key}"


def _describe(key: str, node: SchemaNode) -> str:
    return node.description or f"{node.kind.capitalize()} '{key}'"


def list_resources(registry: SchemeRegistry) -> List[Dict[str, str]]:
    """Root-level entry points of every registered scheme."""
    resources: List[Dict[str, str]] = []
    for registration in registry.registrations():
        root = f"{registration.scheme}://"
        for key, child in registration.schema.lookup.child_nodes.items():
            resources.append(
                {
                    "uri": _join(root, key),
                    "name": key,
                    "description": _describe(key, child),
                    "mimeType": JSON_MIME_TYPE,
                }
            )
    return resources


def _template(uri: str, name: str, description: str) -> Dict[str, str]:
    return {
        "uriTemplate": uri,
        "name": name,
        "description": description,
        "mimeType": JSON_MIME_TYPE,
    }


def _collect_templates(
    node: SchemaNode, base: str, seen: Set[int], out: List[Dict[str, str]]
) -> None:
    if id(node) in seen:
        return
    seen.add(id(node))

    for key, child in node.lookup.child_nodes.items():
        uri = _join(base, key)
        target = child.computed_nav.target if child.computed_nav is not None else child

        if target.kind not in ("collection", "query"):
            if target.lookup.child_nodes:
                _collect_templates(target, uri, seen, out)
            continue

        member_base = None
        if target.has_method("by_index"):
            out.append(_template(f"{uri}[{{index}}]", f"{key} by index", f"Item of '{key}' by position"))
            member_base = f"{uri}[{{index}}]"
        if target.has_method("by_id"):
            out.append(_template(f"{uri}/{{id}}", f"{key} by id", f"Item of '{key}' by id"))
            member_base = f"{uri}/{{id}}"
        if target.has_method("by_name"):
            out.append(_template(f"{uri}/{{name}}", f"{key} by name", f"Item of '{key}' by name"))
            member_base = f"{uri}/{{name}}"
        out.append(
            _template(
                f"{uri}?{{filter}}",
                f"{key} query",
                f"Filter, sort and paginate '{key}' (field=value, field.op=value, "
                "sort=field.asc|desc, limit=n, offset=n, expand=a,b)",
            )
        )

        item = target.item
        if item is not None and member_base is not None:
            _collect_templates(item, member_base, seen, out)


def resource_templates(registry: SchemeRegistry) -> List[Dict[str, str]]:
    """URI templates derived from the collection accessors of every scheme.

    Each schema node is visited at most once, so recursive schemas terminate.
    """
    templates: List[Dict[str, str]] = []
    for registration in registry.registrations():
        _collect_templates(registration.schema, f"{registration.scheme}://", set(), templates)
    return templates
