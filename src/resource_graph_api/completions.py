"""
Completion suggestions for partially typed resource URIs.

Given a prefix such as ``notes://folders/W`` the graph is resolved up to the
last complete segment and candidates for the next piece are offered: schemes,
property names, collection members, or query parameters after ``?``.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

from .query import get_field_value
from .resolver import SchemeRegistry, resolve_uri
from .schema import SchemaNode, member_keys
from .specifier import Specifier

logger = logging.getLogger(__name__)

QUERY_KEYWORDS = (
    ("sort", "Sort by a field"),
    ("limit", "Maximum items per page"),
    ("offset", "Items to skip"),
    ("expand", "Resolve lazy fields inline"),
)

FILTER_OPERATORS = ("contains", "startsWith", "gt", "lt")

_INDEX_FRAGMENT = re.compile(r"\[?\d*\]?")


@dataclass(frozen=True)
class Completion:
    """One suggestion.

    Attributes:
        value: Full replacement for the partial URI.
        label: Short text for the piece being completed.
        description: What kind of piece it is.
    """

    value: str
    label: str
    description: str


def _is_collection(node: SchemaNode) -> bool:
    return node.kind in ("collection", "query")


def complete_uri(partial: str, registry: SchemeRegistry, max_members: int = 10) -> List[Completion]:
    """Suggest continuations of ``partial``.

    Args:
        partial: URI typed so far.
        registry: Registered schemes to complete against.
        max_members: Members inspected per collection when suggesting names or ids.

    Returns:
        Suggestions in display order. Unresolvable prefixes give an empty list.
    """
    scheme, separator, path = partial.partition("://")
    if not separator:
        return [
            Completion(f"{name}://", name, "Scheme")
            for name in registry.schemes()
            if name.startswith(partial)
        ]
    if "?" in path:
        base, _, query = path.partition("?")
        return _query_completions(scheme, base, query, registry)
    return _path_completions(scheme, path, registry, max_members)


def _resolve_prefix(uri: str, registry: SchemeRegistry) -> Optional[Specifier]:
    result = resolve_uri(uri, registry)
    if not result.ok:
        logger.debug(f"No completions below {uri}: {result.error}")
        return None
    return result.value


def _path_completions(
    scheme: str, path: str, registry: SchemeRegistry, max_members: int
) -> List[Completion]:
    parent_path, slash, fragment = path.rpartition("/")
    parent_uri = f"{scheme}://{parent_path}"
    parent = _resolve_prefix(parent_uri, registry)
    if parent is None:
        return []
    prefix = parent_uri + slash
    if _is_collection(parent.node):
        return _member_completions(parent, parent_uri, fragment, max_members)

    completions = []
    for key in parent.node.navigable_keys():
        if not key.lower().startswith(fragment.lower()):
            continue
        child = parent.node.lookup.child_nodes[key]
        if _is_collection(child):
            completions.append(Completion(f"{prefix}{key}/", key, "Collection"))
        elif child.is_namespace or child.navigable_keys():
            completions.append(Completion(f"{prefix}{key}/", key, "Navigable"))
        else:
            completions.append(Completion(f"{prefix}{key}", key, "Property"))
    return completions


def _member_completions(
    collection: Specifier, collection_uri: str, fragment: str, max_members: int
) -> List[Completion]:
    keys = member_keys(collection.node)
    members = collection.delegate._raw()
    if not isinstance(members, list):
        members = []

    completions = []
    for item in members[:max_members]:
        if "name" in keys:
            name = get_field_value(item, "name")
            if name is not None and str(name).lower().startswith(fragment.lower()):
                completions.append(
                    Completion(f"{collection_uri}/{quote(str(name), safe='')}", str(name), "By name")
                )
        elif "id" in keys:
            identifier = get_field_value(item, "id")
            if identifier is not None and str(identifier).startswith(fragment):
                completions.append(
                    Completion(f"{collection_uri}/{identifier}", str(identifier), "By id")
                )
    if "index" in keys and _INDEX_FRAGMENT.fullmatch(fragment):
        completions.append(Completion(f"{collection_uri}[0]", "[index]", "By index"))
    if not fragment:
        completions.append(Completion(f"{collection_uri}?", "?", "Filter, sort or paginate"))
    return completions


def _query_completions(
    scheme: str, base: str, query: str, registry: SchemeRegistry
) -> List[Completion]:
    collection = _resolve_prefix(f"{scheme}://{base}", registry)
    if collection is None or not _is_collection(collection.node):
        return []
    item = collection.node.item
    children = item.lookup.child_nodes if item is not None else {}
    fields = [name for name, node in children.items() if not _is_collection(node)]
    lazy_fields = [name for name, node in children.items() if node.is_lazy]

    head, ampersand, last = query.rpartition("&")
    stem = f"{scheme}://{base}?{head}{ampersand}"

    if "=" not in last:
        if "." in last:
            field, _, operator = last.partition(".")
            return [
                Completion(f"{stem}{field}.{name}=", name, f"{name} filter")
                for name in FILTER_OPERATORS
                if name.startswith(operator)
            ]
        completions = [
            Completion(f"{stem}{keyword}=", keyword, description)
            for keyword, description in QUERY_KEYWORDS
            if keyword.startswith(last)
        ]
        completions.extend(
            Completion(f"{stem}{name}=", name, f"Filter by {name}")
            for name in fields
            if name.startswith(last)
        )
        return completions

    key, _, value = last.partition("=")
    if key == "sort":
        field, dot, direction = value.partition(".")
        if not dot:
            return [
                Completion(f"{stem}sort={name}.", name, f"Sort by {name}")
                for name in fields
                if name.startswith(field)
            ]
        return [
            Completion(f"{stem}sort={field}.{name}", name, description)
            for name, description in (("asc", "Ascending"), ("desc", "Descending"))
            if name.startswith(direction)
        ]
    if key == "expand":
        return [
            Completion(f"{stem}expand={name}", name, "Lazy field")
            for name in lazy_fields
            if name.startswith(value)
        ]
    return []
