"""Resource Graph API
===================

Expose an arbitrary, possibly recursive object graph as a URI-addressable,
lazily resolved resource tree with server-side filtering, sorting,
pagination and field expansion.

Key capabilities
----------------
- Compose schema nodes (scalar, object, collection, computed, namespace,
  lazy, aliased, computed navigation) that describe a backing data graph.
- Lex and resolve URIs such as ``notes://folders/Work/notes?sort=title.desc&limit=5``
  into lazy :class:`~resource_graph_api.specifier.Specifier` handles.
- Mutate through the backing store (set/move/delete/create) with canonical
  address rewriting.
- Serve resources and mutation tools over MCP (stdio or HTTP) and REST.

Design principles
-----------------
1. **Backing-store agnostic** - every read and write goes through the
    :class:`~resource_graph_api.delegate.Delegate` contract.
2. **Errors as values** - URI and backing-store failures travel as
    :class:`~resource_graph_api.models.Result`; only type mismatches raise.
3. **No caching** - every ``resolve()`` re-reads the backing store.
4. **Injected registry** - schemes live in a
    :class:`~resource_graph_api.resolver.SchemeRegistry` passed at call time.

Minimal quick start
-------------------
>>> from resource_graph_api import Accessor, SchemeRegistry, collection, create_memory_delegate, obj, resolve_uri, t
>>> Item = obj(name=t.string, rank=t.number)
>>> Root = obj(items=collection(Item, by=[Accessor.INDEX, Accessor.NAME]))
>>> data = {"items": [{"name": "a", "rank": 3}, {"name": "b", "rank": 1}]}
>>> registry = SchemeRegistry().register("demo", lambda: create_memory_delegate(data, "demo"), Root)
>>> resolve_uri("demo://items/b", registry).value.resolve()
{'name': 'b', 'rank': 1}

Public surface
--------------
Only a curated subset is exported at the package level; transports
(:mod:`~resource_graph_api.app`, :mod:`~resource_graph_api.mcp_server`) are
imported explicitly.
"""

__version__ = "0.1.0"

from .memory_delegate import MemoryDelegate, create_memory_delegate
from .models import ROOT, BackingError, Result, TypeMismatchError, URIError
from .mutations import with_create, with_delete, with_move, with_set
from .query import (
    PaginationSpec,
    QueryState,
    SortSpec,
    contains,
    equals,
    gt,
    lt,
    starts_with,
)
from .resolver import SchemeRegistry, resolve_uri
from .resources import ReadConfig, read_resource
from .schema import (
    Accessor,
    SchemaNode,
    collection,
    computed,
    computed_nav,
    lazy,
    namespace,
    obj,
    queryable,
    scalar,
    t,
    with_alias,
)
from .specifier import Specifier, get

__all__ = [
    "Accessor",
    "BackingError",
    "MemoryDelegate",
    "PaginationSpec",
    "QueryState",
    "ROOT",
    "ReadConfig",
    "Result",
    "SchemaNode",
    "SchemeRegistry",
    "SortSpec",
    "Specifier",
    "TypeMismatchError",
    "URIError",
    "collection",
    "computed",
    "computed_nav",
    "contains",
    "create_memory_delegate",
    "equals",
    "get",
    "gt",
    "lazy",
    "lt",
    "namespace",
    "obj",
    "queryable",
    "read_resource",
    "resolve_uri",
    "scalar",
    "starts_with",
    "t",
    "with_alias",
    "with_create",
    "with_delete",
    "with_move",
    "with_set",
]
