"""In-memory delegate over plain ``dict``/``list`` data.

Used as the backing store for tests, for the CLI and for servers started
with a JSON data file. Collection members are matched by their ``name`` and
``id`` keys.

Each delegate remembers *how* it was reached (parent plus one navigation
step) rather than a snapshot of the value, so every ``_raw()`` call re-reads
the live data and mutations are visible to existing delegates.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping, MutableSequence, Sequence
from typing import Any, Iterable, Optional, Sequence, Tuple, Union
from urllib.parse import quote

from .delegate import MEMBER_KEYS, Delegate
from .models import ROOT, BackingError, PathSegment, Result, RootMarker
from .query import PaginationSpec, Predicate, QueryState, SortSpec
from .uri import build_uri, is_integer

logger = logging.getLogger(__name__)

FIRST_GENERATED_ID = 1000


class _Store:
    """Root document shared by every delegate derived from one root."""

    def __init__(self, data: Any):
        self.data = data


def _is_list(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _member_key(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return None


def _same_id(candidate: Any, identifier: Union[str, int]) -> bool:
    if candidate is None:
        return False
    return candidate == identifier or str(candidate) == str(identifier)


def _find(items: Any, key: str, wanted: Any) -> Optional[int]:
    if not _is_list(items):
        return None
    for index, item in enumerate(items):
        if _same_id(_member_key(item, key), wanted):
            return index
    return None


def _next_id(items: Any) -> int:
    """One past the largest integer id in ``items``, never below ``FIRST_GENERATED_ID``."""
    highest = FIRST_GENERATED_ID - 1
    for item in items:
        value = _member_key(item, "id")
        if isinstance(value, int) and not isinstance(value, bool):
            highest = max(highest, value)
    return highest + 1


def _index_of(items: Any, item: Any) -> Optional[int]:
    for index, candidate in enumerate(items):
        if candidate is item:
            return index
    return None


class MemoryDelegate(Delegate):
    """Delegate bound to one location inside an in-memory document.

    Args:
        store: Shared root document.
        path: Address path accumulated so far.
        parent: Delegate this one was derived from (``None`` at the root).
        step: ``(kind, key)`` applied to the parent's value; ``kind`` is one
            of ``root``, ``prop``, ``namespace``, ``index``, ``name``, ``id``
            or ``value`` (a fixed value bound by :meth:`from_value`).
        query: Accumulated query state.
    """

    def __init__(
        self,
        store: _Store,
        path: Tuple[PathSegment, ...],
        parent: Optional["MemoryDelegate"] = None,
        step: Tuple[str, Any] = ("root", None),
        query: Optional[QueryState] = None,
    ):
        self._store = store
        self._path = path
        self._parent = parent
        self._step = step
        self._query = query or QueryState()

    def __repr__(self) -> str:
        return f"MemoryDelegate({self.canonical_uri()!r})"

    # ---------------- Reading ---------------- #

    def _raw(self) -> Any:
        kind, key = self._step
        if kind == "root":
            return self._store.data
        if kind == "value":
            return key

        container = self._parent._raw()
        if kind == "namespace":
            return container
        if kind == "prop":
            return container.get(key) if isinstance(container, Mapping) else None
        if kind == "index":
            if _is_list(container) and 0 <= key < len(container):
                return container[key]
            return None
        if kind == "name":
            index = _find(container, "name", key)
        else:
            index = _find(container, "id", key)
        return None if index is None else container[index]

    def _child(self, segment: PathSegment, step: Tuple[str, Any]) -> "MemoryDelegate":
        return MemoryDelegate(self._store, self._path + (segment,), self, step)

    # ---------------- Navigation ---------------- #

    def navigate_property(self, key: str) -> "MemoryDelegate":
        return self._child(PathSegment.prop(key), ("prop", key))

    def navigate_property_aliased(self, backing_key: str, address_key: str) -> "MemoryDelegate":
        return self._child(PathSegment.prop(address_key), ("prop", backing_key))

    def navigate_namespace(self, address_key: str) -> "MemoryDelegate":
        return self._child(PathSegment.prop(address_key), ("namespace", None))

    def navigate_index(self, index: int) -> "MemoryDelegate":
        return self._child(PathSegment.index(index), ("index", index))

    def navigate_name(self, name: str) -> "MemoryDelegate":
        return self._child(PathSegment.by_name(name), ("name", name))

    def navigate_id(self, identifier: Union[str, int]) -> "MemoryDelegate":
        return self._child(PathSegment.by_id(identifier), ("id", identifier))

    def from_value(self, value: Any, path: Iterable[PathSegment]) -> "MemoryDelegate":
        return MemoryDelegate(self._store, tuple(path), self, ("value", value))

    def canonical_uri(self) -> str:
        return build_uri(self._path, self._query)

    def parent(self) -> Union["MemoryDelegate", RootMarker]:
        if self._parent is None:
            return ROOT
        return self._parent

    @property
    def path(self) -> Tuple[PathSegment, ...]:
        return self._path

    # ---------------- Mutation ---------------- #

    def assign(self, value: Any) -> None:
        kind, key = self._step
        container = self._parent._raw() if self._parent is not None else None
        if kind != "prop" or not isinstance(container, MutableMapping):
            raise BackingError(f"Cannot assign at {self.canonical_uri()}")
        container[key] = value
        logger.debug(f"Assigned {key!r} at {self.canonical_uri()}")

    def _detach(self) -> Result[Any]:
        """Remove the bound item from its parent collection."""
        if self._step[0] not in ("index", "name", "id") or self._parent is None:
            return Result.failure(f"Cannot remove {self.canonical_uri()}: item not in a collection")
        item = self._raw()
        container = self._parent._raw()
        if item is None or not isinstance(container, MutableSequence):
            return Result.failure(f"Item not found: {self.canonical_uri()}")
        index = _index_of(container, item)
        if index is None:
            return Result.failure(f"Item not found: {self.canonical_uri()}")
        del container[index]
        return Result.success(item)

    def relocate(
        self, destination: Delegate, member_keys: Sequence[str] = MEMBER_KEYS
    ) -> Result[str]:
        target = destination._raw()
        if not isinstance(target, MutableSequence):
            return Result.failure("Destination is not a collection")
        collection_uri = destination.canonical_uri()
        if _member_uri(collection_uri, self._raw(), len(target), member_keys) is None:
            return Result.failure(f"Cannot move into {collection_uri}: item has no address there")
        detached = self._detach()
        if not detached.ok:
            return Result.failure(detached.error)
        item = detached.value
        target.append(item)
        return Result.success(_member_uri(collection_uri, item, len(target) - 1, member_keys))

    def remove(self) -> Result[str]:
        uri = self.canonical_uri()
        detached = self._detach()
        if not detached.ok:
            return Result.failure(detached.error)
        return Result.success(uri)

    def insert(
        self, properties: Mapping[str, Any], member_keys: Sequence[str] = MEMBER_KEYS
    ) -> Result[str]:
        target = self._raw()
        collection_uri = self.canonical_uri()
        if not isinstance(target, MutableSequence):
            return Result.failure(f"Cannot create: {collection_uri} is not a collection")
        item = dict(properties)
        if "id" not in item:
            item["id"] = _next_id(target)
        uri = _member_uri(collection_uri, item, len(target), member_keys)
        if uri is None:
            return Result.failure(f"Cannot create in {collection_uri}: new item has no address there")
        target.append(item)
        return Result.success(uri)

    # ---------------- Query state ---------------- #

    def _with_query(self, query: QueryState) -> "MemoryDelegate":
        return MemoryDelegate(self._store, self._path, self._parent, self._step, query)

    def with_filter(self, filters: Mapping[str, Predicate]) -> "MemoryDelegate":
        return self._with_query(self._query.with_filter(filters))

    def with_sort(self, sort: Optional[SortSpec]) -> "MemoryDelegate":
        return self._with_query(self._query.with_sort(sort))

    def with_pagination(self, pagination: Optional[PaginationSpec]) -> "MemoryDelegate":
        return self._with_query(self._query.with_pagination(pagination))

    def with_expand(self, fields: Iterable[str]) -> "MemoryDelegate":
        return self._with_query(self._query.with_expand(fields))

    def query_state(self) -> QueryState:
        return self._query


def _member_uri(
    collection_uri: str, item: Any, index: int, member_keys: Sequence[str] = MEMBER_KEYS
) -> Optional[str]:
    """Address of ``item`` at ``index`` using the first applicable member key.

    Numeric names are skipped because a bare integer segment reads as an id.
    Returns ``None`` when no key applies.
    """
    base = collection_uri.split("?", 1)[0]
    for key in member_keys:
        if key == "index":
            return f"{base}%5B{index}%5D"
        value = _member_key(item, key)
        if value is None or (key == "name" and is_integer(str(value))):
            continue
        return f"{base}/{quote(str(value), safe='')}"
    return None


def create_memory_delegate(data: Any, scheme: str) -> MemoryDelegate:
    """Root delegate over ``data`` addressed as ``<scheme>://``."""
    return MemoryDelegate(_Store(data), (PathSegment.root(scheme),))

