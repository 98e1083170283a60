"""Backing-store cursor contract.

A :class:`Delegate` is bound to one location in a backing data graph (a live
automation bridge, an in-memory document, ...). The engine never touches
backing data directly; every read, navigation step and mutation goes
through this interface.

Contract:
        * Navigation never mutates the receiver; each call returns a new delegate.
        * ``with_*`` query methods return a new delegate whose query state is
            the receiver's state merged with the argument (see
            :class:`~resource_graph_api.query.QueryState`).
        * Mutation primitives report failures as ``Result`` values instead of
            raising.

Implementations: :class:`~resource_graph_api.memory_delegate.MemoryDelegate`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from .models import PathSegment, Result, RootMarker
from .query import PaginationSpec, Predicate, QueryState, SortSpec

# Address forms for a collection member, preferred first.
MEMBER_KEYS = ("id", "name", "index")


class Delegate(ABC):
    """Abstract cursor over one backing location."""

    @abstractmethod
    def _raw(self) -> Any:
        """Read the value at the bound location."""

    @abstractmethod
    def navigate_property(self, key: str) -> "Delegate":
        """Descend into ``key``; the address gains the same key."""

    @abstractmethod
    def navigate_property_aliased(self, backing_key: str, address_key: str) -> "Delegate":
        """Descend into ``backing_key`` while recording ``address_key`` in the address."""

    @abstractmethod
    def navigate_namespace(self, address_key: str) -> "Delegate":
        """Stay at the same backing location, appending ``address_key`` to the address."""

    @abstractmethod
    def navigate_index(self, index: int) -> "Delegate":
        """Select a collection member by position."""

    @abstractmethod
    def navigate_name(self, name: str) -> "Delegate":
        """Select a collection member by its name."""

    @abstractmethod
    def navigate_id(self, identifier: Union[str, int]) -> "Delegate":
        """Select a collection member by its identifier."""

    @abstractmethod
    def canonical_uri(self) -> str:
        """Address path plus serialized query state."""

    @abstractmethod
    def assign(self, value: Any) -> None:
        """Replace the value at the bound location.

        Raises:
            BackingError: If the location cannot be assigned.
        """

    @abstractmethod
    def parent(self) -> Union["Delegate", RootMarker]:
        """Delegate for the enclosing location, or ``ROOT`` at the top."""

    @abstractmethod
    def relocate(
        self, destination: "Delegate", member_keys: Sequence[str] = MEMBER_KEYS
    ) -> Result[str]:
        """Move the bound item into the ``destination`` collection.

        Args:
            destination: Delegate bound to the target collection.
            member_keys: Address forms the destination accepts, preferred
                first. The reported URI uses the first one the item has; when
                none applies nothing is moved.
        """

    @abstractmethod
    def remove(self) -> Result[str]:
        """Delete the bound item from its collection."""

    @abstractmethod
    def insert(
        self, properties: Mapping[str, Any], member_keys: Sequence[str] = MEMBER_KEYS
    ) -> Result[str]:
        """Create a new member in the bound collection, addressed as in :meth:`relocate`."""

    @abstractmethod
    def with_filter(self, filters: Mapping[str, Predicate]) -> "Delegate":
        ...

    @abstractmethod
    def with_sort(self, sort: Optional[SortSpec]) -> "Delegate":
        ...

    @abstractmethod
    def with_pagination(self, pagination: Optional[PaginationSpec]) -> "Delegate":
        ...

    @abstractmethod
    def with_expand(self, fields: Iterable[str]) -> "Delegate":
        ...

    @abstractmethod
    def query_state(self) -> QueryState:
        ...

    def from_value(self, value: Any, path: Sequence[PathSegment]) -> "Delegate":
        """Bind a backing value found by a computed navigation to an explicit address.

        Optional; backing stores that support computed navigation override it.
        """
        raise NotImplementedError(f"{type(self).__name__} does not support from_value()")
