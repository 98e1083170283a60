"""Filtering, sorting, pagination and field expansion for collections.

The query engine is pure and delegate independent: it operates on plain
in-memory sequences and on an immutable :class:`QueryState` describing what
the caller asked for. Delegates accumulate query state (copy-on-write) while
a URI is being resolved; the queryable schema decorator hands the raw backing
sequence and the accumulated state to :func:`apply_query_state`.

Query state merge rules:
        * ``filter``: merged per field (a later predicate for the same field wins).
        * ``expand``: union, first-seen order preserved.
        * ``sort`` / ``pagination``: replaced wholesale.

Example::

        from resource_graph_api.query import QueryState, SortSpec, PaginationSpec, gt

        state = (
                QueryState()
                .with_filter({"rank": gt(1)})
                .with_sort(SortSpec(by="rank", direction="desc"))
                .with_pagination(PaginationSpec(limit=10))
        )
        page = apply_query_state(items, state)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from functools import cmp_to_key
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import quote

logger = logging.getLogger(__name__)

SORT_DIRECTIONS = ("asc", "desc")


# ---------------- Filter operators ---------------- #


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _strict_equals(item_value: Any, expected: Any) -> bool:
    if _is_number(item_value) and _is_number(expected):
        return item_value == expected
    return type(item_value) is type(expected) and item_value == expected


def _to_float(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _encode(value: Any) -> str:
    return quote(str(value), safe="")


@dataclass(frozen=True)
class FilterOperator:
    """A named comparison usable in ``whose`` filters and URI queries.

    Attributes:
        name: Operator name as written in URIs (``field.<name>=value``).
        parse_uri: Converts the URI string operand into the predicate value.
        test: ``test(item_value, predicate_value) -> bool``.
        to_uri: Serializes a predicate value back into a URI operand.
    """

    name: str
    parse_uri: Callable[[str], Any]
    test: Callable[[Any, Any], bool]
    to_uri: Callable[[Any], str]


EQUALS = FilterOperator(
    name="equals",
    parse_uri=lambda s: s,
    test=_strict_equals,
    to_uri=_encode,
)

CONTAINS = FilterOperator(
    name="contains",
    parse_uri=lambda s: s,
    test=lambda a, b: isinstance(a, str) and b in a,
    to_uri=_encode,
)

STARTS_WITH = FilterOperator(
    name="startsWith",
    parse_uri=lambda s: s,
    test=lambda a, b: isinstance(a, str) and a.startswith(b),
    to_uri=_encode,
)

# NaN never compares true, so non-numeric operands simply fail the predicate.
GT = FilterOperator(
    name="gt",
    parse_uri=_to_float,
    test=lambda a, b: _to_float(a) > _to_float(b),
    to_uri=_format_number,
)

LT = FilterOperator(
    name="lt",
    parse_uri=_to_float,
    test=lambda a, b: _to_float(a) < _to_float(b),
    to_uri=_format_number,
)

FILTER_OPERATORS: Dict[str, FilterOperator] = {
    op.name: op for op in (EQUALS, CONTAINS, STARTS_WITH, GT, LT)
}


def get_operator(name: str) -> Optional[FilterOperator]:
    """Return the operator registered under ``name`` (or None)."""
    return FILTER_OPERATORS.get(name)


@dataclass(frozen=True)
class Predicate:
    """An operator bound to the value it compares against."""

    operator: FilterOperator
    value: Any

    def test(self, item_value: Any) -> bool:
        return self.operator.test(item_value, self.value)


def equals(value: Any) -> Predicate:
    return Predicate(EQUALS, value)


def contains(value: str) -> Predicate:
    return Predicate(CONTAINS, value)


def starts_with(value: str) -> Predicate:
    return Predicate(STARTS_WITH, value)


def gt(value: float) -> Predicate:
    return Predicate(GT, value)


def lt(value: float) -> Predicate:
    return Predicate(LT, value)


# ---------------- Query state ---------------- #


@dataclass(frozen=True)
class SortSpec:
    by: str
    direction: str = "asc"

    def __post_init__(self) -> None:
        if self.direction not in SORT_DIRECTIONS:
            raise ValueError(
                f"Sort direction must be one of {SORT_DIRECTIONS}, got {self.direction!r}"
            )


@dataclass(frozen=True)
class PaginationSpec:
    limit: Optional[int] = None
    offset: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("limit", "offset"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"Pagination {name} must not be negative, got {value}")


@dataclass(frozen=True)
class QueryState:
    """Accumulated filter/sort/pagination/expand request for a collection.

    Instances are never mutated; every ``with_*`` call returns a new state.

    Attributes:
        filter: Field name to predicate mapping (all must hold).
        sort: Optional ordering.
        pagination: Optional ``[offset, offset + limit)`` window.
        expand: Item fields whose values replace their lazy references.
    """

    filter: Mapping[str, Predicate] = field(default_factory=dict)
    sort: Optional[SortSpec] = None
    pagination: Optional[PaginationSpec] = None
    expand: Tuple[str, ...] = ()

    def with_filter(self, filters: Mapping[str, Predicate]) -> "QueryState":
        merged = dict(self.filter)
        merged.update(filters)
        return replace(self, filter=merged)

    def with_sort(self, sort: Optional[SortSpec]) -> "QueryState":
        return replace(self, sort=sort)

    def with_pagination(self, pagination: Optional[PaginationSpec]) -> "QueryState":
        return replace(self, pagination=pagination)

    def with_expand(self, fields: Iterable[str]) -> "QueryState":
        merged = list(self.expand)
        for name in fields:
            if name not in merged:
                merged.append(name)
        return replace(self, expand=tuple(merged))

    def is_empty(self) -> bool:
        return (
            not self.filter
            and self.sort is None
            and self.pagination is None
            and not self.expand
        )


# ---------------- Application ---------------- #


def get_field_value(item: Any, name: str) -> Any:
    """Read ``name`` from a backing item.

    Mappings are read by key, other objects by attribute. Callable values are
    invoked, which lets backing stores expose lazily evaluated properties.
    """
    if isinstance(item, Mapping):
        value = item.get(name)
    else:
        value = getattr(item, name, None)
    if callable(value):
        return value()
    return value


def _compare(a: Any, b: Any) -> int:
    if a is None or b is None:
        return (a is not None) - (b is not None)
    try:
        return (a > b) - (a < b)
    except TypeError:
        sa, sb = str(a), str(b)
        return (sa > sb) - (sa < sb)


def apply_query_state(
    items: Iterable[Any],
    state: QueryState,
    value_of: Callable[[Any, str], Any] = get_field_value,
) -> List[Any]:
    """Filter, sort and paginate ``items`` according to ``state``.

    Args:
        items: Source sequence (not modified).
        state: Query state to apply. ``expand`` is ignored here; see
            :func:`expand_items`.
        value_of: Field accessor, ``value_of(item, field)``.

    Returns:
        List[Any]: New list; ties in the sort keep their source order.
    """
    results = list(items)

    if state.filter:
        results = [
            item
            for item in results
            if all(pred.test(value_of(item, name)) for name, pred in state.filter.items())
        ]

    if state.sort is not None:
        by = state.sort.by
        results = sorted(
            results,
            key=cmp_to_key(lambda a, b: _compare(value_of(a, by), value_of(b, by))),
            reverse=state.sort.direction == "desc",
        )

    if state.pagination is not None:
        offset = state.pagination.offset or 0
        limit = state.pagination.limit
        if limit is None:
            results = results[offset:]
        else:
            results = results[offset : offset + limit]

    return results


def expand_items(
    results: List[Dict[str, Any]],
    fields: Iterable[str],
    resolve_field: Callable[[int, str], Any],
) -> List[Dict[str, Any]]:
    """Replace lazy references with resolved field values.

    Args:
        results: Item reference dictionaries (``{"uri": ...}``).
        fields: Requested field names, already restricted to navigable ones.
        resolve_field: ``resolve_field(position, field)`` returning the value
            for the item at ``position`` in ``results``.

    Returns:
        List of new dictionaries. A field that fails to resolve is left out
        for that item only.
    """
    fields = list(fields)
    expanded = []
    for position, item in enumerate(results):
        enriched = dict(item)
        for name in fields:
            try:
                enriched[name] = resolve_field(position, name)
            except Exception as e:  # noqa: BLE001 - one bad field must not drop the item
                logger.debug(f"Expansion of {name!r} failed for item {position}: {e}")
        expanded.append(enriched)
    return expanded
