"""Schema node composition: the descriptors that shape a resource graph.

A :class:`SchemaNode` describes one addressable point of the graph: how to
turn a bound backing location into a value (its *resolution strategy*), how
to move one step deeper (its *navigation strategy*), which collection
accessors it offers, and which child nodes hang below it. Nodes are built
once at schema-definition time by composing factory calls and are shared,
read-only, across every request.

Node kinds:
        * ``scalar``      read the raw leaf value, optionally validated.
        * ``object``      gather every child node into a plain dict (best effort).
        * ``collection``  list of ``{"uri": ...}`` references, one per member.
        * ``computed``    raw leaf value passed through a pure transform.
        * ``namespace``   virtual grouping with no backing navigation.
        * ``query``       a collection honoring accumulated query state.

Decorators never mutate their argument; each returns a new node that copies
the base and overrides selected fields:
        * :func:`lazy`          reference-only when gathered by a parent.
        * :func:`with_alias`    navigate by a backing name different from the address name.
        * :func:`computed_nav`  reach the target location through an arbitrary function.
        * :func:`queryable`     filter/sort/paginate/expand on resolution.

Example (a self-referential folder tree)::

        from resource_graph_api.schema import Accessor, collection, lazy, obj, t, with_alias

        Note = obj(title=t.string, body=lazy(t.string))
        Folder = obj(lambda: {
                "name": t.string,
                "notes": lazy(collection(Note, by=[Accessor.INDEX, Accessor.ID])),
                "folders": lazy(collection(lambda: Folder, by=[Accessor.NAME])),
        })
        Root = obj(
                folders=lazy(collection(Folder, by=[Accessor.INDEX, Accessor.NAME])),
                owner=with_alias(t.string, "ownerName"),
        )

Self references are expressed with zero-argument callables (thunks) for an
object's children or a collection's item node; they are evaluated on access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from types import SimpleNamespace
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .models import TypeMismatchError
from .query import (
    PaginationSpec,
    Predicate,
    SortSpec,
    apply_query_state,
    expand_items,
    get_field_value,
)

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from .delegate import Delegate
    from .specifier import Specifier

logger = logging.getLogger(__name__)

ResolutionStrategy = Callable[["Delegate", "SchemaNode", "Specifier"], Any]
NavigationStrategy = Callable[["Delegate", str, "SchemaNode"], "Delegate"]
NavigationFn = Callable[["Delegate"], "Delegate"]
Validator = Callable[[Any], Any]
ChildMap = Union[Mapping[str, "SchemaNode"], Callable[[], Mapping[str, "SchemaNode"]]]
NodeRef = Union["SchemaNode", Callable[[], "SchemaNode"]]


class Accessor(str, Enum):
    """Ways a collection member can be addressed."""

    INDEX = "index"
    NAME = "name"
    ID = "id"


ACCESSOR_METHODS = {
    Accessor.INDEX: "by_index",
    Accessor.NAME: "by_name",
    Accessor.ID: "by_id",
}


@dataclass(frozen=True)
class ComputedNav:
    """Navigation function plus the node describing where it lands."""

    navigate: NavigationFn
    target: "SchemaNode"


@dataclass(frozen=True, eq=False)
class SchemaNode:
    """Immutable descriptor for one point in the schema graph.

    Attributes:
        resolution_strategy: ``(delegate, node, specifier) -> value``.
        kind: Node kind (see module docstring); informational.
        navigation_strategy: ``(delegate, address_key, node) -> delegate``;
            ``None`` means "navigate by the address key".
        resolve_from_parent: Strategy used instead of ``resolution_strategy``
            when a parent object gathers this node (set by :func:`lazy`).
        children: Child nodes by address key, or a thunk returning them.
        methods: Functions exposed on specifiers, called as
            ``fn(specifier, *args)`` (accessors, query and mutation methods).
        item_schema: Node shared by every collection member, or a thunk.
        computed_nav: Set by :func:`computed_nav`.
        namespace_target: Set by :func:`namespace`.
        alias: Backing name set by :func:`with_alias`.
        exists_strategy: ``(delegate) -> bool`` override for ``exists()``.
        description: Free text surfaced by resource listings.
    """

    resolution_strategy: ResolutionStrategy
    kind: str = "scalar"
    navigation_strategy: Optional[NavigationStrategy] = None
    resolve_from_parent: Optional[ResolutionStrategy] = None
    children: ChildMap = field(default_factory=dict)
    methods: Mapping[str, Callable[..., Any]] = field(default_factory=dict)
    item_schema: Optional[NodeRef] = None
    computed_nav: Optional[ComputedNav] = None
    namespace_target: Optional["SchemaNode"] = None
    alias: Optional[str] = None
    exists_strategy: Optional[Callable[["Delegate"], bool]] = None
    description: Optional[str] = None

    @property
    def child_nodes(self) -> Mapping[str, "SchemaNode"]:
        children = self.children
        return children() if callable(children) else children

    @property
    def item(self) -> Optional["SchemaNode"]:
        item = self.item_schema
        if item is not None and not isinstance(item, SchemaNode):
            return item()
        return item

    @property
    def lookup(self) -> "SchemaNode":
        """Node whose children are addressable below this one."""
        return self.namespace_target or self

    @property
    def is_namespace(self) -> bool:
        return self.namespace_target is not None

    @property
    def is_lazy(self) -> bool:
        return self.resolve_from_parent is not None

    def has_method(self, name: str) -> bool:
        return name in self.methods

    def navigable_keys(self) -> List[str]:
        return list(self.lookup.child_nodes.keys())

    def __repr__(self) -> str:
        extras = []
        if self.alias:
            extras.append(f"alias={self.alias!r}")
        if self.is_lazy:
            extras.append("lazy")
        if self.computed_nav is not None:
            extras.append("computed_nav")
        if self.methods:
            extras.append(f"methods={sorted(self.methods)}")
        suffix = f" {' '.join(extras)}" if extras else ""
        return f"<SchemaNode {self.kind}{suffix}>"


def is_schema_node(value: Any) -> bool:
    return isinstance(value, SchemaNode)


# ---------------- Navigation ---------------- #


def default_navigation(delegate: "Delegate", key: str, node: SchemaNode) -> "Delegate":
    return delegate.navigate_property(key)


def namespace_navigation(delegate: "Delegate", key: str, node: SchemaNode) -> "Delegate":
    return delegate.navigate_namespace(key)


def step_into(
    delegate: "Delegate", key: str, child: SchemaNode
) -> Tuple["Delegate", SchemaNode]:
    """Move ``delegate`` one step into ``child`` reached under address ``key``.

    Namespaces keep their own node; computed navigations land on their target
    node; everything else uses the child's navigation strategy (default or
    aliased).

    Returns:
        Tuple of (child delegate, node governing the child location).
    """
    if child.namespace_target is not None:
        return (child.navigation_strategy or namespace_navigation)(delegate, key, child), child
    if child.computed_nav is not None:
        return child.computed_nav.navigate(delegate), child.computed_nav.target
    navigate = child.navigation_strategy or default_navigation
    return navigate(delegate, key, child), child


# ---------------- Resolution strategies ---------------- #


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def reference(delegate: "Delegate") -> Dict[str, str]:
    """Address-only stand-in for a location's value."""
    return {"uri": delegate.canonical_uri()}


def scalar_strategy(delegate: "Delegate", node: SchemaNode, spec: "Specifier") -> Any:
    return delegate._raw()


def object_strategy(delegate: "Delegate", node: SchemaNode, spec: "Specifier") -> Dict[str, Any]:
    """Gather every child node into a dict, skipping keys that fail to resolve."""
    result: Dict[str, Any] = {}
    for key, child in node.lookup.child_nodes.items():
        try:
            child_spec = spec.child(key)
            if child.resolve_from_parent is not None:
                value = child.resolve_from_parent(child_spec.delegate, child_spec.node, child_spec)
            else:
                value = child_spec.resolve()
        except Exception as e:  # noqa: BLE001 - best effort per key
            logger.debug(f"Skipping '{key}' at {delegate.canonical_uri()}: {e}")
            continue
        result[key] = value
    return result


def collection_strategy(
    delegate: "Delegate", node: SchemaNode, spec: "Specifier"
) -> List[Dict[str, str]]:
    raw = delegate._raw()
    if not _is_sequence(raw):
        raise TypeMismatchError(f"Collection expected a sequence, got {type(raw).__name__}")
    return [reference(delegate.navigate_index(i)) for i in range(len(raw))]


def lazy_reference(delegate: "Delegate", node: SchemaNode, spec: "Specifier") -> Dict[str, str]:
    return reference(delegate)


def default_exists(delegate: "Delegate") -> bool:
    try:
        return delegate._raw() is not None
    except Exception:  # noqa: BLE001 - unreadable means absent
        return False


# ---------------- Validators ---------------- #


def is_string(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeMismatchError(f"Expected string, got {type(value).__name__}")
    return value


def is_number(value: Any) -> Union[int, float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeMismatchError(f"Expected number, got {type(value).__name__}")
    return value


def is_boolean(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeMismatchError(f"Expected boolean, got {type(value).__name__}")
    return value


def is_date(value: Any) -> str:
    """Accept ``datetime``/``date`` objects or ISO-8601 strings; return ISO text."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).isoformat()
        except ValueError:
            pass
    raise TypeMismatchError(f"Expected date, got {type(value).__name__}")


def is_string_list(value: Any) -> List[str]:
    if not _is_sequence(value):
        raise TypeMismatchError(f"Expected list, got {type(value).__name__}")
    return [is_string(item) for item in value]


def optional(validator: Validator) -> Validator:
    """Wrap ``validator`` so that ``None`` passes through."""

    def validate(value: Any) -> Any:
        if value is None:
            return None
        return validator(value)

    return validate


# ---------------- Factories ---------------- #


def scalar(validator: Optional[Validator] = None) -> SchemaNode:
    """Leaf node reading the raw value, validated when ``validator`` is given."""
    if validator is None:
        return SchemaNode(resolution_strategy=scalar_strategy, kind="scalar")

    def validating_strategy(delegate: "Delegate", node: SchemaNode, spec: "Specifier") -> Any:
        return validator(delegate._raw())

    return SchemaNode(resolution_strategy=validating_strategy, kind="scalar")


passthrough = scalar()

t = SimpleNamespace(
    string=scalar(is_string),
    number=scalar(is_number),
    boolean=scalar(is_boolean),
    date=scalar(is_date),
    string_list=scalar(is_string_list),
    any=passthrough,
)


def obj(children: Optional[ChildMap] = None, **named: SchemaNode) -> SchemaNode:
    """Object node gathering its children on resolution.

    Args:
        children: Mapping of address key to node, or a thunk returning one
            (needed for self-referential schemas).
        **named: Additional children; ignored when ``children`` is a thunk.
    """
    if callable(children):
        return SchemaNode(resolution_strategy=object_strategy, kind="object", children=children)
    merged: Dict[str, SchemaNode] = dict(children or {})
    merged.update(named)
    return SchemaNode(resolution_strategy=object_strategy, kind="object", children=merged)


def extend(base: SchemaNode, **more: SchemaNode) -> SchemaNode:
    """Copy of ``base`` with extra children added (or replaced)."""
    merged = dict(base.child_nodes)
    merged.update(more)
    return replace(base, children=merged)


def _query_methods() -> Dict[str, Callable[..., Any]]:
    def whose(spec: "Specifier", filters: Mapping[str, Predicate]) -> "Specifier":
        return spec.derive(spec.delegate.with_filter(filters), queryable(spec.node))

    def sort_by(
        spec: "Specifier", by: Union[str, SortSpec], direction: str = "asc"
    ) -> "Specifier":
        sort = by if isinstance(by, SortSpec) else SortSpec(by=by, direction=direction)
        return spec.derive(spec.delegate.with_sort(sort), queryable(spec.node))

    def paginate(
        spec: "Specifier", limit: Optional[int] = None, offset: Optional[int] = None
    ) -> "Specifier":
        pagination = PaginationSpec(limit=limit, offset=offset)
        return spec.derive(spec.delegate.with_pagination(pagination), queryable(spec.node))

    def expand(spec: "Specifier", fields: Iterable[str]) -> "Specifier":
        return spec.derive(spec.delegate.with_expand(fields), queryable(spec.node))

    return {"whose": whose, "sort_by": sort_by, "paginate": paginate, "expand": expand}


def collection(item: NodeRef, by: Iterable[Accessor] = (Accessor.INDEX,)) -> SchemaNode:
    """Collection node whose members are described by ``item``.

    Only the accessors listed in ``by`` are added; they decide which URI
    qualifiers (``[n]``, ``/name``, ``/id``) the resolver accepts. Query
    methods (``whose``, ``sort_by``, ``paginate``, ``expand``) are always
    available and switch the node to its :func:`queryable` form.
    """
    accessors = {Accessor(a) for a in by}
    methods: Dict[str, Callable[..., Any]] = {}

    def item_node() -> SchemaNode:
        return item if isinstance(item, SchemaNode) else item()

    if Accessor.INDEX in accessors:

        def by_index(spec: "Specifier", index: int) -> "Specifier":
            return spec.derive(spec.delegate.navigate_index(index), item_node())

        methods["by_index"] = by_index

    if Accessor.NAME in accessors:

        def by_name(spec: "Specifier", name: str) -> "Specifier":
            return spec.derive(spec.delegate.navigate_name(name), item_node())

        methods["by_name"] = by_name

    if Accessor.ID in accessors:

        def by_id(spec: "Specifier", identifier: Union[str, int]) -> "Specifier":
            return spec.derive(spec.delegate.navigate_id(identifier), item_node())

        methods["by_id"] = by_id

    methods.update(_query_methods())
    return SchemaNode(
        resolution_strategy=collection_strategy,
        kind="collection",
        methods=methods,
        item_schema=item,
    )


def member_keys(node: SchemaNode) -> Tuple[str, ...]:
    """Member address forms ``node`` accepts, preferred first (id, name, index)."""
    order = (Accessor.ID, Accessor.NAME, Accessor.INDEX)
    return tuple(a.value for a in order if node.has_method(ACCESSOR_METHODS[a]))


def lazy(node: SchemaNode) -> SchemaNode:
    """Reference-only when gathered by a parent; full value when resolved directly."""
    return replace(node, resolve_from_parent=lazy_reference)


def computed(transform: Callable[[Any], Any]) -> SchemaNode:
    """Leaf node applying a pure ``transform`` to the raw value."""

    def computed_strategy(delegate: "Delegate", node: SchemaNode, spec: "Specifier") -> Any:
        return transform(delegate._raw())

    return SchemaNode(resolution_strategy=computed_strategy, kind="computed")


def with_alias(node: SchemaNode, backing_name: str) -> SchemaNode:
    """Navigate the backing store by ``backing_name``; the address keeps its own key."""

    def aliased_navigation(delegate: "Delegate", key: str, child: SchemaNode) -> "Delegate":
        return delegate.navigate_property_aliased(backing_name, key)

    return replace(node, navigation_strategy=aliased_navigation, alias=backing_name)


def computed_nav(navigate: NavigationFn, target: SchemaNode) -> SchemaNode:
    """Reach ``target`` through ``navigate(parent_delegate)`` instead of property descent.

    :func:`step_into` lands on ``target`` itself, so reads, ``exists()`` and
    further descent all go through the target node and the navigated delegate.
    """
    return replace(target, computed_nav=ComputedNav(navigate=navigate, target=target))


def namespace(target: SchemaNode) -> SchemaNode:
    """Virtual grouping of ``target``'s children under an extra address segment."""
    return SchemaNode(
        resolution_strategy=object_strategy,
        kind="namespace",
        navigation_strategy=namespace_navigation,
        namespace_target=target,
        exists_strategy=lambda delegate: True,
        description=target.description,
    )


def describe(node: SchemaNode, text: str) -> SchemaNode:
    return replace(node, description=text)


# ---------------- Query decorator ---------------- #


def _query_strategy(delegate: "Delegate", node: SchemaNode, spec: "Specifier") -> List[Dict[str, Any]]:
    raw = delegate._raw()
    if not _is_sequence(raw):
        raise TypeMismatchError(f"Query expected a sequence, got {type(raw).__name__}")

    state = delegate.query_state()
    selected = apply_query_state(
        list(enumerate(raw)),
        state,
        value_of=lambda pair, name: get_field_value(pair[1], name),
    )
    results = [reference(delegate.navigate_index(index)) for index, _ in selected]

    item = node.item
    if state.expand and item is not None:
        fields = [name for name in state.expand if name in item.lookup.child_nodes]

        def resolve_field(position: int, name: str) -> Any:
            item_spec = spec.derive(delegate.navigate_index(selected[position][0]), item)
            return item_spec.child(name).resolve()

        results = expand_items(results, fields, resolve_field)

    return results


def references_only(node: SchemaNode) -> SchemaNode:
    """Copy of a collection node whose members always resolve to bare references."""
    return replace(node, item_schema=None)


def queryable(node: SchemaNode) -> SchemaNode:
    """Collection node whose resolution honors the delegate's query state.

    Idempotent: wrapping an already queryable node returns it unchanged.
    """
    if node.kind == "query":
        return node
    methods = dict(node.methods)
    methods.update(_query_methods())
    return replace(node, resolution_strategy=_query_strategy, kind="query", methods=methods)
