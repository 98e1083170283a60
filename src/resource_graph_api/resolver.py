"""URI resolution against registered schemes.

:func:`resolve_uri` lexes a URI, looks up its scheme in a
:class:`SchemeRegistry`, then walks the segments from the scheme's root
delegate and root schema node, one navigation step per segment:

        * a declared namespace child moves into the namespace (no qualifier allowed);
        * any other declared child is entered through its navigation strategy
          (computed navigations land on their target node), then its qualifier
          is applied;
        * an undeclared head on a node offering ``by_name`` (preferred) or
          ``by_id`` selects a collection member by that head;
        * anything else fails with the list of navigable children.

Qualifiers: ``[n]`` needs ``by_index``, a folded id needs ``by_id``, a query
string accumulates filter/sort/pagination/expand on the delegate and switches
the node to its queryable form.

All failures are returned as ``Result(ok=False, error=...)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .delegate import Delegate
from .models import Result
from .query import FILTER_OPERATORS, PaginationSpec, Predicate, SortSpec
from .schema import SchemaNode, passthrough, queryable, step_into
from .specifier import Specifier
from .uri import IdQualifier, IndexQualifier, QueryQualifier, Qualifier, lex_uri

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemeRegistration:
    scheme: str
    create_root: Callable[[], Delegate]
    schema: SchemaNode


class SchemeRegistry:
    """Scheme name to (root delegate factory, root schema) table.

    Built once at startup, then frozen; pass it to :func:`resolve_uri`.

    Example:
        >>> registry = SchemeRegistry()
        >>> registry.register("notes", lambda: create_memory_delegate(data, "notes"), Root)
        >>> registry.freeze()
    """

    def __init__(self) -> None:
        self._schemes: Dict[str, SchemeRegistration] = {}
        self._frozen = False

    def register(
        self, scheme: str, create_root: Callable[[], Delegate], schema: SchemaNode
    ) -> "SchemeRegistry":
        if self._frozen:
            raise RuntimeError(f"Registry is frozen; cannot register scheme '{scheme}'")
        self._schemes[scheme] = SchemeRegistration(scheme, create_root, schema)
        logger.debug(f"Registered scheme '{scheme}'")
        return self

    def freeze(self) -> "SchemeRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, scheme: str) -> Optional[SchemeRegistration]:
        return self._schemes.get(scheme)

    def schemes(self) -> List[str]:
        return list(self._schemes)

    def registrations(self) -> List[SchemeRegistration]:
        return list(self._schemes.values())

    def __contains__(self, scheme: str) -> bool:
        return scheme in self._schemes

    def __len__(self) -> int:
        return len(self._schemes)


def apply_query_qualifier(delegate: Delegate, qualifier: QueryQualifier) -> Delegate:
    """Accumulate a parsed query string onto ``delegate``'s query state."""
    if qualifier.filters:
        predicates = {}
        for item in qualifier.filters:
            operator = FILTER_OPERATORS[item.op]
            predicates[item.field] = Predicate(operator, operator.parse_uri(item.value))
        delegate = delegate.with_filter(predicates)
    if qualifier.sort is not None:
        delegate = delegate.with_sort(SortSpec(qualifier.sort.field, qualifier.sort.direction))
    if qualifier.limit is not None or qualifier.offset is not None:
        delegate = delegate.with_pagination(
            PaginationSpec(limit=qualifier.limit, offset=qualifier.offset)
        )
    if qualifier.expand:
        delegate = delegate.with_expand(qualifier.expand)
    return delegate


def _member_node(node: SchemaNode) -> SchemaNode:
    return node.item or passthrough


def _apply_qualifier(
    delegate: Delegate, node: SchemaNode, qualifier: Qualifier, head: str
) -> Result[Tuple[Delegate, SchemaNode]]:
    if isinstance(qualifier, IndexQualifier):
        if not node.has_method("by_index"):
            return Result.failure(f"Collection '{head}' does not support index addressing")
        return Result.success((delegate.navigate_index(qualifier.value), _member_node(node)))
    if isinstance(qualifier, IdQualifier):
        if not node.has_method("by_id"):
            return Result.failure(f"Collection '{head}' does not support id addressing")
        return Result.success((delegate.navigate_id(qualifier.value), _member_node(node)))
    return Result.success((apply_query_qualifier(delegate, qualifier), queryable(node)))


def resolve_uri(uri: str, registry: SchemeRegistry) -> Result[Specifier]:
    """Resolve ``uri`` to a :class:`Specifier`.

    Args:
        uri: Resource URI (``scheme://segment/...``).
        registry: Registered schemes.

    Returns:
        Result[Specifier]: Failure describing the first segment that could
        not be resolved.
    """
    lexed = lex_uri(uri)
    if not lexed.ok:
        return Result.failure(lexed.error)
    parsed = lexed.value

    registration = registry.get(parsed.scheme)
    if registration is None:
        known = ", ".join(registry.schemes()) or "(none)"
        return Result.failure(f"Unknown scheme: {parsed.scheme}. Known: {known}")

    delegate = registration.create_root()
    node = registration.schema

    for segment in parsed.segments:
        head = segment.head
        child = node.lookup.child_nodes.get(head)

        if child is not None:
            if child.is_namespace and segment.qualifier is not None:
                return Result.failure(f"Namespace '{head}' does not support qualifiers")
            try:
                delegate, node = step_into(delegate, head, child)
            except Exception as e:  # noqa: BLE001 - navigation functions are user code
                logger.debug(f"Navigation into '{head}' failed for {uri}: {e}")
                return Result.failure(f"Navigation into '{head}' failed: {e}")
        elif node.has_method("by_name"):
            delegate, node = delegate.navigate_name(head), _member_node(node)
        elif node.has_method("by_id"):
            delegate, node = delegate.navigate_id(head), _member_node(node)
        else:
            available = ", ".join(node.navigable_keys()) or "(none)"
            logger.debug(f"Unknown segment '{head}' in {uri}")
            return Result.failure(f"Unknown segment '{head}'. Available: {available}")

        if segment.qualifier is not None:
            applied = _apply_qualifier(delegate, node, segment.qualifier, head)
            if not applied.ok:
                return Result.failure(applied.error)
            delegate, node = applied.value

    return Result.success(Specifier(delegate, node, registry))
