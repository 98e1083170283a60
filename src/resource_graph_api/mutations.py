"""Mutation composers: add ``set``/``move``/``delete``/``create`` to schema nodes.

Each composer returns a copy of the node with one extra specifier method.
The backing store does the actual work; the composer only rewires
addresses: ``move`` and ``create`` re-resolve the URI the store reports
through the specifier's registry so the caller gets a fully typed specifier
for the new location.

Example::

        Note = with_move()(with_delete()(obj(title=t.string)))
        Notes = with_create()(collection(Note, by=[Accessor.INDEX, Accessor.ID]))

        result = notes_spec.create({"title": "Groceries"})
        if result.ok:
                print(result.value.uri())
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Mapping, Optional

from .delegate import Delegate
from .models import BackingError, Result
from .resolver import resolve_uri
from .schema import SchemaNode, member_keys
from .specifier import Specifier

logger = logging.getLogger(__name__)

MoveHandler = Callable[[Delegate, Delegate], Result[str]]
DeleteHandler = Callable[[Delegate], Result[str]]
CreateHandler = Callable[[Delegate, Mapping[str, Any]], Result[str]]
NodeDecorator = Callable[[SchemaNode], SchemaNode]


def _with_method(node: SchemaNode, name: str, method: Callable[..., Any]) -> SchemaNode:
    methods = dict(node.methods)
    methods[name] = method
    return replace(node, methods=methods)


def _reresolve(spec: Specifier, uri: str) -> Result[Specifier]:
    if spec.registry is None:
        return Result.failure(f"No scheme registry bound; cannot resolve {uri}")
    return resolve_uri(uri, spec.registry)


def with_set(node: SchemaNode) -> SchemaNode:
    """Add ``set(value)``, assigning through the backing store.

    ``set`` returns ``Result[str]`` carrying the specifier's URI.
    """

    def set_value(spec: Specifier, value: Any) -> Result[str]:
        try:
            spec.delegate.assign(value)
        except BackingError as e:
            return Result.failure(str(e))
        logger.debug(f"Set {spec.uri()}")
        return Result.success(spec.uri())

    return _with_method(node, "set", set_value)


def with_move(handler: Optional[MoveHandler] = None) -> NodeDecorator:
    """Add ``move(destination)`` to a collection item node.

    Args:
        handler: ``handler(item_delegate, destination_delegate)``; defaults to
            ``item_delegate.relocate(destination_delegate, keys)`` where ``keys``
            are the accessors the destination node declares, so the new
            address always resolves.
    """

    def decorate(node: SchemaNode) -> SchemaNode:
        def move(spec: Specifier, destination: Specifier) -> Result[Specifier]:
            if handler is not None:
                moved = handler(spec.delegate, destination.delegate)
            else:
                moved = spec.delegate.relocate(destination.delegate, member_keys(destination.node))
            if not moved.ok:
                return Result.failure(moved.error)
            logger.debug(f"Moved {spec.uri()} to {moved.value}")
            return _reresolve(spec, moved.value)

        return _with_method(node, "move", move)

    return decorate


def with_delete(handler: Optional[DeleteHandler] = None) -> NodeDecorator:
    """Add ``delete()``, which returns the URI the item had."""

    def decorate(node: SchemaNode) -> SchemaNode:
        def delete(spec: Specifier) -> Result[str]:
            removed = handler(spec.delegate) if handler is not None else spec.delegate.remove()
            if removed.ok:
                logger.debug(f"Deleted {removed.value}")
            return removed

        return _with_method(node, "delete", delete)

    return decorate


def with_create(handler: Optional[CreateHandler] = None) -> NodeDecorator:
    """Add ``create(properties)`` to a collection node."""

    def decorate(node: SchemaNode) -> SchemaNode:
        def create(spec: Specifier, properties: Mapping[str, Any]) -> Result[Specifier]:
            if handler is not None:
                created = handler(spec.delegate, properties)
            else:
                created = spec.delegate.insert(properties, member_keys(spec.node))
            if not created.ok:
                return Result.failure(created.error)
            logger.debug(f"Created {created.value}")
            return _reresolve(spec, created.value)

        return _with_method(node, "create", create)

    return decorate
