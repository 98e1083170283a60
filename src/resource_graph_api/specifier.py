"""Lazy handles binding a schema node to a backing location.

A :class:`Specifier` does no I/O until :meth:`Specifier.resolve` is called.
Member access is dispatched by :func:`get`:

        1. built-in operations (``resolve``, ``exists``, ``uri``, ``to_json``,
           ``parent``, ``keys``),
        2. methods carried by the schema node (accessors such as ``by_name``,
           query methods such as ``whose``, mutation methods such as ``move``),
           returned bound to the specifier,
        3. child schema nodes, returned as child specifiers.

Attribute access (``spec.folders``) and item access (``spec["folders"]``)
both go through :func:`get`; use item access for keys that collide with a
built-in name.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Dict, List, Optional

from .delegate import Delegate
from .models import is_root
from .schema import SchemaNode, default_exists, passthrough, step_into

BUILTINS = ("resolve", "exists", "uri", "to_json", "parent", "keys")


class Specifier:
    """Handle for one addressable location.

    Args:
        delegate: Backing cursor for the location.
        node: Schema node governing the location.
        registry: Scheme registry used by mutations to re-resolve result
            URIs; optional for read-only use.
    """

    __slots__ = ("_delegate", "_node", "_registry")

    def __init__(self, delegate: Delegate, node: SchemaNode, registry: Any = None):
        object.__setattr__(self, "_delegate", delegate)
        object.__setattr__(self, "_node", node)
        object.__setattr__(self, "_registry", registry)

    def __setattr__(self, key: str, value: Any) -> None:
        raise AttributeError("Specifier is immutable")

    @property
    def delegate(self) -> Delegate:
        return self._delegate

    @property
    def node(self) -> SchemaNode:
        return self._node

    @property
    def registry(self) -> Any:
        return self._registry

    def derive(self, delegate: Delegate, node: SchemaNode) -> "Specifier":
        """New specifier sharing this one's registry."""
        return Specifier(delegate, node, self._registry)

    def resolve(self) -> Any:
        """Read and shape the value at this location.

        Raises:
            TypeMismatchError: If a scalar or collection strategy rejects the
                backing value.
        """
        return self._node.resolution_strategy(self._delegate, self._node, self)

    def exists(self) -> bool:
        check = self._node.exists_strategy or default_exists
        return check(self._delegate)

    def uri(self) -> str:
        return self._delegate.canonical_uri()

    def to_json(self) -> Dict[str, str]:
        return {"uri": self.uri()}

    def parent(self) -> Optional["Specifier"]:
        """Specifier for the enclosing location (untyped), or None at the root."""
        parent = self._delegate.parent()
        if is_root(parent):
            return None
        return self.derive(parent, passthrough)

    def child(self, key: str) -> "Specifier":
        """Specifier for the child node declared under ``key``.

        Raises:
            KeyError: If the node declares no such child.
        """
        child = self._node.lookup.child_nodes.get(key)
        if child is None:
            raise KeyError(key)
        delegate, node = step_into(self._delegate, key, child)
        return self.derive(delegate, node)

    def keys(self) -> List[str]:
        """Every key :func:`get` can dispatch on this specifier."""
        names = list(BUILTINS)
        for name in list(self._node.methods) + self._node.navigable_keys():
            if name not in names:
                names.append(name)
        return names

    def __getattr__(self, key: str) -> Any:
        if key.startswith("__"):
            raise AttributeError(key)
        try:
            return get(self, key)
        except KeyError:
            raise AttributeError(
                f"'{self._node.kind}' specifier at {self.uri()} has no member '{key}'"
            ) from None

    def __getitem__(self, key: str) -> Any:
        return get(self, key)

    def __contains__(self, key: str) -> bool:
        return key in self.keys()

    def __repr__(self) -> str:
        return f"Specifier({self.uri()!r}, {self._node!r})"


def get(specifier: Specifier, key: str) -> Any:
    """Explicit member dispatch for ``specifier``.

    Raises:
        KeyError: If ``key`` is neither a built-in, a node method nor a child.
    """
    if key in BUILTINS:
        return getattr(specifier, key)
    node = specifier.node
    method = node.methods.get(key)
    if method is not None:
        return partial(method, specifier)
    if key in node.lookup.child_nodes:
        return specifier.child(key)
    raise KeyError(key)
