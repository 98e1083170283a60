"""Core value types shared by every layer of the resource graph engine.

These lightweight dataclasses carry no framework dependencies so they can be
produced by backing delegates, consumed by the resolver, and serialized by
the transport layers (REST, MCP) without conversion.

Overview:
        * ``Result`` is the structured success/failure value returned by URI
            resolution and by backing-store mutation primitives. URI and backing
            errors are *returned*, never raised.
        * ``PathSegment`` is one step of a delegate's accumulated address; the
            canonical URI is rebuilt from a list of them.
        * ``ROOT`` marks the top of the address chain (``Delegate.parent()``).
        * The exception hierarchy covers the errors that *are* raised: type
            mismatches thrown by resolution strategies.

Typical usage::

        from resource_graph_api.models import Result

        result = Result.success("notes://folders/Inbox")
        if result.ok:
                print(result.value)

        failure = Result.failure("Destination is not a collection")
        assert not failure.ok
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ResourceGraphError(Exception):
    """Base class for exceptions raised by the engine."""


class TypeMismatchError(ResourceGraphError, TypeError):
    """Raised when a backing value does not have the shape a schema node expects.

    Scalar validators raise it for rejected raw values and collection
    resolution raises it when the backing value is not a sequence.
    """


class URIError(ResourceGraphError, ValueError):
    """Raised by callers that prefer exceptions over a failed :class:`Result`.

    See :meth:`Result.unwrap`.
    """


class BackingError(ResourceGraphError):
    """Raised by a backing store when a location cannot be assigned or read."""


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success or failure of an operation that reports errors as values.

    Attributes:
        ok: True when ``value`` is meaningful.
        value: Payload on success.
        error: Human-readable message on failure.

    Example:
        >>> Result.failure("Unknown scheme: foo").ok
        False
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "Result[T]":
        return cls(ok=False, error=error)

    def unwrap(self) -> T:
        """Return ``value`` or raise :class:`URIError` carrying ``error``."""
        if not self.ok:
            raise URIError(self.error)
        return self.value

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True, "value": self.value}
        return {"ok": False, "error": self.error}


@dataclass(frozen=True)
class PathSegment:
    """One step of an address path.

    ``kind`` is one of ``root`` (carries ``scheme``), ``prop`` (carries
    ``name``), ``index``, ``name`` or ``id`` (carry ``value``).
    """

    kind: str
    name: Optional[str] = None
    value: Any = None
    scheme: Optional[str] = None

    @classmethod
    def root(cls, scheme: str) -> "PathSegment":
        return cls(kind="root", scheme=scheme)

    @classmethod
    def prop(cls, name: str) -> "PathSegment":
        return cls(kind="prop", name=name)

    @classmethod
    def index(cls, value: int) -> "PathSegment":
        return cls(kind="index", value=value)

    @classmethod
    def by_name(cls, value: str) -> "PathSegment":
        return cls(kind="name", value=value)

    @classmethod
    def by_id(cls, value: Union[str, int]) -> "PathSegment":
        return cls(kind="id", value=value)


class RootMarker:
    """Sentinel returned by ``Delegate.parent()`` at the top of the graph."""

    _instance: Optional["RootMarker"] = None

    def __new__(cls) -> "RootMarker":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ROOT"


ROOT = RootMarker()


def is_root(value: Any) -> bool:
    return value is ROOT
