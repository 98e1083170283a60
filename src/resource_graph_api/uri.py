"""URI model, lexer and canonical URI builders.

The lexer is purely structural: it knows nothing about schemas. It splits a
resource URI into a scheme and an ordered list of segments, each optionally
carrying one qualifier.

Grammar::

        scheme://seg1[/seg2...]
        seg      := head [ "[" n "]" | "%5B" n "%5D" ] [ "?" query ]
        query    := param ("&" param)*
        param    := field "=" value            (implicit equals)
                  | field "." op "=" value     (op: contains, startsWith, gt, lt)
                  | "sort=" field ["." ("asc" | "desc")]
                  | "limit=" n | "offset=" n
                  | "expand=" f1 ["," f2 ...]

A bare integer path component directly after a segment that has no
qualifier yet is folded into that segment as an ``id`` qualifier
(``notes://folders/42`` addresses the folder whose id is 42).

Example::

        from resource_graph_api.uri import lex_uri

        result = lex_uri("notes://folders%5B0%5D/notes?sort=title.desc&limit=5")
        folders, notes = result.value.segments
        assert folders.qualifier.value == 0
        assert notes.qualifier.limit == 5

The builders at the bottom of the module produce canonical URIs from a
delegate's accumulated :class:`~resource_graph_api.models.PathSegment` list
and :class:`~resource_graph_api.query.QueryState`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple, Union
from urllib.parse import quote, unquote

from .models import PathSegment, Result
from .query import FILTER_OPERATORS, QueryState

_INTEGER = re.compile(r"^-?\d+$")


class _LexError(ValueError):
    """Internal signal for malformed query parameters."""


# ---------------- Parsed URI model ---------------- #


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: str


@dataclass(frozen=True)
class SortClause:
    field: str
    direction: str = "asc"


@dataclass(frozen=True)
class IndexQualifier:
    value: int
    kind: str = "index"


@dataclass(frozen=True)
class IdQualifier:
    value: Union[int, str]
    kind: str = "id"


@dataclass(frozen=True)
class QueryQualifier:
    filters: Tuple[Filter, ...] = ()
    sort: Optional[SortClause] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    expand: Tuple[str, ...] = ()
    kind: str = "query"


Qualifier = Union[IndexQualifier, IdQualifier, QueryQualifier]


@dataclass(frozen=True)
class Segment:
    head: str
    qualifier: Optional[Qualifier] = None


@dataclass(frozen=True)
class ParsedURI:
    scheme: str
    segments: Tuple[Segment, ...] = ()


# ---------------- Lexer ---------------- #


def is_integer(text: str) -> bool:
    return bool(_INTEGER.match(text))


def _parse_count(name: str, value: str) -> int:
    if not is_integer(value):
        raise _LexError(f"Invalid URI: {name} must be an integer, got {value!r}")
    count = int(value)
    if count < 0:
        raise _LexError(f"Invalid URI: {name} must not be negative, got {value!r}")
    return count


def parse_query_qualifier(query: str) -> QueryQualifier:
    """Parse the text after ``?`` into a :class:`QueryQualifier`.

    Parameters without ``=`` are ignored. An unknown ``field.op`` suffix is
    treated as part of the field name with an implicit ``equals``.

    Raises:
        _LexError: If ``limit`` or ``offset`` is not a non-negative integer.
    """
    filters: List[Filter] = []
    sort: Optional[SortClause] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    expand: Tuple[str, ...] = ()

    for part in query.split("&"):
        if not part or "=" not in part:
            continue
        key, raw_value = part.split("=", 1)
        key = unquote(key)
        value = unquote(raw_value)

        if key == "sort":
            field_name, _, direction = value.rpartition(".")
            if field_name and direction in ("asc", "desc"):
                sort = SortClause(field_name, direction)
            else:
                sort = SortClause(value, "asc")
        elif key == "limit":
            limit = _parse_count("limit", value)
        elif key == "offset":
            offset = _parse_count("offset", value)
        elif key == "expand":
            expand = tuple(name.strip() for name in value.split(",") if name.strip())
        else:
            field_name, _, op = key.rpartition(".")
            if field_name and op in FILTER_OPERATORS:
                filters.append(Filter(field_name, op, value))
            else:
                filters.append(Filter(key, "equals", value))

    return QueryQualifier(
        filters=tuple(filters), sort=sort, limit=limit, offset=offset, expand=expand
    )


def _starts_with_ci(text: str, pos: int, token: str) -> bool:
    return text[pos : pos + len(token)].upper() == token


def _find_ci(text: str, token: str, start: int) -> int:
    return text.upper().find(token, start)


def _head_end(path: str, pos: int) -> int:
    """Return the index where the segment head starting at ``pos`` ends."""
    i = pos
    while i < len(path):
        ch = path[i]
        if ch in "/[?":
            return i
        if ch == "%" and (_starts_with_ci(path, i, "%5B") or _starts_with_ci(path, i, "%3F")):
            return i
        i += 1
    return i


def parse_segments(path: str) -> List[Segment]:
    """Split the path portion of a URI into qualified segments."""
    segments: List[Segment] = []
    pos = 0
    length = len(path)

    while pos < length:
        if path[pos] == "/":
            pos += 1
            continue

        end = _head_end(path, pos)
        head = unquote(path[pos:end])
        pos = end

        if segments and is_integer(head) and segments[-1].qualifier is None:
            segments[-1] = replace(segments[-1], qualifier=IdQualifier(int(head)))
            continue

        qualifier: Optional[Qualifier] = None

        if pos < length and (path[pos] == "[" or _starts_with_ci(path, pos, "%5B")):
            encoded = path[pos] != "["
            open_len = 3 if encoded else 1
            close_token = "%5D" if encoded else "]"
            close = _find_ci(path, close_token, pos + open_len)
            if close == -1:
                # Unterminated bracket: keep it as part of the head.
                end = _head_end(path, pos + open_len)
                head += unquote(path[pos:end])
                pos = end
            else:
                inner = unquote(path[pos + open_len : close])
                if is_integer(inner):
                    qualifier = IndexQualifier(int(inner))
                else:
                    head += f"[{inner}]"
                pos = close + len(close_token)

        if pos < length and (path[pos] == "?" or _starts_with_ci(path, pos, "%3F")):
            start = pos + (1 if path[pos] == "?" else 3)
            query_end = path.find("/", start)
            if query_end == -1:
                query_end = length
            qualifier = parse_query_qualifier(path[start:query_end])
            pos = query_end

        segments.append(Segment(head, qualifier))

    return segments


def lex_uri(uri: str) -> Result[ParsedURI]:
    """Lex ``uri`` into a :class:`ParsedURI`.

    Returns:
        Result[ParsedURI]: Failure for a missing or empty scheme or a
        malformed numeric query parameter.
    """
    scheme, sep, path = uri.partition("://")
    if not sep:
        return Result.failure("Invalid URI: missing scheme (expected scheme://...)")
    if not scheme:
        return Result.failure("Invalid URI: empty scheme")
    try:
        segments = parse_segments(path)
    except _LexError as e:
        return Result.failure(str(e))
    return Result.success(ParsedURI(scheme=scheme, segments=tuple(segments)))


# ---------------- Builders ---------------- #


def build_uri_string(path: Sequence[PathSegment]) -> str:
    """Render an address path as a canonical URI (without query string)."""
    uri = ""
    for seg in path:
        if seg.kind == "root":
            uri = f"{seg.scheme}://"
        elif seg.kind == "prop":
            uri += ("" if uri.endswith("://") else "/") + quote(seg.name, safe="")
        elif seg.kind == "index":
            uri += f"%5B{seg.value}%5D"
        elif seg.kind in ("name", "id"):
            uri += ("" if uri.endswith("://") else "/") + quote(str(seg.value), safe="")
    return uri


def build_query_string(state: QueryState) -> str:
    """Serialize query state in canonical parameter order."""
    parts: List[str] = []

    for name, predicate in state.filter.items():
        op = predicate.operator
        value = op.to_uri(predicate.value)
        if op.name == "equals":
            parts.append(f"{name}={value}")
        else:
            parts.append(f"{name}.{op.name}={value}")

    if state.sort is not None:
        parts.append(f"sort={state.sort.by}.{state.sort.direction}")

    if state.pagination is not None:
        if state.pagination.limit is not None:
            parts.append(f"limit={state.pagination.limit}")
        if state.pagination.offset is not None:
            parts.append(f"offset={state.pagination.offset}")

    if state.expand:
        parts.append(f"expand={','.join(state.expand)}")

    return "&".join(parts)


def build_uri(path: Sequence[PathSegment], state: Optional[QueryState] = None) -> str:
    base = build_uri_string(path)
    query = build_query_string(state) if state is not None else ""
    return f"{base}?{query}" if query else base
