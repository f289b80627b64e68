"""
httphelpers/utils/query_encoder.py

WHAT THIS FILE IS FOR
---------------------
This module turns flat query parameters into the query string appended to
GET paths by StandardClient.

Output contract:
- Non-empty result always starts with "?"
- Pairs are joined with "&" in insertion order
- list / tuple values expand to one `key=value` pair per element
    {"id": 3, "tags": ["a", "b"]}  ->  "?id=3&tags=a&tags=b"
- datetime values use the fixed, sortable round-trip format
    2024-03-01T12:30:00.0000000Z        (UTC)
    2024-03-01T12:30:00.0000000+02:00   (other offsets)
    2024-03-01T12:30:00.0000000         (naive)
- None / empty input -> ""

Parameters are given explicitly, either as a mapping, as (key, value)
pairs, or through QueryBuilder. Arbitrary objects are not introspected.

EDGE CASES
----------
- A None value is emitted as `key=`
- Values are percent-encoded; ":" is left literal so dates stay readable

WHAT THIS FILE IS NOT FOR
-------------------------
- Nested objects (the API contract is flat)
- Performing I/O or logging

It is a pure transformation utility.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import quote

_SAFE_CHARS = "-_.~:"

QueryParams = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], "QueryBuilder", None]


def format_round_trip(value: datetime) -> str:
    """
    Render `value` with seven fractional digits and an explicit zone suffix.

    Python only carries microseconds, so the seventh digit is always 0.
    """
    text = value.strftime("%Y-%m-%dT%H:%M:%S") + f".{value.microsecond:06d}0"

    offset = value.utcoffset()
    if offset is None:
        return text
    if offset == timedelta(0):
        return text + "Z"

    sign = "+" if offset > timedelta(0) else "-"
    minutes = int(abs(offset).total_seconds()) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    # datetime before date: datetime is a date subclass
    if isinstance(value, datetime):
        return format_round_trip(value)
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class QueryBuilder:
    """
    Explicit builder for query parameters.

        QueryBuilder().add("id", 3).add("tags", ["a", "b"]).build()
        -> "?id=3&tags=a&tags=b"
    """

    def __init__(self) -> None:
        self._pairs: List[Tuple[str, Any]] = []

    def add(self, key: str, value: Any) -> "QueryBuilder":
        self._pairs.append((key, value))
        return self

    def pairs(self) -> List[Tuple[str, Any]]:
        return list(self._pairs)

    def build(self) -> str:
        return encode_query(self._pairs)


def _expand(params: QueryParams) -> List[Tuple[str, Any]]:
    if isinstance(params, QueryBuilder):
        items: Iterable[Tuple[str, Any]] = params.pairs()
    elif isinstance(params, Mapping):
        items = params.items()
    else:
        items = params or []

    expanded: List[Tuple[str, Any]] = []
    for key, value in items:
        if isinstance(value, (list, tuple)):
            expanded.extend((key, element) for element in value)
        else:
            expanded.append((key, value))
    return expanded


def encode_query(params: QueryParams = None) -> str:
    """
    Encode `params` into a query string starting with "?".

    Returns "" when there is nothing to encode.
    """
    if params is None:
        return ""

    pairs = _expand(params)
    if not pairs:
        return ""

    encoded = "&".join(
        f"{quote(str(key), safe=_SAFE_CHARS)}={quote(_format_value(value), safe=_SAFE_CHARS)}"
        for key, value in pairs
    )
    return "?" + encoded


def append_query(path: str, params: Optional[QueryParams]) -> str:
    """Append the encoded `params` to `path`."""
    return path + encode_query(params)
