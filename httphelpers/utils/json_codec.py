"""
httphelpers/utils/json_codec.py

WHAT THIS FILE IS FOR
---------------------
JSON encoding of request bodies and decoding of response bodies.

The dispatcher treats bodies as opaque; this codec is the only place that
knows how Python objects become JSON bytes and back.

- serialize():   pydantic_core.to_json, so pydantic models, dataclasses,
                 datetimes, UUIDs and plain dicts/lists all encode without
                 custom hooks
- deserialize(): pydantic TypeAdapter, so the caller's `result_type` may be
                 a pydantic model, a dataclass, a typed container
                 (e.g. list[Item]) or Any for raw JSON

WHAT THIS FILE IS NOT FOR
-------------------------
- HTTP concerns (headers, status codes)
- Query strings (see query_encoder.py)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional, Type, TypeVar, Union

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from httphelpers.utils.errors import CodecError

T = TypeVar("T")

JSON_MEDIA_TYPE = "application/json"


@lru_cache(maxsize=128)
def _adapter_for(result_type: Any) -> TypeAdapter:
    return TypeAdapter(result_type)


class JsonCodec:
    """Default codec used by both clients."""

    media_type = JSON_MEDIA_TYPE

    def serialize(self, obj: Any) -> bytes:
        try:
            return to_json(obj)
        except PydanticSerializationError as exc:
            raise CodecError(f"Cannot serialize {type(obj).__name__} to JSON: {exc}") from exc

    def deserialize(self, data: Union[bytes, str, None], result_type: Type[T] = Any) -> Optional[T]:  # type: ignore[assignment]
        """
        Decode `data` as `result_type`.

        Empty bodies (e.g. 204 No Content) decode to None regardless of the
        requested type.
        """
        if data is None or not data.strip():
            return None

        try:
            adapter = _adapter_for(result_type)
        except TypeError:
            # unhashable type hints cannot be cached
            adapter = TypeAdapter(result_type)

        try:
            return adapter.validate_json(data)
        except ValidationError as exc:
            name = getattr(result_type, "__name__", str(result_type))
            raise CodecError(f"Response body is not a valid {name}: {exc}") from exc
