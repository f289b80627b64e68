"""
httphelpers/clients/standard_client.py

WHAT THIS FILE IS FOR
---------------------
This module provides the blocking-style REST client: every verb awaits the
full response, decodes success bodies and raises on anything else.

ERROR HANDLING RULES
--------------------
- HTTP status >= 400         -> ClientError(status, reason)
- Deadline expired           -> ClientError(504, <timeout message>)
- No response (DNS, refused) -> TransportError
- Undecodable success body   -> CodecError

Nothing is swallowed and nothing is retried: one send attempt, one outcome.

SESSION HEADERS
---------------
Every verb stamps `Username` / `Session` from the client's SessionContext
unless the caller passes `include_session=False` (e.g. anonymous health
checks).

USAGE
-----
    async with StandardClient("https://api.example.com/v1", session_context=ctx) as api:
        item = await api.get("items/1", result_type=Item)
        created = await api.post("items", new_item, result_type=Item)
        await api.delete("items/1")
"""

from __future__ import annotations

from typing import Any, Optional, Type, TypeVar

import httpx

from httphelpers.clients.dispatcher import RequestDispatcher, RequestSpec
from httphelpers.clients.outcomes import Success
from httphelpers.utils.json_codec import JsonCodec
from httphelpers.utils.query_encoder import QueryParams, encode_query
from httphelpers.utils.session_context import SessionContext
from httphelpers.utils.settings import DEFAULT_TIMEOUT_SECONDS, Settings

T = TypeVar("T")


class StandardClient:
    """
    REST client that waits for, and decodes, every response.

    `timeout` is the default per-call deadline in seconds; each verb also
    accepts a `timeout=` override for that call only.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        session_context: Optional[SessionContext] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
        codec: Optional[JsonCodec] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._dispatcher = RequestDispatcher(
            base_url,
            timeout=timeout,
            session_context=session_context,
            codec=codec,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "StandardClient":
        return cls(str(settings.base_url), timeout=settings.timeout_seconds, **kwargs)

    @property
    def service_uri(self) -> Optional[str]:
        return self._dispatcher.service_uri

    @service_uri.setter
    def service_uri(self, value: str) -> None:
        self._dispatcher.configure(value)

    @property
    def timeout(self) -> Optional[float]:
        return self._dispatcher.timeout

    @timeout.setter
    def timeout(self, value: Optional[float]) -> None:
        self._dispatcher.timeout = value

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._dispatcher

    # ------------------------------------------------------------------ #
    # Verbs
    # ------------------------------------------------------------------ #
    async def get(
        self,
        path: str,
        params: QueryParams = None,
        *,
        result_type: Type[T] = Any,  # type: ignore[assignment]
        include_session: bool = True,
        timeout: Optional[float] = None,
    ) -> T:
        """
        GET `path` and decode the body as `result_type`.

        Args:
            path:
                Relative to the base address, e.g. "items/1".
            params:
                Optional query parameters (mapping, pairs or QueryBuilder).
                List values expand to repeated keys.
            result_type:
                Anything pydantic can validate into (model, dataclass,
                list[Model], dict, ...). Defaults to raw JSON.
            include_session:
                Send the Username / Session headers.
            timeout:
                Deadline override for this call only.

        Raises:
            ClientError, TransportError, CodecError
        """
        spec = RequestSpec("GET", path, query=encode_query(params))
        success = await self._execute(spec, include_session, timeout)
        return self._decode(success, result_type)

    async def post(
        self,
        path: str,
        body: Any,
        *,
        result_type: Type[T] = Any,  # type: ignore[assignment]
        include_session: bool = True,
        timeout: Optional[float] = None,
    ) -> T:
        """POST `body` as JSON and decode the created resource."""
        spec = RequestSpec("POST", path, body=body, has_body=True)
        success = await self._execute(spec, include_session, timeout)
        return self._decode(success, result_type)

    async def put(
        self,
        path: str,
        body: Any,
        *,
        result_type: Type[T] = Any,  # type: ignore[assignment]
        include_session: bool = True,
        timeout: Optional[float] = None,
    ) -> T:
        """PUT `body` as JSON and decode the updated resource."""
        spec = RequestSpec("PUT", path, body=body, has_body=True)
        success = await self._execute(spec, include_session, timeout)
        return self._decode(success, result_type)

    async def put_no_result(
        self,
        path: str,
        body: Any,
        *,
        include_session: bool = True,
        timeout: Optional[float] = None,
    ) -> None:
        """PUT `body` as JSON; the response body is not read."""
        spec = RequestSpec("PUT", path, body=body, has_body=True)
        await self._execute(spec, include_session, timeout)

    async def patch(
        self,
        path: str,
        body: Any,
        *,
        include_session: bool = True,
        timeout: Optional[float] = None,
    ) -> None:
        spec = RequestSpec("PATCH", path, body=body, has_body=True)
        await self._execute(spec, include_session, timeout)

    async def delete(
        self,
        path: str,
        *,
        include_session: bool = True,
        timeout: Optional[float] = None,
    ) -> None:
        spec = RequestSpec("DELETE", path)
        await self._execute(spec, include_session, timeout)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    async def _execute(
        self,
        spec: RequestSpec,
        include_session: bool,
        timeout: Optional[float],
    ) -> Optional[Success]:
        return await self._dispatcher.dispatch(
            spec,
            deadline=timeout,
            include_session=include_session,
            suppress_timeout=False,
        )

    def _decode(self, success: Optional[Success], result_type: Any) -> Any:
        if success is None:
            return None
        return self._dispatcher.codec.deserialize(success.body, result_type)

    # ------------------------------------------------------------------ #
    # Lifetime
    # ------------------------------------------------------------------ #
    async def aclose(self) -> None:
        await self._dispatcher.aclose()

    async def __aenter__(self) -> "StandardClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
