"""
httphelpers/clients/fire_and_forget_client.py

WHAT THIS FILE IS FOR
---------------------
This module provides the best-effort REST client used to push mutations
(POST / PUT / PATCH / DELETE) to a downstream service without making the
caller wait for a slow backend.

Every call runs under a fixed 500 ms deadline. That is long enough to get
the request onto the wire and see an immediate rejection, not long enough
to wait for the downstream operation to finish.

TIMEOUT POLICY
--------------
- Deadline expired             -> returns None, no error
- Response with status >= 400  -> ClientError(status, reason)
- Response with status < 400   -> returns None (body is not read)
- No response (DNS, refused)   -> TransportError

Only the deadline is swallowed. A caller that gets no error after a
timeout cannot know whether the remote side processed the request.

WHAT THIS FILE IS NOT FOR
-------------------------
- Reads (use StandardClient.get)
- Anything whose result the caller needs
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from httphelpers.clients.dispatcher import RequestDispatcher, RequestSpec
from httphelpers.utils.json_codec import JsonCodec
from httphelpers.utils.session_context import SessionContext
from httphelpers.utils.settings import Settings

FIRE_AND_FORGET_DEADLINE_SECONDS = 0.5


class FireAndForgetClient:
    """Mutation-only client with a fixed 500 ms deadline that ignores timeouts."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        session_context: Optional[SessionContext] = None,
        codec: Optional[JsonCodec] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._dispatcher = RequestDispatcher(
            base_url,
            timeout=FIRE_AND_FORGET_DEADLINE_SECONDS,
            session_context=session_context,
            codec=codec,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "FireAndForgetClient":
        # fixed deadline; settings.timeout_seconds does not apply here
        return cls(str(settings.base_url), **kwargs)

    @property
    def service_uri(self) -> Optional[str]:
        return self._dispatcher.service_uri

    @service_uri.setter
    def service_uri(self, value: str) -> None:
        self._dispatcher.configure(value)

    @property
    def deadline(self) -> float:
        return FIRE_AND_FORGET_DEADLINE_SECONDS

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._dispatcher

    async def post(self, path: str, body: Any, *, include_session: bool = True) -> None:
        await self._fire(RequestSpec("POST", path, body=body, has_body=True), include_session)

    async def put(self, path: str, body: Any, *, include_session: bool = True) -> None:
        await self._fire(RequestSpec("PUT", path, body=body, has_body=True), include_session)

    async def patch(self, path: str, body: Any, *, include_session: bool = True) -> None:
        await self._fire(RequestSpec("PATCH", path, body=body, has_body=True), include_session)

    async def delete(self, path: str, *, include_session: bool = True) -> None:
        await self._fire(RequestSpec("DELETE", path), include_session)

    async def _fire(self, spec: RequestSpec, include_session: bool) -> None:
        await self._dispatcher.dispatch(
            spec,
            deadline=FIRE_AND_FORGET_DEADLINE_SECONDS,
            include_session=include_session,
            suppress_timeout=True,
        )

    async def aclose(self) -> None:
        await self._dispatcher.aclose()

    async def __aenter__(self) -> "FireAndForgetClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
