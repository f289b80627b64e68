"""
httphelpers/clients/dispatcher.py

WHAT THIS FILE IS FOR
---------------------
This module provides the shared request-dispatch routine used by both
client variants (StandardClient, FireAndForgetClient).

It is the single choke point for:
- Owning the underlying httpx.AsyncClient (base address, default headers,
  default timeout) and releasing it exactly once
- Building each outgoing request from a RequestSpec
- Stamping the `Username` / `Session` headers per request
- Sending under a hard per-call deadline
- Classifying the response into Success / Failure / TimedOut
- Applying the caller-selected propagation policy (`suppress_timeout`)

CALL FLOW
---------
StandardClient / FireAndForgetClient
  → RequestDispatcher.dispatch(spec, deadline=..., suppress_timeout=...)
      → with_session()   (optional)
      → send()           → ResponseOutcome
      → resolve()        → Success | None, or raises ClientError

TIMEOUT vs TRANSPORT FAILURE
----------------------------
- Deadline expiry (httpx timeout or the anyio deadline scope)
    → TimedOut outcome, never an exception from send()
- Any other transport failure (connection refused, DNS, protocol error)
    → TransportError raised from send()
- A response with status >= 400
    → Failure outcome

SESSION HEADERS
---------------
Session headers are placed on the individual request, never on the shared
client's default headers. Every request starts from a fresh header set, so
identity from one call cannot leak into the next and concurrent calls on
one instance need no lock.

WHAT THIS FILE IS NOT FOR
-------------------------
This module is NOT responsible for:
- Deserializing response bodies (StandardClient does that)
- Retries, backoff, circuit breaking (none exist anywhere)
- Obtaining credentials (SessionContext does that)
- Logging request/response bodies
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from http import HTTPStatus
from typing import Any, Dict, Optional

import anyio
import httpx
import structlog
from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from httphelpers.clients.outcomes import Failure, ResponseOutcome, Success, TimedOut, classify_status
from httphelpers.utils.errors import ClientClosedError, ClientError, ConfigurationError, TransportError
from httphelpers.utils.json_codec import JSON_MEDIA_TYPE, JsonCodec
from httphelpers.utils.session_context import (
    SESSION_HEADER,
    USERNAME_HEADER,
    SessionContext,
    resolve_session_headers,
)
from httphelpers.utils.settings import DEFAULT_TIMEOUT_SECONDS

logger = structlog.get_logger(__name__)

GATEWAY_TIMEOUT = int(HTTPStatus.GATEWAY_TIMEOUT)

_BASE_URL_ADAPTER = TypeAdapter(AnyHttpUrl)
_SESSION_HEADER_NAMES = {SESSION_HEADER.lower(), USERNAME_HEADER.lower()}


@dataclass(frozen=True)
class RequestSpec:
    """
    One outgoing request.

    `path` is relative to the base address (a leading "/" is ignored) or an
    absolute URL. `query` is an already-encoded query string ("" or "?...").
    `body` is opaque here and only serialized when `has_body` is set, so a
    literal None body can still be sent as JSON null.
    """

    method: str
    path: str
    query: str = ""
    body: Any = None
    has_body: bool = False
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def url(self) -> str:
        if not self.query:
            return self.path
        if "?" in self.path:
            return self.path + "&" + self.query.lstrip("?")
        return self.path + self.query


class RequestDispatcher:
    """
    Shared transport + dispatch routine, composed into each client variant.

    The dispatcher owns its httpx.AsyncClient. Close it with `aclose()` or
    use it as an async context manager.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
        session_context: Optional[SessionContext] = None,
        codec: Optional[JsonCodec] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.session_context = session_context
        self._codec = codec or JsonCodec()
        self.timeout = timeout
        self._service_uri: Optional[str] = None
        self._closed = False

        self._client = httpx.AsyncClient(
            headers={"Accept": JSON_MEDIA_TYPE},
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

        if base_url is not None:
            self.configure(base_url)

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #
    @property
    def service_uri(self) -> Optional[str]:
        return self._service_uri

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    @timeout.setter
    def timeout(self, value: Optional[float]) -> None:
        if value is not None and value <= 0:
            raise ConfigurationError(f"Timeout must be positive, got {value!r}")
        self._timeout = value

    @property
    def codec(self) -> JsonCodec:
        return self._codec

    @property
    def closed(self) -> bool:
        return self._closed

    def configure(self, base_url: str) -> str:
        """
        Validate and store the base address.

        The stored value always ends with exactly one "/" so relative paths
        concatenate predictably. Returns the normalized address.
        """
        if not isinstance(base_url, str) or not base_url.strip():
            raise ConfigurationError(f"Base address must be a non-empty URL, got {base_url!r}")

        base_url = base_url.strip()
        try:
            _BASE_URL_ADAPTER.validate_python(base_url)
        except ValidationError as exc:
            raise ConfigurationError(f"Base address is not a well-formed URL: {base_url!r}") from exc

        normalized = base_url if base_url.endswith("/") else base_url + "/"
        self._client.base_url = normalized
        self._service_uri = normalized

        logger.info("base_address_configured", service_uri=normalized)
        return normalized

    # ------------------------------------------------------------------ #
    # Headers
    # ------------------------------------------------------------------ #
    def with_session(self, spec: RequestSpec, session_context: Optional[SessionContext]) -> RequestSpec:
        """
        Return `spec` carrying fresh `Username` / `Session` headers.

        When the context is missing or yields a blank value the spec is
        returned untouched. Otherwise any existing session headers on the
        spec are dropped before the new pair is set.
        """
        identity = resolve_session_headers(session_context)
        if identity is None:
            return spec

        headers = {
            name: value
            for name, value in spec.headers.items()
            if name.lower() not in _SESSION_HEADER_NAMES
        }
        headers.update(identity.as_headers())
        return replace(spec, headers=headers)

    # ------------------------------------------------------------------ #
    # Send + classify
    # ------------------------------------------------------------------ #
    def build_request(self, spec: RequestSpec, deadline: Optional[float]) -> httpx.Request:
        headers = dict(spec.headers)
        content: Optional[bytes] = None

        if spec.has_body:
            content = self._codec.serialize(spec.body)
            headers.setdefault("Content-Type", self._codec.media_type)

        return self._client.build_request(
            spec.method,
            spec.url,
            content=content,
            headers=headers,
            timeout=deadline,
        )

    async def send(self, spec: RequestSpec, deadline: Optional[float] = None) -> Optional[ResponseOutcome]:
        """
        Send `spec` and classify the result.

        `deadline` (seconds) bounds the whole call, connection included;
        None falls back to the dispatcher's timeout.

        Raises:
            ClientClosedError: the dispatcher was closed
            TransportError: no response, for a reason other than the deadline
        """
        if self._closed:
            raise ClientClosedError("Cannot send a request on a closed client")

        if deadline is None:
            deadline = self._timeout

        request = self.build_request(spec, deadline)
        log = logger.bind(method=request.method, url=str(request.url), deadline_seconds=deadline)
        log.debug("request_dispatched")

        try:
            with anyio.fail_after(deadline):
                response = await self._client.send(request)
        except (httpx.TimeoutException, TimeoutError) as exc:
            message = str(exc) or f"The request was canceled after {deadline} seconds."
            log.warning("request_timed_out", error=message)
            return TimedOut(message=message)
        except httpx.TransportError as exc:
            log.warning("request_transport_error", error=str(exc), error_type=type(exc).__name__)
            raise TransportError(f"{request.method} {request.url} failed: {exc}") from exc

        outcome = self.classify(response)
        if isinstance(outcome, Failure):
            log.warning("request_failed_status", status_code=outcome.status_code, reason=outcome.reason)
        return outcome

    def classify(self, response: Optional[httpx.Response]) -> Optional[ResponseOutcome]:
        """Map a response to Success / Failure. No response -> None."""
        if response is None:
            return None

        return classify_status(
            status_code=response.status_code,
            reason=response.reason_phrase,
            body=response.content,
        )

    # ------------------------------------------------------------------ #
    # Shared dispatch routine
    # ------------------------------------------------------------------ #
    async def dispatch(
        self,
        spec: RequestSpec,
        *,
        deadline: Optional[float] = None,
        include_session: bool = True,
        suppress_timeout: bool = False,
    ) -> Optional[Success]:
        """
        Send `spec` and apply the propagation policy.

        - Failure               -> ClientError(status, reason)
        - TimedOut              -> None if `suppress_timeout`, else ClientError(504, message)
        - no response / Success -> returned as-is
        """
        if include_session:
            spec = self.with_session(spec, self.session_context)

        outcome = await self.send(spec, deadline)
        return self.resolve(outcome, suppress_timeout=suppress_timeout, path=spec.path)

    @staticmethod
    def resolve(
        outcome: Optional[ResponseOutcome],
        *,
        suppress_timeout: bool = False,
        path: Optional[str] = None,
    ) -> Optional[Success]:
        if outcome is None:
            return None

        if isinstance(outcome, Failure):
            raise ClientError(outcome.status_code, outcome.reason, outcome.body)

        if isinstance(outcome, TimedOut):
            if suppress_timeout:
                logger.info("timeout_suppressed", path=path, message=outcome.message)
                return None
            raise ClientError(GATEWAY_TIMEOUT, outcome.message)

        return outcome

    # ------------------------------------------------------------------ #
    # Lifetime
    # ------------------------------------------------------------------ #
    async def aclose(self) -> None:
        """Release the transport. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()
        logger.debug("dispatcher_closed", service_uri=self._service_uri)

    async def __aenter__(self) -> "RequestDispatcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
