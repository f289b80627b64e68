# tests/test_dispatcher.py
from __future__ import annotations

import json
from typing import Any, Callable, List

import anyio
import httpx
import pytest

from httphelpers.clients.dispatcher import GATEWAY_TIMEOUT, RequestDispatcher, RequestSpec
from httphelpers.clients.outcomes import Failure, Success, TimedOut
from httphelpers.utils.errors import ClientClosedError, ClientError, ConfigurationError, TransportError
from httphelpers.utils.session_context import StaticSessionContext

BASE_URL = "https://api.example.com/v1"


@pytest.fixture
def anyio_backend():
    return "asyncio"


class _CountingTransport(httpx.MockTransport):
    """MockTransport that records how many times it was closed."""

    def __init__(self, handler: Callable[[httpx.Request], Any]):
        super().__init__(handler)
        self.close_calls = 0

    async def aclose(self) -> None:
        self.close_calls += 1


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"ok": True})


# ------------------------------------------------------------------ #
# configure
# ------------------------------------------------------------------ #
@pytest.mark.parametrize(
    "raw, expected",
    [
        ("https://api.example.com", "https://api.example.com/"),
        ("https://api.example.com/", "https://api.example.com/"),
        ("https://api.example.com/v1", "https://api.example.com/v1/"),
        ("https://api.example.com/v1/", "https://api.example.com/v1/"),
        ("http://localhost:8080/svc", "http://localhost:8080/svc/"),
    ],
)
def test_configure_normalizes_trailing_slash(raw: str, expected: str) -> None:
    dispatcher = RequestDispatcher(raw)
    assert dispatcher.service_uri == expected
    assert dispatcher.service_uri.endswith("/") and not dispatcher.service_uri.endswith("//")


@pytest.mark.parametrize("bad", ["", "   ", "not a url", "api.example.com/v1", "ftp://files.example.com", None])
def test_configure_rejects_malformed_base_address(bad: Any) -> None:
    dispatcher = RequestDispatcher()
    with pytest.raises(ConfigurationError):
        dispatcher.configure(bad)
    assert dispatcher.service_uri is None


def test_constructor_with_malformed_base_address_raises() -> None:
    with pytest.raises(ConfigurationError):
        RequestDispatcher("::nope::")


def test_timeout_must_be_positive() -> None:
    dispatcher = RequestDispatcher(BASE_URL, timeout=3)
    assert dispatcher.timeout == 3

    with pytest.raises(ConfigurationError):
        dispatcher.timeout = 0


# ------------------------------------------------------------------ #
# with_session
# ------------------------------------------------------------------ #
def test_with_session_sets_both_headers() -> None:
    dispatcher = RequestDispatcher(BASE_URL)
    spec = dispatcher.with_session(RequestSpec("GET", "items"), StaticSessionContext("alice", "tok-1"))
    assert spec.headers == {"Session": "tok-1", "Username": "alice"}


@pytest.mark.parametrize(
    "context",
    [
        None,
        StaticSessionContext(None, None),
        StaticSessionContext("alice", None),
        StaticSessionContext(None, "tok-1"),
        StaticSessionContext("alice", ""),
        StaticSessionContext("   ", "tok-1"),
    ],
)
def test_with_session_blank_identity_leaves_spec_untouched(context: Any) -> None:
    dispatcher = RequestDispatcher(BASE_URL)
    original = RequestSpec("GET", "items", headers={"X-Trace": "1"})

    spec = dispatcher.with_session(original, context)

    assert spec is original
    assert "Session" not in spec.headers
    assert "Username" not in spec.headers


def test_with_session_twice_keeps_only_second_identity() -> None:
    dispatcher = RequestDispatcher(BASE_URL)
    spec = RequestSpec("GET", "items")

    spec = dispatcher.with_session(spec, StaticSessionContext("alice", "tok-1"))
    spec = dispatcher.with_session(spec, StaticSessionContext("bob", "tok-2"))

    assert spec.headers == {"Session": "tok-2", "Username": "bob"}


def test_with_session_replaces_stale_headers_case_insensitively() -> None:
    dispatcher = RequestDispatcher(BASE_URL)
    stale = RequestSpec("GET", "items", headers={"session": "old", "USERNAME": "old", "X-Trace": "1"})

    spec = dispatcher.with_session(stale, StaticSessionContext("bob", "tok-2"))

    assert spec.headers == {"X-Trace": "1", "Session": "tok-2", "Username": "bob"}


# ------------------------------------------------------------------ #
# classify
# ------------------------------------------------------------------ #
def test_classify_none_response_is_noop() -> None:
    assert RequestDispatcher(BASE_URL).classify(None) is None


def test_classify_maps_status_and_reason() -> None:
    dispatcher = RequestDispatcher(BASE_URL)

    assert dispatcher.classify(httpx.Response(200, content=b"{}")) == Success(200, b"{}")
    assert dispatcher.classify(httpx.Response(302)) == Success(302, b"")
    assert dispatcher.classify(httpx.Response(404, content=b"gone")) == Failure(404, "Not Found", b"gone")


# ------------------------------------------------------------------ #
# send
# ------------------------------------------------------------------ #
@pytest.mark.anyio
async def test_send_builds_url_headers_and_json_body() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": 1})

    async with RequestDispatcher(BASE_URL, transport=httpx.MockTransport(handler)) as dispatcher:
        outcome = await dispatcher.send(
            RequestSpec("POST", "items", query="?a=1", body={"name": "x"}, has_body=True)
        )

    assert isinstance(outcome, Success)
    assert outcome.status_code == 201
    assert json.loads(outcome.body) == {"id": 1}
    request = seen[0]
    assert str(request.url) == "https://api.example.com/v1/items?a=1"
    assert request.headers["Accept"] == "application/json"
    assert request.headers["Content-Type"] == "application/json"
    assert request.content == b'{"name":"x"}'


@pytest.mark.anyio
async def test_send_merges_query_into_path_that_already_has_one() -> None:
    seen: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200)

    async with RequestDispatcher(BASE_URL, transport=httpx.MockTransport(handler)) as dispatcher:
        await dispatcher.send(RequestSpec("GET", "items?sort=asc", query="?page=2"))

    assert seen == ["https://api.example.com/v1/items?sort=asc&page=2"]


@pytest.mark.anyio
async def test_send_reports_httpx_timeout_as_timed_out() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with RequestDispatcher(BASE_URL, transport=httpx.MockTransport(handler)) as dispatcher:
        outcome = await dispatcher.send(RequestSpec("GET", "slow"), deadline=1)

    assert outcome == TimedOut("timed out")


@pytest.mark.anyio
async def test_send_enforces_hard_deadline_on_slow_handler() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await anyio.sleep(5)
        return httpx.Response(200)

    async with RequestDispatcher(BASE_URL, transport=httpx.MockTransport(handler)) as dispatcher:
        with anyio.fail_after(3):
            outcome = await dispatcher.send(RequestSpec("GET", "slow"), deadline=0.05)

    assert isinstance(outcome, TimedOut)
    assert outcome.message


@pytest.mark.anyio
async def test_send_raises_transport_error_for_connection_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    async with RequestDispatcher(BASE_URL, transport=httpx.MockTransport(handler)) as dispatcher:
        with pytest.raises(TransportError) as exc_info:
            await dispatcher.send(RequestSpec("GET", "items"))

    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.anyio
async def test_send_on_closed_dispatcher_raises() -> None:
    dispatcher = RequestDispatcher(BASE_URL, transport=httpx.MockTransport(_ok))
    await dispatcher.aclose()

    with pytest.raises(ClientClosedError):
        await dispatcher.send(RequestSpec("GET", "items"))


# ------------------------------------------------------------------ #
# dispatch / resolve
# ------------------------------------------------------------------ #
@pytest.mark.anyio
async def test_dispatch_stamps_session_only_when_requested() -> None:
    seen: List[httpx.Headers] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers)
        return httpx.Response(200)

    dispatcher = RequestDispatcher(
        BASE_URL,
        session_context=StaticSessionContext("alice", "tok-1"),
        transport=httpx.MockTransport(handler),
    )
    async with dispatcher:
        await dispatcher.dispatch(RequestSpec("GET", "a"))
        await dispatcher.dispatch(RequestSpec("GET", "b"), include_session=False)

    assert seen[0]["Username"] == "alice"
    assert seen[0]["Session"] == "tok-1"
    assert "Username" not in seen[1]
    assert "Session" not in seen[1]


@pytest.mark.anyio
async def test_dispatch_does_not_leak_session_headers_between_calls() -> None:
    seen: List[httpx.Headers] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers)
        return httpx.Response(200)

    dispatcher = RequestDispatcher(
        BASE_URL,
        session_context=StaticSessionContext("alice", "tok-1"),
        transport=httpx.MockTransport(handler),
    )
    async with dispatcher:
        await dispatcher.dispatch(RequestSpec("GET", "a"))
        dispatcher.session_context = StaticSessionContext("alice", None)  # logged out
        await dispatcher.dispatch(RequestSpec("GET", "b"))

    assert seen[0]["Session"] == "tok-1"
    assert "Session" not in seen[1]
    assert "Username" not in seen[1]


def test_resolve_policy() -> None:
    success = Success(200, b"{}")
    assert RequestDispatcher.resolve(success) is success
    assert RequestDispatcher.resolve(None) is None
    assert RequestDispatcher.resolve(TimedOut("slow"), suppress_timeout=True) is None

    with pytest.raises(ClientError) as timeout_err:
        RequestDispatcher.resolve(TimedOut("slow"))
    assert timeout_err.value.status_code == GATEWAY_TIMEOUT == 504
    assert timeout_err.value.reason == "slow"

    with pytest.raises(ClientError) as failure_err:
        RequestDispatcher.resolve(Failure(409, "Conflict", b"dup"), suppress_timeout=True)
    assert failure_err.value.status_code == 409
    assert failure_err.value.body == b"dup"


# ------------------------------------------------------------------ #
# lifetime
# ------------------------------------------------------------------ #
@pytest.mark.anyio
async def test_aclose_releases_transport_exactly_once() -> None:
    transport = _CountingTransport(_ok)
    dispatcher = RequestDispatcher(BASE_URL, transport=transport)

    await dispatcher.aclose()
    await dispatcher.aclose()

    assert dispatcher.closed
    assert transport.close_calls == 1


@pytest.mark.anyio
async def test_context_manager_releases_transport_on_error() -> None:
    transport = _CountingTransport(_ok)

    with pytest.raises(RuntimeError):
        async with RequestDispatcher(BASE_URL, transport=transport):
            raise RuntimeError("boom")

    assert transport.close_calls == 1
