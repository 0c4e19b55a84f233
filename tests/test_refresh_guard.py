# tests/test_refresh_guard.py
import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from kuchbhi_mcp.guard import GuardState, MissingAccessTokenError, TokenRefreshGuard
from kuchbhi_mcp.oauth.models import UpstreamError, UpstreamTokenResult

from conftest import TOKEN_URL, make_exchanger, make_session

API_URL = "https://docs.googleapis.test/v1/documents/doc-1"


def _builder(access_token: str) -> httpx.Request:
    return httpx.Request("GET", API_URL, headers={"Authorization": f"Bearer {access_token}"})


def _guard(recording_transport) -> TokenRefreshGuard:
    exchanger = make_exchanger(recording_transport.transport)
    return TokenRefreshGuard(exchanger=exchanger, transport=recording_transport.transport)


@pytest.mark.asyncio
async def test_success_issues_exactly_one_request(recording_transport):
    recording_transport.add("GET", API_URL, (200, {"documentId": "doc-1"}))
    session = make_session()

    outcome = await _guard(recording_transport).guarded_call(_builder, session)

    assert outcome.final_state is GuardState.DONE
    assert outcome.response.status_code == 200
    assert not outcome.refresh_attempted
    assert len(recording_transport.requests) == 1
    assert recording_transport.requests[0].headers["Authorization"] == "Bearer ya29.initial"


@pytest.mark.asyncio
async def test_missing_access_token_makes_no_request(recording_transport):
    session = make_session(access_token="")

    with pytest.raises(MissingAccessTokenError):
        await _guard(recording_transport).guarded_call(_builder, session)

    assert recording_transport.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [404, 500])
async def test_non_auth_failure_is_not_refreshed(recording_transport, status_code):
    recording_transport.add("GET", API_URL, (status_code, "upstream says no"))
    session = make_session()

    outcome = await _guard(recording_transport).guarded_call(_builder, session)

    assert outcome.final_state is GuardState.DONE
    assert outcome.response.text == "upstream says no"
    assert recording_transport.count(TOKEN_URL) == 0
    assert len(recording_transport.requests) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403])
async def test_auth_failure_refreshes_once_and_retries_with_new_token(recording_transport, status_code):
    recording_transport.add("GET", API_URL, (status_code, "expired"), (200, {"ok": True}))
    recording_transport.add("POST", TOKEN_URL, (200, {"access_token": "ya29.fresh", "expires_in": 3599}))
    session = make_session()

    outcome = await _guard(recording_transport).guarded_call(_builder, session)

    assert outcome.final_state is GuardState.DONE
    assert outcome.refresh_attempted and outcome.retried
    assert not outcome.reauthorization_required
    assert outcome.response.status_code == 200
    assert recording_transport.count(TOKEN_URL) == 1
    assert recording_transport.count(API_URL) == 2
    api_requests = [r for r in recording_transport.requests if str(r.url).startswith(API_URL)]
    assert api_requests[1].headers["Authorization"] == "Bearer ya29.fresh"
    # Only the access token changes; the refresh token stays
    assert session.credential.access_token == "ya29.fresh"
    assert session.credential.refresh_token == "1//refresh"

    refresh_form = recording_transport.requests[1].content.decode("utf-8")
    assert "grant_type=refresh_token" in refresh_form
    assert "refresh_token=1%2F%2Frefresh" in refresh_form


@pytest.mark.asyncio
async def test_auth_failure_without_refresh_token_needs_reauthorization(recording_transport):
    recording_transport.add("GET", API_URL, (401, "invalid credentials"))
    session = make_session(refresh_token=None)

    outcome = await _guard(recording_transport).guarded_call(_builder, session)

    assert outcome.final_state is GuardState.DONE_WITH_ERROR
    assert outcome.reauthorization_required
    assert not outcome.refresh_attempted
    assert outcome.response.text == "invalid credentials"
    assert recording_transport.count(TOKEN_URL) == 0


@pytest.mark.asyncio
async def test_failed_refresh_returns_original_failure(recording_transport):
    recording_transport.add("GET", API_URL, (401, "token expired"))
    recording_transport.add("POST", TOKEN_URL, (400, '{"error": "invalid_grant"}'))
    session = make_session()

    outcome = await _guard(recording_transport).guarded_call(_builder, session)

    assert outcome.final_state is GuardState.DONE_WITH_ERROR
    assert outcome.refresh_attempted and not outcome.retried
    assert outcome.reauthorization_required
    assert outcome.response.text == "token expired"
    assert isinstance(outcome.refresh_error, UpstreamError)
    assert outcome.refresh_error.status_code == 400
    assert session.credential.access_token == "ya29.initial"
    assert recording_transport.count(API_URL) == 1


@pytest.mark.asyncio
async def test_retry_rejected_again_stops_after_second_attempt(recording_transport):
    recording_transport.add("GET", API_URL, (401, "first rejection"), (401, "second rejection"))
    recording_transport.add("POST", TOKEN_URL, (200, {"access_token": "ya29.fresh"}))
    session = make_session()

    outcome = await _guard(recording_transport).guarded_call(_builder, session)

    assert outcome.final_state is GuardState.DONE
    assert outcome.reauthorization_required
    assert outcome.response.text == "second rejection"
    assert recording_transport.count(API_URL) == 2
    assert recording_transport.count(TOKEN_URL) == 1


@pytest.mark.asyncio
async def test_transport_error_propagates(recording_transport):
    def raise_connect_error(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    transport = httpx.MockTransport(raise_connect_error)
    guard = TokenRefreshGuard(exchanger=make_exchanger(transport), transport=transport)

    with pytest.raises(httpx.ConnectError):
        await guard.guarded_call(_builder, make_session())


@pytest.mark.asyncio
async def test_concurrent_calls_in_one_session_refresh_once():
    calls = {"api": 0, "token": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url).startswith(TOKEN_URL):
            calls["token"] += 1
            return httpx.Response(200, json={"access_token": "ya29.fresh"})
        calls["api"] += 1
        if request.headers["Authorization"] == "Bearer ya29.fresh":
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(401, text="expired")

    transport = httpx.MockTransport(handler)
    guard = TokenRefreshGuard(exchanger=make_exchanger(transport), transport=transport)
    session = make_session()

    outcomes = await asyncio.gather(
        guard.guarded_call(_builder, session),
        guard.guarded_call(_builder, session),
    )

    assert all(outcome.is_success for outcome in outcomes)
    assert calls["token"] == 1
    assert calls["api"] == 3


@pytest.mark.asyncio
async def test_exchanger_is_called_with_refresh_grant(recording_transport):
    recording_transport.add("GET", API_URL, (403, "forbidden"), (200, "{}"))
    exchanger = make_exchanger(recording_transport.transport)
    exchanger.exchange = AsyncMock(return_value=UpstreamTokenResult(access_token="ya29.mocked"))
    guard = TokenRefreshGuard(exchanger=exchanger, transport=recording_transport.transport)

    outcome = await guard.guarded_call(_builder, make_session())

    assert outcome.is_success
    exchanger.exchange.assert_awaited_once_with("refresh_token", "1//refresh")


@pytest.mark.asyncio
async def test_refresh_with_empty_access_token_is_a_failed_refresh(recording_transport):
    recording_transport.add("GET", API_URL, (401, "token expired"))
    recording_transport.add("POST", TOKEN_URL, (200, {"access_token": ""}))
    session = make_session()

    outcome = await _guard(recording_transport).guarded_call(_builder, session)

    assert outcome.final_state is GuardState.DONE_WITH_ERROR
    assert outcome.reauthorization_required and not outcome.retried
    assert outcome.response.text == "token expired"
    assert session.credential.access_token == "ya29.initial"
    assert recording_transport.count(API_URL) == 1
    assert [r.headers.get("Authorization") for r in recording_transport.requests if r.method == "GET"] == [
        "Bearer ya29.initial"
    ]


@pytest.mark.asyncio
async def test_guard_rejects_empty_token_even_from_a_lenient_exchanger(recording_transport):
    recording_transport.add("GET", API_URL, (403, "forbidden"))
    exchanger = make_exchanger(recording_transport.transport)
    exchanger.exchange = AsyncMock(return_value=UpstreamTokenResult.model_construct(access_token=""))
    guard = TokenRefreshGuard(exchanger=exchanger, transport=recording_transport.transport)
    session = make_session()

    outcome = await guard.guarded_call(_builder, session)

    assert outcome.final_state is GuardState.DONE_WITH_ERROR
    assert outcome.reauthorization_required
    assert outcome.refresh_error is None
    assert session.credential.access_token == "ya29.initial"
    assert recording_transport.count(API_URL) == 1
