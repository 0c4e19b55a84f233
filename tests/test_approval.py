# tests/test_approval.py
import pytest
from starlette.requests import Request

from kuchbhi_mcp.front_door.approval import (
    APPROVED_CLIENTS_COOKIE,
    ApprovalDialog,
    InvalidApprovalError,
)
from kuchbhi_mcp.oauth.models import AuthRequest, OAuthClient
from kuchbhi_mcp.utils.security import generate_fernet_key


def _request(cookie: str = "") -> Request:
    headers = [(b"cookie", cookie.encode("latin-1"))] if cookie else []
    return Request({"type": "http", "method": "GET", "path": "/authorize", "headers": headers, "query_string": b""})


def _auth_request(client_id: str = "client-1") -> AuthRequest:
    return AuthRequest(
        response_type="code",
        client_id=client_id,
        redirect_uri="http://localhost:6274/oauth/callback",
        state="s",
    )


def _cookie_from(set_cookie: str) -> str:
    return set_cookie.split(";", 1)[0]


def test_approval_cookie_round_trip():
    dialog = ApprovalDialog(generate_fernet_key())

    auth_request, set_cookie = dialog.parse_redirect_approval({"state": _auth_request().to_state()}, _request())

    assert auth_request == _auth_request()
    assert "Max-Age=31536000" in set_cookie
    assert dialog.client_id_already_approved(_request(_cookie_from(set_cookie)), "client-1")
    assert not dialog.client_id_already_approved(_request(_cookie_from(set_cookie)), "client-2")


def test_approvals_accumulate():
    dialog = ApprovalDialog(generate_fernet_key())
    _, first_cookie = dialog.parse_redirect_approval({"state": _auth_request("a").to_state()}, _request())

    _, second_cookie = dialog.parse_redirect_approval(
        {"state": _auth_request("b").to_state()}, _request(_cookie_from(first_cookie))
    )

    request = _request(_cookie_from(second_cookie))
    assert dialog.client_id_already_approved(request, "a")
    assert dialog.client_id_already_approved(request, "b")


def test_cookie_from_another_key_is_ignored():
    _, set_cookie = ApprovalDialog(generate_fernet_key()).parse_redirect_approval(
        {"state": _auth_request().to_state()}, _request()
    )
    assert not ApprovalDialog(generate_fernet_key()).client_id_already_approved(
        _request(_cookie_from(set_cookie)), "client-1"
    )


def test_missing_key_never_approves_and_sets_no_cookie():
    dialog = ApprovalDialog(None)

    auth_request, set_cookie = dialog.parse_redirect_approval({"state": _auth_request().to_state()}, _request())

    assert auth_request.client_id == "client-1"
    assert set_cookie is None
    assert not dialog.client_id_already_approved(_request(f"{APPROVED_CLIENTS_COOKIE}=anything"), "client-1")


@pytest.mark.parametrize("form", [{}, {"state": ""}, {"state": "bm90IGpzb24"}])
def test_invalid_approval_form(form):
    with pytest.raises(InvalidApprovalError):
        ApprovalDialog(generate_fernet_key()).parse_redirect_approval(form, _request())


def test_dialog_escapes_client_name():
    client = OAuthClient(
        client_id="client-1",
        client_name="<script>alert(1)</script>",
        redirect_uris=["http://localhost:6274/oauth/callback"],
    )

    page = ApprovalDialog(None).render_approval_dialog(client, _auth_request())

    assert "<script>alert(1)</script>" not in page
    assert "&lt;script&gt;" in page
    assert "KuchBhi MCP server with Google Workspace tools (Gmail, Drive, Docs, Sheets)." in page
