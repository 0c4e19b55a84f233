# tests/test_auth_request_state.py
import base64

import pytest

from kuchbhi_mcp.oauth.models import AuthRequest


def _request(**overrides) -> AuthRequest:
    fields = dict(
        response_type="code",
        client_id="client-123",
        redirect_uri="http://localhost:6274/oauth/callback",
        scope="read write",
        state="client-state-ü",
        code_challenge="E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM",
        code_challenge_method="S256",
    )
    fields.update(overrides)
    return AuthRequest(**fields)


def test_state_round_trip_preserves_every_field():
    original = _request()
    assert AuthRequest.from_state(original.to_state()) == original


def test_state_round_trip_with_optional_fields_missing():
    original = _request(scope=None, state=None, code_challenge=None, code_challenge_method=None)
    decoded = AuthRequest.from_state(original.to_state())
    assert decoded == original
    assert decoded.scopes == []


def test_state_is_url_safe_base64_of_json():
    encoded = _request().to_state()
    assert "+" not in encoded and "/" not in encoded
    decoded_json = base64.urlsafe_b64decode(encoded).decode("utf-8")
    assert '"client_id":"client-123"' in decoded_json


def test_state_without_padding_still_decodes():
    original = _request(client_id="c")
    encoded = original.to_state().rstrip("=")
    assert AuthRequest.from_state(encoded) == original


@pytest.mark.parametrize("bad_state", ["not base64 !!", base64.urlsafe_b64encode(b"not json").decode(), base64.urlsafe_b64encode(b'{"client_id": ""}').decode()])
def test_undecodable_state_raises_value_error(bad_state):
    with pytest.raises(ValueError):
        AuthRequest.from_state(bad_state)


def test_redirect_uri_must_be_absolute():
    with pytest.raises(ValueError):
        _request(redirect_uri="/relative/callback")


def test_custom_scheme_redirect_is_accepted():
    assert _request(redirect_uri="cursor://anysphere.cursor-retrieval/oauth/callback").redirect_uri.startswith("cursor://")
