# kuchbhi_mcp/oauth/models.py
import base64
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _require_absolute_uri(value: str) -> str:
    parts = urlsplit(value)
    if not parts.scheme or not (parts.netloc or parts.path):
        raise ValueError(f"'{value}' is not an absolute URI.")
    if parts.fragment:
        raise ValueError("Redirect URIs must not contain a fragment.")
    return value


class AuthRequest(BaseModel):
    """
    A pending authorization request from an MCP client (RFC 6749 section 4.1.1).

    The front door carries it through the Google redirect as the `state`
    parameter, so it must survive to_state() / from_state() unchanged.
    """
    response_type: str = Field(description="Must be 'code'.")
    client_id: str = Field(min_length=1, description="The client identifier.")
    redirect_uri: str = Field(description="The URI to redirect the user agent back to.")
    scope: Optional[str] = Field(
        default=None,
        description="Space-separated list of requested scopes."
    )
    state: Optional[str] = Field(
        default=None,
        description="The client's own opaque state, echoed back on completion."
    )
    code_challenge: Optional[str] = Field(default=None, description="PKCE code challenge.")
    code_challenge_method: Optional[str] = Field(
        default=None,
        description="PKCE code challenge method (e.g., 'S256')."
    )

    @field_validator("redirect_uri")
    @classmethod
    def _validate_redirect_uri(cls, value: str) -> str:
        return _require_absolute_uri(value)

    @property
    def scopes(self) -> List[str]:
        return self.scope.split() if self.scope else []

    def to_state(self) -> str:
        """Encode as URL-safe base64 of the JSON form."""
        raw = self.model_dump_json().encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii")

    @classmethod
    def from_state(cls, encoded: str) -> "AuthRequest":
        """
        Decode a value produced by to_state().

        Raises:
            ValueError: If the value is not base64, not JSON or not a valid request
        """
        padded = encoded + "=" * (-len(encoded) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        return cls.model_validate(json.loads(raw.decode("utf-8")))


class TokenRequest(BaseModel):
    """Token endpoint parameters for the authorization_code and refresh_token grants."""
    grant_type: str
    code: Optional[str] = None
    redirect_uri: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    code_verifier: Optional[str] = None
    refresh_token: Optional[str] = None


class TokenResponse(BaseModel):
    """OAuth token response structure as per RFC 6749."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


class OAuthClient(BaseModel):
    """An MCP client registered through dynamic client registration."""
    client_id: str
    client_secret_hash: Optional[str] = None
    client_name: Optional[str] = None
    redirect_uris: List[str]
    token_endpoint_auth_method: str = "none"
    grant_types: List[str] = Field(default_factory=lambda: ["authorization_code", "refresh_token"])
    created_at: datetime = Field(default_factory=_utc_now)

    @property
    def display_name(self) -> str:
        return self.client_name or self.client_id


class ClientRegistrationRequest(BaseModel):
    """RFC 7591 client metadata accepted by /register."""
    redirect_uris: List[str] = Field(min_length=1)
    client_name: Optional[str] = None
    token_endpoint_auth_method: str = "none"
    grant_types: Optional[List[str]] = None
    response_types: Optional[List[str]] = None
    scope: Optional[str] = None

    @field_validator("redirect_uris")
    @classmethod
    def _validate_redirect_uris(cls, value: List[str]) -> List[str]:
        return [_require_absolute_uri(uri) for uri in value]

    @field_validator("token_endpoint_auth_method")
    @classmethod
    def _validate_auth_method(cls, value: str) -> str:
        if value not in ("none", "client_secret_post"):
            raise ValueError("token_endpoint_auth_method must be 'none' or 'client_secret_post'.")
        return value


class ClientRegistrationResponse(BaseModel):
    client_id: str
    client_secret: Optional[str] = None
    client_id_issued_at: int
    client_name: Optional[str] = None
    redirect_uris: List[str]
    token_endpoint_auth_method: str
    grant_types: List[str]
    response_types: List[str] = ["code"]


class GrantData(BaseModel):
    """
    The record created when a user completes authorization for a client.
    `encrypted_props` is the Fernet-encrypted SessionCredential.
    """
    grant_id: str
    client_id: str
    user_id: str
    scopes: List[str] = Field(default_factory=list)
    encrypted_props: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utc_now)


class AuthCodeData(BaseModel):
    """Authorization code issued at the end of the front door flow."""
    code: str
    grant_id: str
    client_id: str
    redirect_uri: str
    scopes: List[str] = Field(default_factory=list)
    code_challenge: Optional[str] = None
    code_challenge_method: Optional[str] = None
    expires_at: datetime
    issued_at: datetime = Field(default_factory=_utc_now)


class AccessTokenData(BaseModel):
    access_token: str
    grant_id: str
    client_id: str
    user_id: str
    scopes: List[str] = Field(default_factory=list)
    expires_at: datetime
    issued_at: datetime = Field(default_factory=_utc_now)


class RefreshTokenData(BaseModel):
    refresh_token: str
    grant_id: str
    client_id: str
    user_id: str
    scopes: List[str] = Field(default_factory=list)
    issued_at: datetime = Field(default_factory=_utc_now)


class WellKnownOAuthMetadata(BaseModel):
    """OAuth 2.0 server metadata as defined in RFC 8414 for discovery endpoint."""
    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    registration_endpoint: str
    scopes_supported: Optional[List[str]] = None
    response_types_supported: List[str] = ["code"]
    grant_types_supported: List[str] = ["authorization_code", "refresh_token"]
    token_endpoint_auth_methods_supported: List[str] = ["none", "client_secret_post"]
    code_challenge_methods_supported: List[str] = ["S256"]


class UpstreamTokenResult(BaseModel):
    """Successful response from Google's token endpoint."""
    access_token: str = Field(min_length=1)
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None
    id_token: Optional[str] = None


class UpstreamError(BaseModel):
    """A failed upstream call, carried verbatim so callers can surface it."""
    status_code: int
    body: str
    content_type: str = "text/plain"


class GoogleUserInfo(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
