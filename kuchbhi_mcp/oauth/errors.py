# kuchbhi_mcp/oauth/errors.py
from typing import Dict, Optional

from fastapi import HTTPException, status


class OAuthError(HTTPException):
    """Base class for OAuth 2.1 errors, rendered as an RFC 6749 error body."""

    def __init__(
        self,
        status_code: int,
        error: str,
        error_description: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.error = error
        self.error_description = error_description

        detail = {"error": error}
        if error_description:
            detail["error_description"] = error_description

        super().__init__(
            status_code=status_code,
            detail=detail,
            headers=headers or {"WWW-Authenticate": "Bearer"},
        )


class InvalidRequestError(OAuthError):
    """
    The request is missing a required parameter, includes an
    unsupported parameter value, or is otherwise malformed.
    (RFC 6749 - Section 5.2)
    """

    def __init__(self, error_description: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="invalid_request",
            error_description=error_description,
        )


class InvalidClientError(OAuthError):
    """
    Client authentication failed (unknown client, missing or wrong secret).
    (RFC 6749 - Section 5.2)
    """

    def __init__(self, error_description: Optional[str] = "Client authentication failed."):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="invalid_client",
            error_description=error_description,
        )


class InvalidGrantError(OAuthError):
    """
    The authorization code or refresh token is invalid, expired, revoked,
    does not match the redirection URI, or was issued to another client.
    (RFC 6749 - Section 5.2)
    """

    def __init__(self, error_description: Optional[str] = "Invalid authorization grant or refresh token."):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="invalid_grant",
            error_description=error_description,
        )


class UnsupportedGrantTypeError(OAuthError):
    """The grant type is not supported by this server. (RFC 6749 - Section 5.2)"""

    def __init__(self, error_description: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="unsupported_grant_type",
            error_description=error_description,
        )


class InvalidClientMetadataError(OAuthError):
    """Rejected dynamic client registration. (RFC 7591 - Section 3.2.2)"""

    def __init__(self, error_description: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="invalid_client_metadata",
            error_description=error_description,
        )


class InvalidTokenError(OAuthError):
    """
    The bearer token presented to the MCP endpoint is expired, revoked,
    malformed, or unknown. (RFC 6750 - Section 3.1)
    """

    def __init__(
        self,
        error_description: Optional[str] = "The access token is invalid.",
        realm: str = "kuchbhi_mcp",
    ):
        www_authenticate = f'Bearer realm="{realm}", error="invalid_token"'
        if error_description:
            www_authenticate += f', error_description="{error_description}"'

        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="invalid_token",
            error_description=error_description,
            headers={"WWW-Authenticate": www_authenticate},
        )


class ServerError(OAuthError):
    """The authorization server hit an unexpected condition."""

    def __init__(self, error_description: Optional[str] = "The authorization server encountered an internal error."):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="server_error",
            error_description=error_description,
        )
