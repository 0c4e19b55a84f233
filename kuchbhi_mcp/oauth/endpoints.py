# kuchbhi_mcp/oauth/endpoints.py
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, Form, Request, status
from pydantic import ValidationError as PydanticValidationError

from ..dependencies import get_oauth_provider, get_public_origin
from ..settings import settings
from .errors import InvalidClientMetadataError, InvalidRequestError, OAuthError, ServerError
from .models import (
    ClientRegistrationRequest,
    ClientRegistrationResponse,
    TokenRequest,
    TokenResponse,
    WellKnownOAuthMetadata,
)
from .provider import WorkspaceOAuthProvider

logger = logging.getLogger(__name__)
oauth_router = APIRouter()


@oauth_router.post(
    "/register",
    response_model=ClientRegistrationResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    name="oauth_register",
)
async def register_client(
    payload: Annotated[dict, Body(...)],
    oauth_provider: Annotated[WorkspaceOAuthProvider, Depends(get_oauth_provider)],
):
    """Dynamic client registration endpoint (RFC 7591)."""
    try:
        registration = ClientRegistrationRequest.model_validate(payload)
    except PydanticValidationError as e:
        logger.warning(f"Client registration rejected: {e.errors()}")
        error_details = [
            f"Field '{str(err.get('loc', ['N/A'])[-1])}': {err.get('msg', 'Invalid')}"
            for err in e.errors()
        ]
        raise InvalidClientMetadataError(error_description="; ".join(error_details))
    return await oauth_provider.register_client(registration)


@oauth_router.post("/token", response_model=TokenResponse, response_model_exclude_none=True, name="oauth_token")
async def token(
    grant_type: Annotated[str, Form(...)],
    oauth_provider: Annotated[WorkspaceOAuthProvider, Depends(get_oauth_provider)],
    code: Annotated[Optional[str], Form()] = None,
    redirect_uri: Annotated[Optional[str], Form()] = None,
    client_id: Annotated[Optional[str], Form()] = None,
    client_secret: Annotated[Optional[str], Form()] = None,
    code_verifier: Annotated[Optional[str], Form()] = None,
    refresh_token: Annotated[Optional[str], Form()] = None,
):
    """OAuth token endpoint for exchanging authorization codes and refreshing tokens."""
    logger.info(f"Token endpoint called. Grant type: '{grant_type}' Client ID: {client_id}")

    try:
        token_request_model = TokenRequest(
            grant_type=grant_type,
            code=code,
            redirect_uri=redirect_uri,
            client_id=client_id,
            client_secret=client_secret,
            code_verifier=code_verifier,
            refresh_token=refresh_token,
        )
    except PydanticValidationError as e:
        logger.warning(f"Token request parameter validation failed: {e.errors()}")
        raise InvalidRequestError(error_description="Invalid token request parameters.")

    try:
        return await oauth_provider.handle_token_request(token_request_model)
    except OAuthError as e:
        logger.warning(f"Token endpoint OAuthError: {e.error} - {e.error_description}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error during /token: {e}", exc_info=True)
        raise ServerError(error_description="An unexpected error occurred while processing the token request.")


@oauth_router.get(
    "/.well-known/oauth-authorization-server",
    response_model=WellKnownOAuthMetadata,
    name="oauth_metadata",
)
async def get_oauth_metadata(request: Request):
    """OAuth discovery endpoint providing server metadata (RFC 8414)."""
    origin = get_public_origin(request)
    return WellKnownOAuthMetadata(
        issuer=origin,
        authorization_endpoint=f"{origin}/authorize",
        token_endpoint=f"{origin}/token",
        registration_endpoint=f"{origin}/register",
        scopes_supported=list(settings.google_scopes),
    )
