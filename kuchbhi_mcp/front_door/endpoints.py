# kuchbhi_mcp/front_door/endpoints.py
import html
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response

from ..dependencies import get_oauth_provider, get_public_origin, get_upstream_exchanger_dependency
from ..oauth.errors import OAuthError
from ..oauth.models import AuthRequest, UpstreamError
from ..oauth.provider import WorkspaceOAuthProvider
from ..oauth.upstream import UpstreamTokenExchanger
from ..sessions import SessionCredential
from ..settings import settings
from .approval import ApprovalDialog, InvalidApprovalError, get_approval_dialog

logger = logging.getLogger(__name__)
front_door_router = APIRouter()


def _error_page(title: str, error: OAuthError, status_code: int) -> HTMLResponse:
    # Descriptions can echo query parameters
    description = html.escape(error.error_description or error.error)
    return HTMLResponse(f"<h1>{title}</h1><p>{description}</p>", status_code=status_code)


def _redirect_to_google(
    request: Request,
    auth_request: AuthRequest,
    exchanger: UpstreamTokenExchanger,
    set_cookie: Optional[str] = None,
) -> RedirectResponse:
    """302 to Google carrying the pending request as `state`."""
    google_url = exchanger.build_authorize_url(
        redirect_uri=f"{get_public_origin(request)}/callback",
        state=auth_request.to_state(),
        scopes=settings.google_scopes,
        hosted_domain=settings.hosted_domain,
    )
    response = RedirectResponse(url=google_url, status_code=302)
    if set_cookie:
        response.headers.append("set-cookie", set_cookie)
    logger.info(f"Redirecting client '{auth_request.client_id}' to Google for authorization.")
    return response


@front_door_router.get("/authorize", name="authorize_get")
async def authorize_get(
    request: Request,
    oauth_provider: Annotated[WorkspaceOAuthProvider, Depends(get_oauth_provider)],
    approval_dialog: Annotated[ApprovalDialog, Depends(get_approval_dialog)],
    exchanger: Annotated[UpstreamTokenExchanger, Depends(get_upstream_exchanger_dependency)],
) -> Response:
    """Start authorization: consent prompt, or straight to Google for an approved client."""
    if not request.query_params.get("client_id"):
        logger.warning("Authorize request without client_id.")
        return PlainTextResponse("Invalid request", status_code=400)

    try:
        auth_request = await oauth_provider.parse_auth_request(request.query_params)
    except OAuthError as e:
        logger.warning(f"Authorize request rejected: {e.error} - {e.error_description}")
        return _error_page("Invalid Request", e, 400)

    if approval_dialog.client_id_already_approved(request, auth_request.client_id):
        logger.info(f"Client '{auth_request.client_id}' already approved, skipping consent.")
        return _redirect_to_google(request, auth_request, exchanger)

    client = await oauth_provider.lookup_client(auth_request.client_id)
    if client is None:
        return PlainTextResponse("Invalid request", status_code=400)
    return HTMLResponse(approval_dialog.render_approval_dialog(client, auth_request))


@front_door_router.post("/authorize", name="authorize_post")
async def authorize_post(
    request: Request,
    oauth_provider: Annotated[WorkspaceOAuthProvider, Depends(get_oauth_provider)],
    approval_dialog: Annotated[ApprovalDialog, Depends(get_approval_dialog)],
    exchanger: Annotated[UpstreamTokenExchanger, Depends(get_upstream_exchanger_dependency)],
) -> Response:
    """Consent submitted: remember the approval and continue to Google."""
    form = await request.form()
    try:
        auth_request, set_cookie = approval_dialog.parse_redirect_approval(form, request)
    except InvalidApprovalError as e:
        logger.warning(f"Approval form rejected: {e}")
        return PlainTextResponse("Invalid request", status_code=400)

    try:
        await oauth_provider.validate_pending_request(auth_request)
    except OAuthError as e:
        logger.warning(f"Approved request rejected: {e.error} - {e.error_description}")
        return PlainTextResponse("Invalid request", status_code=400)
    return _redirect_to_google(request, auth_request, exchanger, set_cookie=set_cookie)


@front_door_router.get("/callback", name="google_callback")
async def google_callback(
    request: Request,
    oauth_provider: Annotated[WorkspaceOAuthProvider, Depends(get_oauth_provider)],
    exchanger: Annotated[UpstreamTokenExchanger, Depends(get_upstream_exchanger_dependency)],
    code: Annotated[Optional[str], Query()] = None,
    state: Annotated[Optional[str], Query()] = None,
    error: Annotated[Optional[str], Query()] = None,
) -> Response:
    """Google redirects here; exchange the code and hand the credential to token issuance."""
    if error:
        logger.warning(f"Google returned an authorization error: {error}")
        return PlainTextResponse(f"Authorization denied: {error}", status_code=400)

    if not state:
        return PlainTextResponse("Invalid state", status_code=400)
    try:
        auth_request = AuthRequest.from_state(state)
    except ValueError as e:
        logger.warning(f"Callback state could not be decoded: {e}")
        return PlainTextResponse("Invalid state", status_code=400)
    try:
        await oauth_provider.validate_pending_request(auth_request)
    except OAuthError as e:
        logger.warning(f"Callback state rejected: {e.error} - {e.error_description}")
        return PlainTextResponse("Invalid state", status_code=400)

    if not code:
        return PlainTextResponse("Missing code", status_code=400)

    token_result = await exchanger.exchange(
        "authorization_code", code, redirect_uri=f"{get_public_origin(request)}/callback"
    )
    if isinstance(token_result, UpstreamError):
        logger.warning(f"Code exchange failed with status {token_result.status_code}.")
        return Response(
            content=token_result.body,
            status_code=token_result.status_code,
            media_type=token_result.content_type,
        )

    profile = await exchanger.fetch_user_info(token_result.access_token)
    if isinstance(profile, UpstreamError):
        return PlainTextResponse(f"Failed to fetch user info: {profile.body}", status_code=500)

    credential = SessionCredential(
        access_token=token_result.access_token,
        refresh_token=token_result.refresh_token,
        user_id=profile.id,
        email=profile.email,
        name=profile.name,
    )
    try:
        redirect_to = await oauth_provider.complete_authorization(
            auth_request,
            user_id=profile.id,
            scope=auth_request.scopes,
            props=credential,
            metadata={"label": profile.name},
        )
    except OAuthError as e:
        logger.error(f"Completing authorization failed: {e.error} - {e.error_description}")
        return _error_page("Authorization Error", e, e.status_code)

    logger.info(f"Google authorization complete for user '{profile.id}', client '{auth_request.client_id}'.")
    return RedirectResponse(url=redirect_to, status_code=302)
