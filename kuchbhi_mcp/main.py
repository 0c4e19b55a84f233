# kuchbhi_mcp/main.py
from fastapi import FastAPI, Request
from starlette.routing import Route, Router as StarletteRouter
from starlette.endpoints import HTTPEndpoint
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response as StarletteResponse, JSONResponse
from starlette.types import Receive, Scope, Send
from contextlib import asynccontextmanager
import logging
import sqlite3
from typing import Any, Dict, List, Optional
from dotenv import load_dotenv
load_dotenv()

from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from fastmcp.server.http import set_http_request

from .settings import settings
from .dependencies import get_oauth_provider
from .front_door import front_door_router
from .mcp_handlers import workspace_mcp, WORKSPACE_SESSION_STATE_KEY
from .oauth.endpoints import oauth_router
from .oauth.errors import InvalidTokenError, OAuthError
from .oauth.sqlite_stores import (
    get_sqlite_auth_code_store,
    get_sqlite_grant_store,
    get_sqlite_oauth_client_store,
    get_sqlite_oauth_token_store,
)
from .sessions import WorkspaceSessionManager, get_workspace_session_manager
from .storage.sqlite_base import close_sqlite_db_connection, get_sqlite_db_connection
from .waitlist import get_waitlist_store, waitlist_router

if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level="DEBUG" if settings.debug_mode else "INFO",
        format='%(asctime)s - %(name)s [%(levelname)s] - %(message)s'
    )

logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG if settings.debug_mode else logging.INFO)

# Created per application lifespan; a manager can only be run once
workspace_http_session_manager: Optional[StreamableHTTPSessionManager] = None


@asynccontextmanager
async def workspace_app_lifespan(app_instance: FastAPI):
    """
    Opens the SQLite database and the stores on startup, runs the MCP
    Streamable HTTP session manager, and tears everything down on shutdown.
    """
    global workspace_http_session_manager
    logger.info(f"{settings.app_name} v{settings.server_version} starting up.")

    await get_sqlite_db_connection()
    initialized_stores: List[Any] = [
        await get_sqlite_oauth_client_store(),
        await get_sqlite_grant_store(),
        await get_sqlite_auth_code_store(),
        await get_sqlite_oauth_token_store(),
        await get_waitlist_store(),
    ]
    logger.info(f"Initialized {len(initialized_stores)} SQLite stores.")

    workspace_http_session_manager = StreamableHTTPSessionManager(app=workspace_mcp._mcp_server)
    try:
        async with workspace_http_session_manager.run():
            logger.info("MCP Streamable HTTP session manager running.")
            yield
    finally:
        logger.info("Application shutdown initiated.")
        workspace_http_session_manager = None
        get_workspace_session_manager().clear()
        for store_instance in reversed(initialized_stores):
            await store_instance.teardown()
        await close_sqlite_db_connection()
        logger.info("All components torn down.")


class ResponseHandled(StarletteResponse):
    """
    Marks a response already sent by the MCP session manager; Starlette must
    not send anything further.
    """
    def __init__(self):
        super().__init__(content=b"", media_type="text/plain")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        return


def _invalid_token_response(description: str) -> JSONResponse:
    error = InvalidTokenError(error_description=description)
    return JSONResponse(error.detail, status_code=error.status_code, headers=error.headers)


class WorkspaceMCPEndpoint(HTTPEndpoint):
    """
    The /mcp endpoint. Requires a bearer token issued by /token, binds the
    request to its WorkspaceSession and hands it to the MCP session manager.
    """

    @staticmethod
    def _extract_bearer_token(request: StarletteRequest) -> Optional[str]:
        auth_header = request.headers.get("Authorization")
        if auth_header:
            parts = auth_header.split()
            if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1]:
                return parts[1]
            logger.warning("Malformed Authorization header on MCP request.")
        return None

    async def _dispatch_mcp_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = StarletteRequest(scope)
        token = self._extract_bearer_token(request)
        if not token:
            await _invalid_token_response("Missing bearer token.")(scope, receive, send)
            return

        oauth_provider = await get_oauth_provider()
        validated = await oauth_provider.validate_access_token(token)
        if validated is None:
            logger.warning("MCP request with an unknown or expired access token.")
            await _invalid_token_response("The access token is invalid or expired.")(scope, receive, send)
            return
        token_data, credential = validated

        if workspace_http_session_manager is None:
            await JSONResponse({"error": "MCP handler unavailable"}, status_code=503)(scope, receive, send)
            return

        mcp_session_id = request.headers.get("mcp-session-id")
        session_manager: WorkspaceSessionManager = get_workspace_session_manager()
        workspace_session, is_new = session_manager.get_session(
            mcp_session_id, token_data.grant_id, credential
        )
        if is_new:
            logger.debug(
                f"MCP request for user '{token_data.user_id}' bound to new session "
                f"'{workspace_session.mcp_session_id}'."
            )

        scope_for_mcp = scope.copy()
        current_scope_state: Dict[str, Any] = scope_for_mcp.get("state", {})
        if not isinstance(current_scope_state, dict):
            current_scope_state = {}
        scope_for_mcp["state"] = {**current_scope_state, WORKSPACE_SESSION_STATE_KEY: workspace_session}

        try:
            with set_http_request(StarletteRequest(scope_for_mcp, receive)):
                await workspace_http_session_manager.handle_request(scope_for_mcp, receive, send)
        finally:
            if scope["method"] == "DELETE" and mcp_session_id:
                session_manager.delete_session(mcp_session_id)

    async def get(self, req: StarletteRequest) -> ResponseHandled:
        await self._dispatch_mcp_request(self.scope, self.receive, self.send)
        return ResponseHandled()

    async def post(self, req: StarletteRequest) -> ResponseHandled:
        await self._dispatch_mcp_request(self.scope, self.receive, self.send)
        return ResponseHandled()

    async def delete(self, req: StarletteRequest) -> ResponseHandled:
        await self._dispatch_mcp_request(self.scope, self.receive, self.send)
        return ResponseHandled()


mcp_starlette_router = StarletteRouter(routes=[
    Route("/mcp", WorkspaceMCPEndpoint),
    Route("/mcp/", WorkspaceMCPEndpoint),
])

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug_mode,
    version=settings.server_version,
    lifespan=workspace_app_lifespan
)


@app.exception_handler(OAuthError)
async def oauth_error_handler(request: Request, exc: OAuthError) -> JSONResponse:
    """RFC 6749 error bodies: {"error": ..., "error_description": ...} at the top level."""
    return JSONResponse(exc.detail, status_code=exc.status_code, headers=exc.headers)


@app.get("/")
async def root_api():
    return {"message": f"Welcome to {settings.app_name}!"}


@app.get("/health")
async def health_api():
    """Health check endpoint that validates SQLite connectivity."""
    store_statuses: Dict[str, str] = {}
    all_healthy = True
    try:
        conn = await get_sqlite_db_connection()
        conn.execute("SELECT 1")
        store_statuses["sqlite_main_db"] = "healthy"
    except sqlite3.Error as e:
        store_statuses["sqlite_main_db"] = f"unhealthy: {e}"
        all_healthy = False

    return {
        "status": "healthy" if all_healthy else "degraded",
        "version": settings.server_version,
        "details": store_statuses,
    }


app.include_router(front_door_router, tags=["Authorization Front Door"])
app.include_router(oauth_router, tags=["OAuth 2.1"])
app.include_router(waitlist_router)
app.mount(path="/", app=mcp_starlette_router)

logger.info(f"{settings.app_name} initialized. Routers mounted.")
