# kuchbhi_mcp/dependencies.py
import logging
from fastapi import Request

from .settings import settings
from .utils.security import FernetEncryptor
from .oauth.provider import WorkspaceOAuthProvider
from .oauth.sqlite_stores import (
    get_sqlite_auth_code_store,
    get_sqlite_grant_store,
    get_sqlite_oauth_client_store,
    get_sqlite_oauth_token_store,
)
from .oauth.upstream import UpstreamTokenExchanger, get_upstream_exchanger

logger = logging.getLogger(__name__)


def get_public_origin(request: Request) -> str:
    """The externally visible origin: PUBLIC_BASE_URL when configured, else the request's own."""
    if settings.public_base_url:
        return settings.public_base_url.rstrip("/")
    return str(request.base_url).rstrip("/")


async def get_oauth_provider() -> WorkspaceOAuthProvider:
    """Create the OAuth provider over the SQLite stores."""
    return WorkspaceOAuthProvider(
        client_store=await get_sqlite_oauth_client_store(),
        grant_store=await get_sqlite_grant_store(),
        auth_code_store=await get_sqlite_auth_code_store(),
        token_store=await get_sqlite_oauth_token_store(),
        encryptor=FernetEncryptor(settings.grant_encryption_key, key_name="GRANT_ENCRYPTION_KEY"),
    )


async def get_upstream_exchanger_dependency() -> UpstreamTokenExchanger:
    return get_upstream_exchanger()
