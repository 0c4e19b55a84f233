# kuchbhi_mcp/oauth/__init__.py
# OAuth: Google token exchange and the authorization server MCP clients use

from .models import (
    AuthRequest,
    TokenRequest,
    TokenResponse,
    OAuthClient,
    GrantData,
    UpstreamTokenResult,
    UpstreamError,
    GoogleUserInfo,
)
from .errors import (
    OAuthError,
    InvalidRequestError,
    InvalidClientError,
    InvalidGrantError,
    UnsupportedGrantTypeError,
    InvalidTokenError,
    ServerError,
)
from .upstream import UpstreamTokenExchanger, get_upstream_exchanger
from .provider import WorkspaceOAuthProvider
