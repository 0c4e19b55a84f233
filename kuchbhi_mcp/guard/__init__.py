# kuchbhi_mcp/guard/__init__.py
from .refresh_guard import (
    GuardOutcome,
    GuardState,
    MissingAccessTokenError,
    RequestBuilder,
    TokenRefreshGuard,
)

__all__ = [
    "GuardOutcome",
    "GuardState",
    "MissingAccessTokenError",
    "RequestBuilder",
    "TokenRefreshGuard",
]
