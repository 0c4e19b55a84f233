# kuchbhi_mcp/oauth/storage_interfaces.py
from abc import ABC, abstractmethod
from typing import Optional

from .models import AccessTokenData, AuthCodeData, GrantData, OAuthClient, RefreshTokenData


class AbstractOAuthClientStore(ABC):
    """Registered MCP clients."""

    @abstractmethod
    async def save_client(self, client: OAuthClient) -> None:
        pass

    @abstractmethod
    async def load_client(self, client_id: str) -> Optional[OAuthClient]:
        pass

    @abstractmethod
    async def delete_client(self, client_id: str) -> None:
        pass


class AbstractGrantStore(ABC):
    """Completed authorizations and their encrypted Google credentials."""

    @abstractmethod
    async def save_grant(self, grant: GrantData) -> None:
        pass

    @abstractmethod
    async def load_grant(self, grant_id: str) -> Optional[GrantData]:
        pass

    @abstractmethod
    async def delete_grant(self, grant_id: str) -> None:
        pass


class AbstractAuthCodeStore(ABC):
    """Short-lived, single-use authorization codes."""

    @abstractmethod
    async def save_auth_code(self, auth_code_data: AuthCodeData) -> None:
        pass

    @abstractmethod
    async def load_auth_code(self, code: str) -> Optional[AuthCodeData]:
        """Return the code's data if it exists and has not expired."""

    @abstractmethod
    async def delete_auth_code(self, code: str) -> None:
        pass


class AbstractOAuthTokenStore(ABC):
    """Access and refresh tokens issued to MCP clients."""

    @abstractmethod
    async def save_access_token(self, access_token_data: AccessTokenData) -> None:
        pass

    @abstractmethod
    async def load_access_token(self, access_token: str) -> Optional[AccessTokenData]:
        """Return the token's data if it exists and has not expired."""

    @abstractmethod
    async def delete_access_token(self, access_token: str) -> None:
        pass

    @abstractmethod
    async def save_refresh_token(self, refresh_token_data: RefreshTokenData) -> None:
        pass

    @abstractmethod
    async def load_refresh_token(self, refresh_token: str) -> Optional[RefreshTokenData]:
        pass

    @abstractmethod
    async def delete_refresh_token(self, refresh_token: str) -> None:
        pass
