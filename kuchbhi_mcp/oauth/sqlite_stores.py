# kuchbhi_mcp/oauth/sqlite_stores.py
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..storage.sqlite_base import SQLiteStoreBase
from .models import AccessTokenData, AuthCodeData, GrantData, OAuthClient, RefreshTokenData
from .storage_interfaces import (
    AbstractAuthCodeStore,
    AbstractGrantStore,
    AbstractOAuthClientStore,
    AbstractOAuthTokenStore,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_model(row: Optional[sqlite3.Row], column: str, model: Type[ModelT]) -> Optional[ModelT]:
    """Deserialize a JSON column; a corrupt row reads as missing."""
    if not row:
        return None
    try:
        return model.model_validate_json(row[column])
    except PydanticValidationError as e:
        logger.error(f"Error deserializing {model.__name__}: {e}")
        return None


class SQLiteOAuthClientStore(SQLiteStoreBase, AbstractOAuthClientStore):
    store_name = "SQLiteOAuthClientStore"

    async def save_client(self, client: OAuthClient) -> None:
        query = '''
            INSERT INTO oauth_clients (client_id, client_data, created_at)
            VALUES (?, ?, ?)
            ON CONFLICT(client_id) DO UPDATE SET client_data=excluded.client_data
        '''
        await self._execute_query(
            query, (client.client_id, client.model_dump_json(), client.created_at.isoformat())
        )
        logger.info(f"Saved OAuth client '{client.client_id}'.")

    async def load_client(self, client_id: str) -> Optional[OAuthClient]:
        row = await self._fetchone("SELECT client_data FROM oauth_clients WHERE client_id = ?", (client_id,))
        return _row_to_model(row, "client_data", OAuthClient)

    async def delete_client(self, client_id: str) -> None:
        await self._execute_query("DELETE FROM oauth_clients WHERE client_id = ?", (client_id,))
        logger.info(f"Deleted OAuth client '{client_id}'.")


class SQLiteGrantStore(SQLiteStoreBase, AbstractGrantStore):
    store_name = "SQLiteGrantStore"

    async def save_grant(self, grant: GrantData) -> None:
        query = '''
            INSERT INTO oauth_grants (grant_id, user_id, client_id, grant_data, created_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(grant_id) DO UPDATE SET grant_data=excluded.grant_data
        '''
        params = (
            grant.grant_id,
            grant.user_id,
            grant.client_id,
            grant.model_dump_json(),
            grant.created_at.isoformat(),
        )
        await self._execute_query(query, params)

    async def load_grant(self, grant_id: str) -> Optional[GrantData]:
        row = await self._fetchone("SELECT grant_data FROM oauth_grants WHERE grant_id = ?", (grant_id,))
        return _row_to_model(row, "grant_data", GrantData)

    async def delete_grant(self, grant_id: str) -> None:
        await self._execute_query("DELETE FROM oauth_grants WHERE grant_id = ?", (grant_id,))


class SQLiteAuthCodeStore(SQLiteStoreBase, AbstractAuthCodeStore):
    store_name = "SQLiteAuthCodeStore"

    async def save_auth_code(self, auth_code_data: AuthCodeData) -> None:
        query = '''
            INSERT INTO oauth_auth_codes (code, auth_code_data, expires_at)
            VALUES (?, ?, ?)
        '''
        params = (
            auth_code_data.code,
            auth_code_data.model_dump_json(),
            auth_code_data.expires_at.isoformat(),
        )
        await self._execute_query(query, params)

    async def load_auth_code(self, code: str) -> Optional[AuthCodeData]:
        query = "SELECT auth_code_data FROM oauth_auth_codes WHERE code = ? AND expires_at > ?"
        row = await self._fetchone(query, (code, _now_iso()))
        return _row_to_model(row, "auth_code_data", AuthCodeData)

    async def delete_auth_code(self, code: str) -> None:
        await self._execute_query("DELETE FROM oauth_auth_codes WHERE code = ?", (code,))


class SQLiteOAuthTokenStore(SQLiteStoreBase, AbstractOAuthTokenStore):
    store_name = "SQLiteOAuthTokenStore"

    async def save_access_token(self, access_token_data: AccessTokenData) -> None:
        query = '''
            INSERT INTO oauth_access_tokens (access_token, access_token_data, expires_at)
            VALUES (?, ?, ?)
            ON CONFLICT(access_token) DO UPDATE SET
                access_token_data=excluded.access_token_data,
                expires_at=excluded.expires_at
        '''
        params = (
            access_token_data.access_token,
            access_token_data.model_dump_json(),
            access_token_data.expires_at.isoformat(),
        )
        await self._execute_query(query, params)

    async def load_access_token(self, access_token: str) -> Optional[AccessTokenData]:
        query = '''
            SELECT access_token_data FROM oauth_access_tokens
            WHERE access_token = ? AND expires_at > ?
        '''
        row = await self._fetchone(query, (access_token, _now_iso()))
        return _row_to_model(row, "access_token_data", AccessTokenData)

    async def delete_access_token(self, access_token: str) -> None:
        await self._execute_query("DELETE FROM oauth_access_tokens WHERE access_token = ?", (access_token,))

    async def save_refresh_token(self, refresh_token_data: RefreshTokenData) -> None:
        query = '''
            INSERT INTO oauth_refresh_tokens (refresh_token, refresh_token_data)
            VALUES (?, ?)
            ON CONFLICT(refresh_token) DO UPDATE SET refresh_token_data=excluded.refresh_token_data
        '''
        await self._execute_query(
            query, (refresh_token_data.refresh_token, refresh_token_data.model_dump_json())
        )

    async def load_refresh_token(self, refresh_token: str) -> Optional[RefreshTokenData]:
        row = await self._fetchone(
            "SELECT refresh_token_data FROM oauth_refresh_tokens WHERE refresh_token = ?", (refresh_token,)
        )
        return _row_to_model(row, "refresh_token_data", RefreshTokenData)

    async def delete_refresh_token(self, refresh_token: str) -> None:
        await self._execute_query("DELETE FROM oauth_refresh_tokens WHERE refresh_token = ?", (refresh_token,))


_client_store_instance: Optional[SQLiteOAuthClientStore] = None
_grant_store_instance: Optional[SQLiteGrantStore] = None
_auth_code_store_instance: Optional[SQLiteAuthCodeStore] = None
_token_store_instance: Optional[SQLiteOAuthTokenStore] = None


async def get_sqlite_oauth_client_store() -> SQLiteOAuthClientStore:
    global _client_store_instance
    if _client_store_instance is None:
        _client_store_instance = SQLiteOAuthClientStore()
        await _client_store_instance.initialize()
    return _client_store_instance


async def get_sqlite_grant_store() -> SQLiteGrantStore:
    global _grant_store_instance
    if _grant_store_instance is None:
        _grant_store_instance = SQLiteGrantStore()
        await _grant_store_instance.initialize()
    return _grant_store_instance


async def get_sqlite_auth_code_store() -> SQLiteAuthCodeStore:
    global _auth_code_store_instance
    if _auth_code_store_instance is None:
        _auth_code_store_instance = SQLiteAuthCodeStore()
        await _auth_code_store_instance.initialize()
    return _auth_code_store_instance


async def get_sqlite_oauth_token_store() -> SQLiteOAuthTokenStore:
    global _token_store_instance
    if _token_store_instance is None:
        _token_store_instance = SQLiteOAuthTokenStore()
        await _token_store_instance.initialize()
    return _token_store_instance
