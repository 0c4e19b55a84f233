# kuchbhi_mcp/oauth/provider.py
import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

from pydantic import ValidationError as PydanticValidationError

from ..sessions import SessionCredential
from ..utils.security import FernetEncryptor, hash_secret, secret_matches
from .errors import (
    InvalidClientError,
    InvalidGrantError,
    InvalidRequestError,
    ServerError,
    UnsupportedGrantTypeError,
)
from .models import (
    AccessTokenData,
    AuthCodeData,
    AuthRequest,
    ClientRegistrationRequest,
    ClientRegistrationResponse,
    GrantData,
    OAuthClient,
    RefreshTokenData,
    TokenRequest,
    TokenResponse,
)
from .pkce import verify_pkce_code_verifier
from .storage_interfaces import (
    AbstractAuthCodeStore,
    AbstractGrantStore,
    AbstractOAuthClientStore,
    AbstractOAuthTokenStore,
)

logger = logging.getLogger(__name__)

AUTH_CODE_LIFETIME_SECONDS = 600  # 10 minutes
ACCESS_TOKEN_LIFETIME_SECONDS = 3600  # 1 hour


class WorkspaceOAuthProvider:
    """
    The OAuth 2.1 authorization server MCP clients talk to.

    It registers clients, validates their authorization requests, turns a
    completed Google authorization into a grant plus an authorization code,
    and issues the bearer tokens the MCP endpoint accepts. The Google
    credential is stored with the grant, encrypted, and handed back by
    validate_access_token().
    """

    def __init__(
        self,
        client_store: AbstractOAuthClientStore,
        grant_store: AbstractGrantStore,
        auth_code_store: AbstractAuthCodeStore,
        token_store: AbstractOAuthTokenStore,
        encryptor: FernetEncryptor,
    ):
        self.client_store = client_store
        self.grant_store = grant_store
        self.auth_code_store = auth_code_store
        self.token_store = token_store
        self.encryptor = encryptor

    # Clients

    async def register_client(self, registration: ClientRegistrationRequest) -> ClientRegistrationResponse:
        """Dynamic client registration (RFC 7591)."""
        client_id = secrets.token_urlsafe(16)
        client_secret: Optional[str] = None
        if registration.token_endpoint_auth_method == "client_secret_post":
            client_secret = secrets.token_urlsafe(32)

        client = OAuthClient(
            client_id=client_id,
            client_secret_hash=hash_secret(client_secret) if client_secret else None,
            client_name=registration.client_name,
            redirect_uris=registration.redirect_uris,
            token_endpoint_auth_method=registration.token_endpoint_auth_method,
        )
        await self.client_store.save_client(client)
        logger.info(
            f"Registered client '{client_id}' ({client.display_name}), "
            f"auth method '{client.token_endpoint_auth_method}'."
        )
        return ClientRegistrationResponse(
            client_id=client_id,
            client_secret=client_secret,
            client_id_issued_at=int(time.time()),
            client_name=client.client_name,
            redirect_uris=client.redirect_uris,
            token_endpoint_auth_method=client.token_endpoint_auth_method,
            grant_types=client.grant_types,
        )

    async def lookup_client(self, client_id: str) -> Optional[OAuthClient]:
        return await self.client_store.load_client(client_id)

    async def _validate_client(
        self, client_id: Optional[str], client_secret: Optional[str] = None
    ) -> OAuthClient:
        if not client_id:
            raise InvalidClientError("client_id is required.")
        client = await self.client_store.load_client(client_id)
        if not client:
            logger.warning(f"Unknown client_id: {client_id}")
            raise InvalidClientError(f"Unknown client_id: {client_id}")
        if client.client_secret_hash:
            if not client_secret or not secret_matches(client_secret, client.client_secret_hash):
                logger.warning(f"Client '{client_id}' failed secret authentication.")
                raise InvalidClientError()
        return client

    # Authorization

    async def parse_auth_request(self, params: Mapping[str, Any]) -> AuthRequest:
        """
        Build and validate the pending authorization request from /authorize
        query parameters.

        Raises:
            InvalidRequestError: Malformed parameters, unregistered redirect URI or missing PKCE
            InvalidClientError: Unknown client
        """
        fields = (
            "response_type", "client_id", "redirect_uri", "scope",
            "state", "code_challenge", "code_challenge_method",
        )
        raw = {name: params.get(name) for name in fields if params.get(name) is not None}
        try:
            auth_request = AuthRequest.model_validate(raw)
        except PydanticValidationError as e:
            description = "; ".join(
                f"{err['loc'][0] if err['loc'] else 'param'}: {err['msg']}" for err in e.errors()
            )
            raise InvalidRequestError(f"Invalid authorization request parameters: {description}")

        await self.validate_pending_request(auth_request)
        return auth_request

    async def validate_pending_request(self, auth_request: AuthRequest) -> OAuthClient:
        """
        Check a pending request against the registered client. Also applied to
        requests decoded from `state`, which arrive from the user agent.

        Raises:
            InvalidRequestError: Wrong response type, unregistered redirect URI or missing PKCE
            InvalidClientError: Unknown client
        """
        if auth_request.response_type != "code":
            raise InvalidRequestError("Response type must be 'code'.")

        client = await self.client_store.load_client(auth_request.client_id)
        if not client:
            raise InvalidClientError(f"Unknown client_id: {auth_request.client_id}")

        if auth_request.redirect_uri not in client.redirect_uris:
            logger.warning(
                f"Redirect URI '{auth_request.redirect_uri}' not registered for client "
                f"'{client.client_id}'. Registered: {client.redirect_uris}"
            )
            raise InvalidRequestError("Invalid redirect_uri for the client.")

        # OAuth 2.1 requires PKCE for every client
        if not auth_request.code_challenge:
            raise InvalidRequestError("PKCE code_challenge is required.")
        if (auth_request.code_challenge_method or "plain") != "S256":
            raise InvalidRequestError("PKCE code_challenge_method 'S256' is required.")

        return client

    async def complete_authorization(
        self,
        request: AuthRequest,
        user_id: str,
        scope: List[str],
        props: SessionCredential,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Persist the grant, issue an authorization code and return the client
        redirect URL carrying `code` and the client's own `state`.
        """
        await self.validate_pending_request(request)
        encrypted_props = self.encryptor.encrypt(props.model_dump_json())
        if encrypted_props is None:
            logger.error("Cannot complete authorization: grant encryption key missing or invalid.")
            raise ServerError("Server is not configured to store credentials.")

        grant = GrantData(
            grant_id=secrets.token_urlsafe(16),
            client_id=request.client_id,
            user_id=user_id,
            scopes=scope,
            encrypted_props=encrypted_props,
            metadata=metadata or {},
        )
        await self.grant_store.save_grant(grant)

        auth_code = AuthCodeData(
            code=secrets.token_urlsafe(32),
            grant_id=grant.grant_id,
            client_id=request.client_id,
            redirect_uri=request.redirect_uri,
            scopes=scope,
            code_challenge=request.code_challenge,
            code_challenge_method=request.code_challenge_method,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=AUTH_CODE_LIFETIME_SECONDS),
        )
        await self.auth_code_store.save_auth_code(auth_code)
        logger.info(
            f"Authorization completed for user '{user_id}', client '{request.client_id}', "
            f"grant '{grant.grant_id}'."
        )

        redirect_params = {"code": auth_code.code}
        if request.state:
            redirect_params["state"] = request.state
        separator = "&" if "?" in request.redirect_uri else "?"
        return f"{request.redirect_uri}{separator}{urlencode(redirect_params)}"

    # Tokens

    async def handle_token_request(self, token_request: TokenRequest) -> TokenResponse:
        logger.info(
            f"Token request: grant_type='{token_request.grant_type}', client '{token_request.client_id}'."
        )
        if token_request.grant_type == "authorization_code":
            return await self._handle_auth_code_grant(token_request)
        if token_request.grant_type == "refresh_token":
            return await self._handle_refresh_token_grant(token_request)
        raise UnsupportedGrantTypeError(f"Grant type '{token_request.grant_type}' is not supported.")

    async def _issue_tokens(
        self, grant: GrantData, scopes: List[str], refresh_token: Optional[str] = None
    ) -> TokenResponse:
        access_token_data = AccessTokenData(
            access_token=secrets.token_urlsafe(32),
            grant_id=grant.grant_id,
            client_id=grant.client_id,
            user_id=grant.user_id,
            scopes=scopes,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=ACCESS_TOKEN_LIFETIME_SECONDS),
        )
        await self.token_store.save_access_token(access_token_data)

        if refresh_token is None:
            refresh_token = secrets.token_urlsafe(32)
            await self.token_store.save_refresh_token(
                RefreshTokenData(
                    refresh_token=refresh_token,
                    grant_id=grant.grant_id,
                    client_id=grant.client_id,
                    user_id=grant.user_id,
                    scopes=scopes,
                )
            )

        return TokenResponse(
            access_token=access_token_data.access_token,
            expires_in=ACCESS_TOKEN_LIFETIME_SECONDS,
            refresh_token=refresh_token,
            scope=" ".join(scopes) if scopes else None,
        )

    async def _handle_auth_code_grant(self, token_request: TokenRequest) -> TokenResponse:
        if not token_request.code or not token_request.redirect_uri:
            raise InvalidRequestError("code and redirect_uri are required for authorization_code grant.")
        if not token_request.code_verifier:
            raise InvalidRequestError("code_verifier is required for PKCE.")

        client = await self._validate_client(token_request.client_id, token_request.client_secret)

        auth_code = await self.auth_code_store.load_auth_code(token_request.code)
        if not auth_code:
            logger.warning("Authorization code not found or expired.")
            raise InvalidGrantError("Invalid authorization code.")

        # Codes are single-use whatever the outcome below
        await self.auth_code_store.delete_auth_code(token_request.code)

        if auth_code.client_id != client.client_id:
            logger.warning(
                f"Client ID mismatch. Expected {auth_code.client_id}, got {client.client_id}."
            )
            raise InvalidGrantError("Authorization code was issued to another client.")
        if token_request.redirect_uri != auth_code.redirect_uri:
            raise InvalidGrantError("Redirect URI mismatch.")
        if not auth_code.code_challenge or not verify_pkce_code_verifier(
            token_request.code_verifier, auth_code.code_challenge
        ):
            logger.warning("PKCE verification failed for authorization code.")
            raise InvalidGrantError("PKCE verification failed: Invalid code_verifier.")

        grant = await self.grant_store.load_grant(auth_code.grant_id)
        if not grant:
            raise InvalidGrantError("Grant no longer exists.")

        logger.info(f"Issuing tokens for client '{client.client_id}', user '{grant.user_id}'.")
        return await self._issue_tokens(grant, auth_code.scopes)

    async def _handle_refresh_token_grant(self, token_request: TokenRequest) -> TokenResponse:
        if not token_request.refresh_token:
            raise InvalidRequestError("refresh_token is required for refresh_token grant.")

        client = await self._validate_client(token_request.client_id, token_request.client_secret)

        refresh_data = await self.token_store.load_refresh_token(token_request.refresh_token)
        if not refresh_data:
            raise InvalidGrantError("Invalid refresh token.")
        if refresh_data.client_id != client.client_id:
            logger.warning(
                f"Refresh token client_id mismatch. Expected {refresh_data.client_id}, "
                f"got {client.client_id}."
            )
            raise InvalidGrantError("Refresh token was not issued to this client.")

        grant = await self.grant_store.load_grant(refresh_data.grant_id)
        if not grant:
            await self.token_store.delete_refresh_token(token_request.refresh_token)
            raise InvalidGrantError("Grant no longer exists.")

        return await self._issue_tokens(grant, refresh_data.scopes, refresh_token=refresh_data.refresh_token)

    async def validate_access_token(
        self, access_token: str
    ) -> Optional[Tuple[AccessTokenData, SessionCredential]]:
        """Resolve a bearer token to its data and the decrypted Google credential."""
        token_data = await self.token_store.load_access_token(access_token)
        if not token_data:
            return None

        grant = await self.grant_store.load_grant(token_data.grant_id)
        if not grant:
            logger.warning(f"Access token references missing grant '{token_data.grant_id}'.")
            return None

        props_json = self.encryptor.decrypt(grant.encrypted_props)
        if props_json is None:
            return None
        try:
            credential = SessionCredential.model_validate_json(props_json)
        except PydanticValidationError:
            logger.error(f"Grant '{grant.grant_id}' props could not be parsed.")
            return None
        return token_data, credential
