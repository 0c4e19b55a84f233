# kuchbhi_mcp/oauth/upstream.py
import json
import logging
from typing import Any, Dict, Iterable, Literal, Optional, Union
from urllib.parse import parse_qs, urlencode

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..settings import Settings, settings
from .models import GoogleUserInfo, UpstreamError, UpstreamTokenResult

logger = logging.getLogger(__name__)

GrantType = Literal["authorization_code", "refresh_token"]


class UpstreamTokenExchanger:
    """
    Talks to Google's OAuth endpoints: builds the authorization URL, exchanges
    codes and refresh tokens, and fetches the user's profile.

    Every network method returns a result or an UpstreamError and never
    raises. There are no retries here; the refresh guard owns retry policy.
    """

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        authorize_url: str,
        token_url: str,
        userinfo_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.authorize_url = authorize_url
        self.token_url = token_url
        self.userinfo_url = userinfo_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls, app_settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "UpstreamTokenExchanger":
        return cls(
            client_id=app_settings.google_client_id,
            client_secret=app_settings.google_client_secret,
            authorize_url=app_settings.google_authorize_url,
            token_url=app_settings.google_token_url,
            userinfo_url=app_settings.google_userinfo_url,
            timeout=app_settings.upstream_http_timeout_seconds,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def build_authorize_url(
        self,
        redirect_uri: str,
        state: str,
        scopes: Iterable[str],
        hosted_domain: Optional[str] = None,
    ) -> str:
        """Google authorization URL requesting offline access with forced consent."""
        params = {
            "client_id": self.client_id or "",
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "state": state,
            # offline + consent makes Google issue a refresh token every time
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
        }
        if hosted_domain:
            params["hd"] = hosted_domain
        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange(
        self,
        grant_type: GrantType,
        code_or_refresh_token: str,
        redirect_uri: Optional[str] = None,
    ) -> Union[UpstreamTokenResult, UpstreamError]:
        """
        One form-encoded POST to the token endpoint.

        Args:
            grant_type: "authorization_code" or "refresh_token"
            code_or_refresh_token: The authorization code or the stored refresh token
            redirect_uri: Required for the authorization_code grant

        Returns:
            UpstreamTokenResult on success, otherwise the upstream status and body
        """
        payload: Dict[str, str] = {
            "grant_type": grant_type,
            "client_id": self.client_id or "",
            "client_secret": self.client_secret or "",
        }
        if grant_type == "authorization_code":
            payload["code"] = code_or_refresh_token
            if redirect_uri:
                payload["redirect_uri"] = redirect_uri
        elif grant_type == "refresh_token":
            payload["refresh_token"] = code_or_refresh_token
        else:
            return UpstreamError(status_code=400, body=f"Unsupported grant type: {grant_type}")

        logger.info(f"Upstream token exchange: grant_type='{grant_type}' -> {self.token_url}")
        try:
            async with self._client() as http_client:
                response = await http_client.post(
                    self.token_url,
                    data=payload,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Upstream token exchange transport error ({grant_type}): {e}")
            return UpstreamError(status_code=502, body=f"Token endpoint unreachable: {e}")

        content_type = response.headers.get("content-type", "text/plain")
        if not response.is_success:
            logger.warning(
                f"Upstream token exchange ({grant_type}) failed with status {response.status_code}."
            )
            return UpstreamError(
                status_code=response.status_code, body=response.text, content_type=content_type
            )

        token_data = self._parse_token_body(response)
        try:
            result = UpstreamTokenResult.model_validate(token_data)
        except PydanticValidationError:
            logger.error(f"Upstream token response ({grant_type}) carried no access_token.")
            return UpstreamError(
                status_code=response.status_code, body=response.text, content_type=content_type
            )

        logger.info(
            f"Upstream token exchange ({grant_type}) succeeded. "
            f"refresh_token {'present' if result.refresh_token else 'absent'}."
        )
        return result

    @staticmethod
    def _parse_token_body(response: httpx.Response) -> Dict[str, Any]:
        """Token endpoints answer with JSON, some with form encoding."""
        content_type = response.headers.get("content-type", "").lower()
        if "application/x-www-form-urlencoded" in content_type:
            return {k: v[0] for k, v in parse_qs(response.text).items() if v}
        try:
            parsed = response.json()
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    async def fetch_user_info(self, access_token: str) -> Union[GoogleUserInfo, UpstreamError]:
        """Bearer-authenticated GET of the profile endpoint: {id, name, email}."""
        try:
            async with self._client() as http_client:
                response = await http_client.get(
                    self.userinfo_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Userinfo request transport error: {e}")
            return UpstreamError(status_code=502, body=str(e))

        if not response.is_success:
            logger.warning(f"Userinfo request failed with status {response.status_code}.")
            return UpstreamError(status_code=response.status_code, body=response.text)

        try:
            return GoogleUserInfo.model_validate(response.json())
        except (json.JSONDecodeError, PydanticValidationError):
            logger.error("Userinfo response could not be parsed.")
            return UpstreamError(status_code=502, body=response.text)


_upstream_exchanger_instance: Optional[UpstreamTokenExchanger] = None


def get_upstream_exchanger() -> UpstreamTokenExchanger:
    """Shared exchanger built from the global settings."""
    global _upstream_exchanger_instance
    if _upstream_exchanger_instance is None:
        _upstream_exchanger_instance = UpstreamTokenExchanger.from_settings(settings)
    return _upstream_exchanger_instance
