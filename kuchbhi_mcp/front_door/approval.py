# kuchbhi_mcp/front_door/approval.py
import html
import logging
from typing import List, Mapping, Optional, Tuple

from fastapi import Request

from ..oauth.models import AuthRequest, OAuthClient
from ..settings import settings
from ..utils.security import FernetEncryptor

logger = logging.getLogger(__name__)

APPROVED_CLIENTS_COOKIE = "mcp-approved-clients"
APPROVAL_COOKIE_MAX_AGE_SECONDS = 60 * 60 * 24 * 365

SERVER_DISPLAY_NAME = "KuchBhi Google Workspace"
SERVER_DESCRIPTION = "KuchBhi MCP server with Google Workspace tools (Gmail, Drive, Docs, Sheets)."


class InvalidApprovalError(ValueError):
    """The submitted consent form carries no usable state."""


class ApprovalDialog:
    """
    Consent screen plus the encrypted cookie remembering which clients the
    browser has already approved.

    A missing or invalid cookie key reads as "never approved" and no cookie
    is issued; it never fails the request.
    """

    def __init__(self, cookie_encryption_key: Optional[str]):
        self.encryptor = FernetEncryptor(cookie_encryption_key, key_name="COOKIE_ENCRYPTION_KEY")

    def _approved_client_ids(self, request: Request) -> List[str]:
        raw_cookie = request.cookies.get(APPROVED_CLIENTS_COOKIE)
        if not raw_cookie or not self.encryptor.key_valid:
            return []
        approved = self.encryptor.decrypt_json(raw_cookie)
        if not isinstance(approved, list):
            return []
        return [client_id for client_id in approved if isinstance(client_id, str)]

    def client_id_already_approved(self, request: Request, client_id: str) -> bool:
        return client_id in self._approved_client_ids(request)

    def render_approval_dialog(self, client: OAuthClient, auth_request: AuthRequest) -> str:
        """HTML consent page whose form posts the encoded pending request back to /authorize."""
        client_name = html.escape(client.display_name)
        redirect_items = "".join(
            f"<li><code>{html.escape(uri)}</code></li>" for uri in client.redirect_uris
        )
        encoded_state = html.escape(auth_request.to_state(), quote=True)
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{client_name} | Authorization Request</title>
</head>
<body>
  <main>
    <h1>{html.escape(SERVER_DISPLAY_NAME)}</h1>
    <p>{html.escape(SERVER_DESCRIPTION)}</p>
    <h2><strong>{client_name}</strong> is requesting access</h2>
    <p>Redirect URIs:</p>
    <ul>{redirect_items}</ul>
    <p>If you approve, you will be redirected to Google to sign in.</p>
    <form method="post" action="/authorize">
      <input type="hidden" name="state" value="{encoded_state}">
      <button type="button" onclick="window.history.back()">Cancel</button>
      <button type="submit">Approve</button>
    </form>
  </main>
</body>
</html>"""

    def parse_redirect_approval(
        self, form: Mapping[str, str], request: Request
    ) -> Tuple[AuthRequest, Optional[str]]:
        """
        Decode the submitted consent form.

        Returns:
            The pending request and the Set-Cookie header value recording the
            approval (None when no cookie key is configured).

        Raises:
            InvalidApprovalError: If the form has no state or the state does not decode
        """
        encoded_state = form.get("state")
        if not encoded_state:
            raise InvalidApprovalError("Missing state in approval form.")
        try:
            auth_request = AuthRequest.from_state(encoded_state)
        except ValueError as e:
            logger.warning(f"Approval form state could not be decoded: {e}")
            raise InvalidApprovalError("Invalid state in approval form.") from e

        approved = self._approved_client_ids(request)
        if auth_request.client_id not in approved:
            approved.append(auth_request.client_id)
        cookie_value = self.encryptor.encrypt_json(approved) if self.encryptor.key_valid else None
        if cookie_value is None:
            return auth_request, None

        set_cookie = (
            f"{APPROVED_CLIENTS_COOKIE}={cookie_value}; Max-Age={APPROVAL_COOKIE_MAX_AGE_SECONDS}; "
            "Path=/; HttpOnly; Secure; SameSite=Lax"
        )
        return auth_request, set_cookie


_approval_dialog_instance: Optional[ApprovalDialog] = None


def get_approval_dialog() -> ApprovalDialog:
    global _approval_dialog_instance
    if _approval_dialog_instance is None:
        _approval_dialog_instance = ApprovalDialog(settings.cookie_encryption_key)
    return _approval_dialog_instance
