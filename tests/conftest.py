# tests/conftest.py
import json
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

import httpx
import pytest

project_root_path = Path(__file__).parent.parent.resolve()
if str(project_root_path) not in sys.path:
    sys.path.insert(0, str(project_root_path))

from kuchbhi_mcp.settings import settings
from kuchbhi_mcp.storage import sqlite_base
from kuchbhi_mcp.front_door import approval as approval_module
from kuchbhi_mcp.oauth.upstream import UpstreamTokenExchanger
from kuchbhi_mcp.sessions import SessionCredential, WorkspaceSession, get_workspace_session_manager
from kuchbhi_mcp.utils.security import generate_fernet_key

TOKEN_URL = "https://oauth2.test/token"
USERINFO_URL = "https://oauth2.test/userinfo"
AUTHORIZE_URL = "https://accounts.test/o/oauth2/v2/auth"


def _reset_db_connection() -> None:
    if sqlite_base._db_connection is not None:
        sqlite_base._db_connection.close()
        sqlite_base._db_connection = None


@pytest.fixture
def sqlite_db(tmp_path, monkeypatch):
    """A fresh SQLite file per test."""
    _reset_db_connection()
    db_path = tmp_path / "kuchbhi_test.sqlite3"
    monkeypatch.setattr(settings, "sqlite_db_path", str(db_path))
    yield db_path
    _reset_db_connection()


@pytest.fixture
def server_keys(monkeypatch):
    """Fernet keys for grants and the approval cookie."""
    keys = {"grant": generate_fernet_key(), "cookie": generate_fernet_key()}
    monkeypatch.setattr(settings, "grant_encryption_key", keys["grant"])
    monkeypatch.setattr(settings, "cookie_encryption_key", keys["cookie"])
    monkeypatch.setattr(settings, "public_base_url", None)
    monkeypatch.setattr(settings, "hosted_domain", None)
    monkeypatch.setattr(approval_module, "_approval_dialog_instance", None)
    yield keys
    get_workspace_session_manager().clear()


class RecordingTransport:
    """
    httpx.MockTransport wrapper that records every request and answers from
    a queue of (status, body) pairs per URL prefix.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._routes: List[tuple] = []
        self.transport = httpx.MockTransport(self._handle)

    def add(self, method: str, url_prefix: str, *responses: tuple) -> None:
        self._routes.append((method, url_prefix, list(responses)))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for method, url_prefix, responses in self._routes:
            if request.method == method and str(request.url).startswith(url_prefix) and responses:
                status, body = responses.pop(0) if len(responses) > 1 else responses[0]
                if isinstance(body, (dict, list)):
                    return httpx.Response(status, json=body)
                return httpx.Response(status, text=body)
        return httpx.Response(599, text=f"unexpected request {request.method} {request.url}")

    def count(self, url_prefix: str) -> int:
        return sum(1 for r in self.requests if str(r.url).startswith(url_prefix))

    def json_body(self, index: int) -> Dict:
        return json.loads(self.requests[index].content.decode("utf-8"))


@pytest.fixture
def recording_transport() -> RecordingTransport:
    return RecordingTransport()


def make_exchanger(transport: Optional[httpx.AsyncBaseTransport] = None) -> UpstreamTokenExchanger:
    return UpstreamTokenExchanger(
        client_id="google-client-id",
        client_secret="google-client-secret",
        authorize_url=AUTHORIZE_URL,
        token_url=TOKEN_URL,
        userinfo_url=USERINFO_URL,
        transport=transport,
    )


def make_session(
    access_token: str = "ya29.initial",
    refresh_token: Optional[str] = "1//refresh",
) -> WorkspaceSession:
    return WorkspaceSession(
        mcp_session_id="mcp-session-1",
        grant_id="grant-1",
        credential=SessionCredential(
            access_token=access_token,
            refresh_token=refresh_token,
            user_id="google-user-1",
            email="ada@example.com",
            name="Ada",
        ),
    )
