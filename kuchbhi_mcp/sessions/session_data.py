# kuchbhi_mcp/sessions/session_data.py
import asyncio
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class SessionCredential(BaseModel):
    """
    The Google credential obtained at /callback.

    Identity fields are fixed at authorization time. Only `access_token`
    changes afterwards, and only through the token refresh guard.
    """
    access_token: str
    refresh_token: Optional[str] = None
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None

    model_config = ConfigDict(validate_assignment=True)

    @property
    def has_access_token(self) -> bool:
        return bool(self.access_token)


class WorkspaceSession(BaseModel):
    """
    State owned by one MCP connection.

    Each session holds its own copy of the grant's credential, so a refresh
    in one connection never touches another. `last_document_id` and
    `last_spreadsheet_id` are the implicit defaults for tools that accept an
    optional document or spreadsheet reference.
    """

    mcp_session_id: Optional[str] = Field(
        default=None,
        description="The MCP session identifier, None until the transport assigns one."
    )
    grant_id: str
    credential: SessionCredential

    last_document_id: Optional[str] = None
    last_spreadsheet_id: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Serializes guarded calls within this session
    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    model_config = ConfigDict(validate_assignment=True)

    @property
    def user_id(self) -> str:
        return self.credential.user_id

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    def touch(self) -> None:
        """Updates the updated_at timestamp to current UTC time."""
        self.updated_at = datetime.now(timezone.utc)

    def remember_document(self, document_id: str) -> None:
        self.last_document_id = document_id
        self.touch()

    def remember_spreadsheet(self, spreadsheet_id: str) -> None:
        self.last_spreadsheet_id = spreadsheet_id
        self.touch()
