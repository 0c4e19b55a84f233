# kuchbhi_mcp/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional
import logging
from pathlib import Path

logger = logging.getLogger(__name__)
if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s SETTINGS.PY - [%(levelname)s] - %(message)s'
    )

# settings.py lives at <project>/kuchbhi_mcp/settings.py
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
DOTENV_PATH = PROJECT_ROOT / ".env"

if DOTENV_PATH.exists():
    logger.info(f"SETTINGS.PY: .env file found at: {DOTENV_PATH}")
else:
    logger.warning(
        f"SETTINGS.PY: .env file NOT FOUND at: {DOTENV_PATH}. "
        "Will rely on OS env vars or defaults."
    )

DEFAULT_GOOGLE_SCOPES = [
    "email",
    "profile",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/drive.metadata.readonly",
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/documents",
    "https://www.googleapis.com/auth/spreadsheets",
]


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    app_name: str = "KuchBhi Google Workspace MCP"
    server_version: str = "0.1.0"
    debug_mode: bool = False

    # SQLite holds OAuth clients, grants, issued tokens and the waitlist
    sqlite_db_path: str = "./kuchbhi_mcp_data.sqlite3"

    fastmcp_log_level: str = "INFO"

    # Google OAuth client (process-wide, read-only after startup)
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    hosted_domain: Optional[str] = Field(
        default=None,
        description="Google Workspace domain hint passed to Google as 'hd'."
    )
    google_authorize_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    google_token_url: str = "https://accounts.google.com/o/oauth2/token"
    google_userinfo_url: str = "https://www.googleapis.com/oauth2/v2/userinfo"
    google_scopes: List[str] = Field(default_factory=lambda: list(DEFAULT_GOOGLE_SCOPES))
    upstream_http_timeout_seconds: float = 30.0

    # Fernet keys (see `kuchbhi keys generate`)
    cookie_encryption_key: Optional[str] = Field(
        default=None,
        description="Key for the encrypted approved-clients cookie."
    )
    grant_encryption_key: Optional[str] = Field(
        default=None,
        description="Key for encrypting Google credentials stored with each grant. MUST be set for production."
    )

    public_base_url: Optional[str] = Field(
        default=None,
        description="Externally visible origin, used instead of the request origin when set."
    )
    phone_number: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=DOTENV_PATH if DOTENV_PATH.exists() else None,
        extra="ignore",
        env_file_encoding='utf-8'
    )


settings = Settings()

logger.info(
    f"SETTINGS.PY: debug_mode={settings.debug_mode}, sqlite_db_path='{settings.sqlite_db_path}', "
    f"fastmcp_log_level='{settings.fastmcp_log_level}'"
)
logger.info(
    f"SETTINGS.PY: google_client_id={'SET' if settings.google_client_id else 'None'}, "
    f"google_client_secret={'********' if settings.google_client_secret else 'None'}, "
    f"hosted_domain={settings.hosted_domain!r}"
)
if not settings.grant_encryption_key:
    logger.warning("SETTINGS.PY: GRANT_ENCRYPTION_KEY is not set. Authorizations cannot be completed.")
