# kuchbhi_mcp/storage/sqlite_base.py
import sqlite3
import logging
from pathlib import Path
from typing import List, Optional

from ..settings import settings

logger = logging.getLogger(__name__)

# Single connection per application lifecycle
_db_connection: Optional[sqlite3.Connection] = None


async def get_sqlite_db_connection() -> sqlite3.Connection:
    """
    Get or create the SQLite connection, creating the schema on first use.

    Returns:
        sqlite3.Connection: The shared connection

    Raises:
        sqlite3.Error: If the database cannot be opened
    """
    global _db_connection
    if _db_connection is None:
        db_path = Path(settings.sqlite_db_path).resolve()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Connecting to SQLite DB at: {db_path}")
        try:
            # FastAPI may run sync dependencies on worker threads
            connection = sqlite3.connect(str(db_path), check_same_thread=False)
            connection.row_factory = sqlite3.Row
            await init_sqlite_db(connection)
        except sqlite3.Error as e:
            logger.error(f"Error connecting to SQLite database at {db_path}: {e}", exc_info=True)
            raise
        _db_connection = connection
    return _db_connection


async def init_sqlite_db(conn: Optional[sqlite3.Connection] = None):
    """
    Create every table the server needs. Safe to call repeatedly.

    Args:
        conn: Optional database connection. If None, uses the global connection.
    """
    db_conn = conn or await get_sqlite_db_connection()
    cursor = db_conn.cursor()

    # MCP clients registered through /register
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS oauth_clients (
        client_id TEXT PRIMARY KEY,
        client_data TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    ''')

    # One row per completed authorization; props hold the encrypted Google credential
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS oauth_grants (
        grant_id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        client_id TEXT NOT NULL,
        grant_data TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    ''')

    cursor.execute('''
    CREATE TABLE IF NOT EXISTS oauth_auth_codes (
        code TEXT PRIMARY KEY,
        auth_code_data TEXT NOT NULL,
        expires_at TEXT NOT NULL
    )
    ''')

    cursor.execute('''
    CREATE TABLE IF NOT EXISTS oauth_access_tokens (
        access_token TEXT PRIMARY KEY,
        access_token_data TEXT NOT NULL,
        expires_at TEXT NOT NULL
    )
    ''')

    cursor.execute('''
    CREATE TABLE IF NOT EXISTS oauth_refresh_tokens (
        refresh_token TEXT PRIMARY KEY,
        refresh_token_data TEXT NOT NULL
    )
    ''')

    # Marketing site waitlist
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS waitlist_signups (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL
    )
    ''')

    db_conn.commit()
    logger.info("SQLite database schema initialized/verified.")


async def close_sqlite_db_connection():
    """Close the global connection. Called on application shutdown."""
    global _db_connection
    if _db_connection is not None:
        logger.info("Closing SQLite DB connection.")
        _db_connection.close()
        _db_connection = None


class SQLiteStoreBase:
    """Query helpers shared by the SQLite-backed stores."""

    store_name = "SQLiteStore"

    async def initialize(self) -> None:
        await get_sqlite_db_connection()
        logger.info(f"{self.store_name} initialized.")

    async def teardown(self) -> None:
        # Connection is closed by close_sqlite_db_connection
        logger.info(f"{self.store_name} teardown.")

    async def _execute_query(self, query: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute a write query, committing on success and rolling back on error."""
        conn = await get_sqlite_db_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(query, params)
            conn.commit()
        except sqlite3.Error as e:
            logger.error(f"{self.store_name}: SQLite error: {e}", exc_info=True)
            conn.rollback()
            raise
        return cursor

    async def _fetchone(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        conn = await get_sqlite_db_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(query, params)
            return cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"{self.store_name}: SQLite error: {e}", exc_info=True)
            raise

    async def _fetchall(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        conn = await get_sqlite_db_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(query, params)
            return cursor.fetchall()
        except sqlite3.Error as e:
            logger.error(f"{self.store_name}: SQLite error: {e}", exc_info=True)
            raise
