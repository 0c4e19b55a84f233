# kuchbhi_mcp/storage/__init__.py

"""SQLite connection management shared by the OAuth stores and the waitlist."""

from .sqlite_base import (
    get_sqlite_db_connection,
    init_sqlite_db,
    close_sqlite_db_connection,
    SQLiteStoreBase,
)

__all__ = [
    "get_sqlite_db_connection",
    "init_sqlite_db",
    "close_sqlite_db_connection",
    "SQLiteStoreBase",
]
