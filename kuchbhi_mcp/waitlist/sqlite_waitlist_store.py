# kuchbhi_mcp/waitlist/sqlite_waitlist_store.py
import logging
from datetime import datetime, timezone
from typing import Optional

from ..storage.sqlite_base import SQLiteStoreBase

logger = logging.getLogger(__name__)


class SQLiteWaitlistStore(SQLiteStoreBase):
    store_name = "SQLiteWaitlistStore"

    async def add_signup(self, email: str) -> None:
        """Record a signup; an address already on the list is left as is."""
        query = '''
            INSERT INTO waitlist_signups (email, created_at)
            VALUES (?, ?)
            ON CONFLICT(email) DO NOTHING
        '''
        await self._execute_query(query, (email, datetime.now(timezone.utc).isoformat()))
        logger.info("Waitlist signup recorded.")

    async def count_signups(self) -> int:
        row = await self._fetchone("SELECT COUNT(*) AS count FROM waitlist_signups")
        return int(row["count"]) if row else 0


_waitlist_store_instance: Optional[SQLiteWaitlistStore] = None


async def get_waitlist_store() -> SQLiteWaitlistStore:
    global _waitlist_store_instance
    if _waitlist_store_instance is None:
        _waitlist_store_instance = SQLiteWaitlistStore()
        await _waitlist_store_instance.initialize()
    return _waitlist_store_instance
