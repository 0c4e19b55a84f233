# kuchbhi_mcp/waitlist/__init__.py

from .models import WaitlistSignupRequest
from .sqlite_waitlist_store import SQLiteWaitlistStore, get_waitlist_store
from .endpoints import waitlist_router
