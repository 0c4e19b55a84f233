# kuchbhi_mcp/waitlist/endpoints.py
import json
import logging
import sqlite3
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from .models import WaitlistSignupRequest
from .sqlite_waitlist_store import SQLiteWaitlistStore, get_waitlist_store

logger = logging.getLogger(__name__)
waitlist_router = APIRouter(prefix="/api/waitlist", tags=["Waitlist"])


@waitlist_router.post("")
async def join_waitlist(
    request: Request,
    store: Annotated[SQLiteWaitlistStore, Depends(get_waitlist_store)],
) -> JSONResponse:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse({"error": "Bad request"}, status_code=400)

    if not isinstance(payload, dict) or not isinstance(payload.get("email"), str):
        return JSONResponse({"error": "Invalid email"}, status_code=400)
    try:
        signup = WaitlistSignupRequest(email=payload["email"])
    except PydanticValidationError:
        return JSONResponse({"error": "Invalid email"}, status_code=400)

    try:
        await store.add_signup(signup.email)
    except sqlite3.Error as e:
        logger.error(f"[waitlist] error: {e}")
        return JSONResponse({"error": "Bad request"}, status_code=400)
    return JSONResponse({"ok": True})


@waitlist_router.get("")
async def waitlist_count(
    store: Annotated[SQLiteWaitlistStore, Depends(get_waitlist_store)],
) -> JSONResponse:
    try:
        count = await store.count_signups()
    except sqlite3.Error as e:
        logger.error(f"[waitlist] count error: {e}")
        return JSONResponse({"error": "Failed to fetch count"}, status_code=500)
    return JSONResponse({"count": count})
