"""FastAPI router for Google Calendar connect, sync and status."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from src.common import store as store_keys
from src.gcal.client import CalendarAPIError, CalendarAuthError, GoogleCalendarClient
from src.gcal.reconciler import CalendarReconciler
from src.server.deps import get_config, get_store, read_json

logger = logging.getLogger("pointer.gcal.routes")

router = APIRouter(prefix="/api/google-calendar", tags=["google-calendar"])


def get_reconciler(cfg: dict[str, Any] | None = None) -> CalendarReconciler:
    cfg = cfg or get_config()
    return CalendarReconciler(GoogleCalendarClient.from_config(cfg), get_store(cfg))


@router.get("/auth")
async def auth() -> JSONResponse:
    client = GoogleCalendarClient.from_config(get_config())
    if not client.client_id:
        return JSONResponse({"error": "Google Calendar API not configured"}, status_code=500)
    return JSONResponse({"auth_url": client.auth_url()})


@router.get("/callback")
async def callback(code: str | None = None, error: str | None = None) -> RedirectResponse:
    """OAuth redirect target: exchange the code, store tokens, bounce home."""
    if error:
        return RedirectResponse("/?error=auth_failed", status_code=302)
    if not code:
        return RedirectResponse("/?error=no_code", status_code=302)

    reconciler = get_reconciler()
    if not reconciler.client.configured:
        return RedirectResponse("/?error=not_configured", status_code=302)

    try:
        tokens = await asyncio.to_thread(reconciler.client.exchange_code, code)
    except (CalendarAuthError, CalendarAPIError) as exc:
        logger.error("Token exchange failed: %s", exc)
        return RedirectResponse("/?error=token_failed", status_code=302)

    reconciler.save_tokens(tokens)
    logger.info("Connected to Google Calendar")
    return RedirectResponse("/?success=connected", status_code=302)


@router.post("/sync")
async def sync(request: Request) -> JSONResponse:
    """Merge the given (or stored) local events with Google Calendar.

    Request body::

        {"events": [{"id": "1718000000000", "title": "Study group", "date": "2025-06-10", ...}]}
    """
    body = await read_json(request)
    events = body.get("events")
    reconciler = get_reconciler()

    try:
        merged = await reconciler.sync(events if isinstance(events, list) else None)
    except CalendarAuthError as exc:
        return JSONResponse({"error": str(exc)}, status_code=401)
    except CalendarAPIError as exc:
        logger.error("Sync error: %s", exc)
        return JSONResponse({"error": "Failed to sync with Google Calendar"}, status_code=500)

    return JSONResponse({"success": True, "events": merged})


@router.get("/status")
async def status() -> JSONResponse:
    reconciler = get_reconciler()
    return JSONResponse({
        "connected": reconciler.is_connected(),
        "last_sync": reconciler.store.get(store_keys.CALENDAR_LAST_SYNC),
    })


@router.post("/disconnect")
async def disconnect() -> JSONResponse:
    get_reconciler().disconnect()
    return JSONResponse({"ok": True})


async def periodic_sync() -> None:
    """One scheduled pass; does nothing unless connected, skips if busy."""
    reconciler = get_reconciler()
    if not reconciler.is_connected():
        return
    try:
        await reconciler.sync(wait=False)
    except CalendarAuthError as exc:
        logger.warning("Periodic calendar sync needs re-authentication: %s", exc)
    except CalendarAPIError as exc:
        logger.warning("Periodic calendar sync failed: %s", exc)
