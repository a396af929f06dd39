"""Reconcile the local calendar with Google Calendar.

One pass fetches the remote window, merges it into the local list by remote
id, pushes purely-local events to Google and persists the result. Only one
pass runs at a time: manual syncs wait for the lock, periodic syncs skip.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from src.common import store as store_keys
from src.common.store import LocalStore, coerce_event
from src.gcal.client import CalendarAPIError, CalendarAuthError, GoogleCalendarClient, remote_to_local

logger = logging.getLogger("pointer.gcal")

_sync_lock: asyncio.Lock | None = None
_sync_lock_loop: asyncio.AbstractEventLoop | None = None


def _get_sync_lock() -> asyncio.Lock:
    """The single-flight lock for the running event loop, created on first use."""
    global _sync_lock, _sync_lock_loop
    loop = asyncio.get_running_loop()
    if _sync_lock is None or _sync_lock_loop is not loop:
        _sync_lock = asyncio.Lock()
        _sync_lock_loop = loop
    return _sync_lock


def merge_events(local: list[dict[str, Any]], remote: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Local events in order, then remote events no local record references.

    A local record always wins over the fetched copy of the same remote id.
    """
    referenced = {e["remote_id"] for e in local if e.get("remote_id")}
    merged = [dict(e) for e in local]
    for event in remote:
        rid = event.get("remote_id")
        if rid in referenced:
            continue
        referenced.add(rid)
        merged.append(dict(event))
    return merged


def needs_push(event: dict[str, Any]) -> bool:
    return not event.get("remote_id") and not event.get("is_remote")


class CalendarReconciler:
    def __init__(self, client: GoogleCalendarClient, store: LocalStore) -> None:
        self.client = client
        self.store = store

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def tokens(self) -> dict[str, Any]:
        tokens = self.store.get(store_keys.CALENDAR_TOKENS)
        return tokens if isinstance(tokens, dict) else {}

    def is_connected(self) -> bool:
        return bool(self.store.get(store_keys.CALENDAR_SYNC, False)) and bool(self.tokens().get("access_token"))

    def save_tokens(self, tokens: dict[str, Any]) -> None:
        current = self.tokens()
        merged = {
            "access_token": tokens.get("access_token"),
            # Google omits refresh_token on re-consent sometimes; keep the old one.
            "refresh_token": tokens.get("refresh_token") or current.get("refresh_token"),
        }
        self.store.set(store_keys.CALENDAR_TOKENS, merged)
        self.store.set(store_keys.CALENDAR_SYNC, True)

    def disconnect(self) -> None:
        self.store.delete(store_keys.CALENDAR_TOKENS)
        self.store.set(store_keys.CALENDAR_SYNC, False)
        logger.info("Disconnected from Google Calendar")

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync(
        self,
        local_events: list[dict[str, Any]] | None = None,
        wait: bool = True,
    ) -> list[dict[str, Any]] | None:
        """Run one reconciliation pass and return the merged event list.

        ``local_events`` defaults to the stored list. With ``wait=False`` the
        call returns ``None`` instead of queueing behind a running pass.
        """
        lock = _get_sync_lock()
        if not wait and lock.locked():
            logger.info("Calendar sync already running, skipping")
            return None
        async with lock:
            return await self._sync_once(local_events)

    async def _sync_once(self, local_events: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
        tokens = self.tokens()
        if not tokens.get("access_token"):
            raise CalendarAuthError("Not connected to Google Calendar")

        if local_events is None:
            local = self.store.events()
        else:
            local = [coerce_event(e) for e in local_events if isinstance(e, dict)]

        items, access_token = await self._fetch_with_refresh(tokens)
        remote = self._convert_remote(items)
        merged = merge_events(local, remote)
        created = await self._push_local_only(merged, access_token)

        self.store.set(store_keys.CALENDAR_EVENTS, merged)
        self.store.set(store_keys.CALENDAR_SYNC, True)
        self.store.set(store_keys.CALENDAR_LAST_SYNC, datetime.now(timezone.utc).isoformat())
        logger.info(
            "Calendar sync: %d local, %d remote, %d new, %d pushed",
            len(local), len(remote), len(merged) - len(local), created,
        )
        return merged

    def _convert_remote(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Convert fetched items, skipping any Google returned malformed."""
        remote = []
        for item in items:
            if not item.get("id"):
                continue
            try:
                remote.append(remote_to_local(item, self.client.timezone))
            except (KeyError, TypeError, ValueError, OverflowError) as exc:
                logger.warning("Skipping malformed Google event %s: %s", item.get("id"), exc)
        return remote

    async def _fetch_with_refresh(self, tokens: dict[str, Any]) -> tuple[list[dict[str, Any]], str]:
        """Fetch remote events, refreshing the access token at most once."""
        access_token = tokens["access_token"]
        try:
            items = await asyncio.to_thread(self.client.list_events, access_token)
            return items, access_token
        except (CalendarAuthError, CalendarAPIError) as exc:
            logger.warning("Calendar fetch failed, treating as expired token: %s", exc)

        refresh_token = tokens.get("refresh_token")
        if not refresh_token:
            raise CalendarAuthError("Authentication required. Please reconnect Google Calendar.")

        logger.info("Refreshing Google access token")
        new_token = await asyncio.to_thread(self.client.refresh_access_token, refresh_token)
        if not new_token:
            raise CalendarAuthError("Token refresh failed. Please reconnect Google Calendar.")
        self.store.set(store_keys.CALENDAR_TOKENS, {**tokens, "access_token": new_token})

        items = await asyncio.to_thread(self.client.list_events, new_token)
        return items, new_token

    async def _push_local_only(self, merged: list[dict[str, Any]], access_token: str) -> int:
        """Create remote copies of local-only events concurrently.

        Returned ids are attached in place; failed creates are logged and left
        without a remote id.
        """
        pending = [event for event in merged if needs_push(event)]
        if not pending:
            return 0
        results = await asyncio.gather(*(self._create_one(access_token, event) for event in pending))
        created = 0
        for event, remote_id in zip(pending, results):
            if remote_id:
                event["remote_id"] = remote_id
                created += 1
        return created

    async def _create_one(self, access_token: str, event: dict[str, Any]) -> str | None:
        try:
            return await asyncio.to_thread(self.client.create_event, access_token, event)
        except (CalendarAuthError, CalendarAPIError, KeyError, ValueError) as exc:
            logger.warning("Failed to create Google event for %s: %s", event.get("id"), exc)
            return None

    # ------------------------------------------------------------------
    # Edit propagation
    # ------------------------------------------------------------------

    async def push_update(self, event: dict[str, Any]) -> bool:
        """Best-effort update of the remote copy of an edited event."""
        remote_id = event.get("remote_id")
        access_token = self.tokens().get("access_token")
        if not remote_id or not access_token:
            return False
        try:
            await asyncio.to_thread(self.client.update_event, access_token, remote_id, event)
        except (CalendarAuthError, CalendarAPIError, KeyError, ValueError) as exc:
            logger.warning("Failed to update Google event %s: %s", remote_id, exc)
            return False
        logger.info("Updated Google event %s", remote_id)
        return True

    async def push_delete(self, remote_id: str) -> bool:
        """Best-effort delete of a remote event."""
        access_token = self.tokens().get("access_token")
        if not remote_id or not access_token:
            return False
        try:
            await asyncio.to_thread(self.client.delete_event, access_token, remote_id)
        except (CalendarAuthError, CalendarAPIError) as exc:
            logger.warning("Failed to delete Google event %s: %s", remote_id, exc)
            return False
        logger.info("Deleted Google event %s", remote_id)
        return True
