"""Google OAuth2 + Calendar v3 REST client (primary calendar only)."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any
from urllib.parse import quote, urlencode

import requests
from dateutil import parser as dtparser
from dateutil import tz

logger = logging.getLogger("pointer.gcal.client")

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"
SCOPE = "https://www.googleapis.com/auth/calendar"

DEFAULT_COLOR = "bg-blue-500"

# Google colorId -> display color tag.
GOOGLE_COLOR_MAP: dict[str, str] = {
    "1": "bg-blue-500",
    "2": "bg-green-500",
    "3": "bg-red-500",
    "4": "bg-yellow-500",
    "5": "bg-purple-500",
    "6": "bg-pink-500",
    "7": "bg-orange-500",
    "8": "bg-teal-500",
    "9": "bg-indigo-500",
    "10": "bg-gray-500",
    "11": "bg-blue-600",
    "12": "bg-green-600",
    "13": "bg-red-600",
    "14": "bg-yellow-600",
    "15": "bg-purple-600",
    "16": "bg-pink-600",
}

# Colors offered when creating events locally, with the Google id they map to.
COLOR_OPTIONS: dict[str, str] = {
    "bg-blue-500": "1",
    "bg-green-500": "2",
    "bg-red-500": "3",
    "bg-yellow-500": "4",
    "bg-purple-500": "5",
    "bg-pink-500": "6",
}


class CalendarAuthError(RuntimeError):
    """Access token missing, expired and not refreshable, or rejected."""


class CalendarAPIError(RuntimeError):
    """Non-2xx or transport failure talking to Google."""


def sync_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """First day of last month through the first day of this month next year."""
    now = now or datetime.now()
    if now.month == 1:
        start = datetime(now.year - 1, 12, 1)
    else:
        start = datetime(now.year, now.month - 1, 1)
    end = datetime(now.year + 1, now.month, 1)
    return start, end


def remote_to_local(item: dict[str, Any], timezone: str = "UTC") -> dict[str, Any]:
    """Convert a Google event resource to the local event shape.

    Timed events are shown as date and ``HH:MM`` in ``timezone``, the zone
    ``local_to_remote`` labels pushed times with, so an edit keeps the instant.
    All-day events get an empty time. Raises ``ValueError`` on a bad timestamp.
    """
    start = item.get("start") or {}
    if start.get("dateTime"):
        started = dtparser.isoparse(start["dateTime"])
        if started.tzinfo is not None:
            started = started.astimezone(tz.gettz(timezone) or tz.UTC)
        event_date = started.date().isoformat()
        event_time = started.strftime("%H:%M")
    else:
        event_date = str(start.get("date") or "")[:10]
        event_time = ""

    return {
        "id": f"google_{item['id']}",
        "title": item.get("summary") or "(No title)",
        "description": item.get("description") or "",
        "date": event_date,
        "time": event_time,
        "color": GOOGLE_COLOR_MAP.get(str(item.get("colorId") or ""), DEFAULT_COLOR),
        "remote_id": item["id"],
        "is_remote": True,
    }


def local_to_remote(event: dict[str, Any], timezone: str = "UTC") -> dict[str, Any]:
    """Build a Google event body: one hour if a time is set, else one day."""
    day = date.fromisoformat(event["date"])
    if event.get("time"):
        hour, minute = (int(p) for p in event["time"].split(":")[:2])
        start = datetime(day.year, day.month, day.day, hour, minute)
        end = start + timedelta(hours=1)
    else:
        start = datetime(day.year, day.month, day.day)
        end = start + timedelta(days=1)

    body: dict[str, Any] = {
        "summary": event.get("title", ""),
        "description": event.get("description", ""),
        "start": {"dateTime": start.isoformat(), "timeZone": timezone},
        "end": {"dateTime": end.isoformat(), "timeZone": timezone},
    }
    color_id = COLOR_OPTIONS.get(event.get("color", ""))
    if color_id:
        body["colorId"] = color_id
    return body


class GoogleCalendarClient:
    """Thin wrapper over the Google token endpoint and the events collection."""

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str,
        timezone: str = "UTC",
        timeout: float = 15,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timezone = timezone
        self.timeout = timeout

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> "GoogleCalendarClient":
        gcal = cfg.get("google_calendar") or {}
        return cls(
            client_id=gcal.get("client_id"),
            client_secret=gcal.get("client_secret"),
            redirect_uri=gcal.get("redirect_uri") or "",
            timezone=gcal.get("timezone") or "UTC",
        )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    # ------------------------------------------------------------------
    # OAuth2
    # ------------------------------------------------------------------

    def auth_url(self) -> str:
        params = {
            "client_id": self.client_id or "",
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": SCOPE,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{AUTH_URL}?{urlencode(params, quote_via=quote)}"

    def exchange_code(self, code: str) -> dict[str, Any]:
        """Trade an authorization code for access + refresh tokens."""
        data = self._token_request({
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        })
        if not data.get("access_token"):
            raise CalendarAuthError("Token exchange returned no access token")
        return data

    def refresh_access_token(self, refresh_token: str) -> str | None:
        """Return a new access token, or None when Google refuses."""
        try:
            data = self._token_request({
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            })
        except (CalendarAuthError, CalendarAPIError) as exc:
            logger.error("Failed to refresh token: %s", exc)
            return None
        return data.get("access_token") or None

    def _token_request(self, fields: dict[str, str]) -> dict[str, Any]:
        payload = {"client_id": self.client_id or "", "client_secret": self.client_secret or "", **fields}
        try:
            resp = requests.post(TOKEN_URL, data=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise CalendarAPIError(f"Token request failed: {exc}") from exc
        if not resp.ok:
            raise CalendarAuthError(f"Token request rejected: {resp.status_code} {resp.text[:200]}")
        return resp.json()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def list_events(self, access_token: str, now: datetime | None = None) -> list[dict[str, Any]]:
        """Events in the sync window, recurring series expanded, by start time."""
        start, end = sync_window(now)
        params = {
            "timeMin": start.isoformat() + "Z",
            "timeMax": end.isoformat() + "Z",
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": 2500,
        }
        items: list[dict[str, Any]] = []
        while True:
            data = self._call("GET", EVENTS_URL, access_token, params=params)
            items.extend(data.get("items", []))
            page = data.get("nextPageToken")
            if not page:
                break
            params = {**params, "pageToken": page}
        logger.info("Fetched %d Google Calendar event(s)", len(items))
        return items

    def create_event(self, access_token: str, event: dict[str, Any]) -> str:
        data = self._call("POST", EVENTS_URL, access_token, json=local_to_remote(event, self.timezone))
        return data["id"]

    def update_event(self, access_token: str, remote_id: str, event: dict[str, Any]) -> None:
        self._call("PUT", f"{EVENTS_URL}/{quote(remote_id, safe='')}", access_token, json=local_to_remote(event, self.timezone))

    def delete_event(self, access_token: str, remote_id: str) -> None:
        self._call("DELETE", f"{EVENTS_URL}/{quote(remote_id, safe='')}", access_token)

    def _call(self, method: str, url: str, access_token: str, **kwargs: Any) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            resp = requests.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise CalendarAPIError(f"Google Calendar request failed: {exc}") from exc
        if resp.status_code in (401, 403):
            raise CalendarAuthError(f"Google Calendar API error: {resp.status_code}")
        if not resp.ok:
            raise CalendarAPIError(f"Google Calendar API error: {resp.status_code}")
        if resp.status_code == 204 or not resp.content:
            return {}
        return resp.json()
